from pydantic import BaseModel, ConfigDict
from datetime import date, datetime
from typing import List, Optional

from headoffice.models.background_check import CheckStatus, CheckType, ReferenceStatus
from headoffice.models.candidate import CandidateStage
from headoffice.models.onboarding_task import OnboardingTaskStatus, OnboardingTaskType


class ReferenceCreate(BaseModel):
    reference_name: str
    reference_company: Optional[str] = None
    reference_email: Optional[str] = None
    relationship_to_candidate: Optional[str] = None


class ReferenceUpdate(BaseModel):
    status: Optional[str] = None
    reference_notes: Optional[str] = None
    received_date: Optional[date] = None


class ReferenceResponse(BaseModel):
    id: int
    candidate_id: int
    reference_name: str
    reference_company: Optional[str] = None
    reference_email: Optional[str] = None
    relationship_to_candidate: Optional[str] = None
    status: ReferenceStatus
    reference_notes: Optional[str] = None
    received_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class BackgroundCheckCreate(BaseModel):
    check_type: str
    check_type_other: Optional[str] = None
    required: bool = True


class BackgroundCheckUpdate(BaseModel):
    status: Optional[str] = None
    submitted_date: Optional[date] = None
    completed_date: Optional[date] = None
    certificate_number: Optional[str] = None
    expiry_date: Optional[date] = None
    notes: Optional[str] = None


class BackgroundCheckResponse(BaseModel):
    id: int
    candidate_id: int
    check_type: CheckType
    label: str
    status: CheckStatus
    required: bool
    submitted_date: Optional[date] = None
    completed_date: Optional[date] = None
    certificate_number: Optional[str] = None
    expiry_date: Optional[date] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class DayOneItemCreate(BaseModel):
    activity: str
    time_slot: Optional[str] = None
    location: Optional[str] = None
    meeting_with: Optional[str] = None
    notes: Optional[str] = None
    sort_order: Optional[int] = None


class DayOneItemResponse(BaseModel):
    id: int
    time_slot: Optional[str] = None
    activity: str
    location: Optional[str] = None
    meeting_with: Optional[str] = None
    notes: Optional[str] = None
    sort_order: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class OnboardingTaskResponse(BaseModel):
    id: int
    task_name: str
    task_description: Optional[str] = None
    task_type: OnboardingTaskType
    required_before_start: bool
    status: OnboardingTaskStatus
    due_date: Optional[date] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PolicyStatusEntry(BaseModel):
    id: int
    title: str
    version: str
    summary: Optional[str] = None
    acknowledged: bool
    acknowledged_at: Optional[datetime] = None


class OnboardingProgress(BaseModel):
    tasks_completed: int
    tasks_total: int
    policies_acknowledged: int
    policies_total: int
    percentage: int


class MyOnboardingResponse(BaseModel):
    stage: CandidateStage
    start_date: Optional[date] = None
    days_until_start: Optional[int] = None
    tasks: List[OnboardingTaskResponse]
    policies: List[PolicyStatusEntry]
    day_one_plan: List[DayOneItemResponse]
    progress: OnboardingProgress


class PolicyAcknowledgmentResponse(BaseModel):
    id: int
    policy_id: int
    candidate_id: Optional[int] = None
    user_id: Optional[int] = None
    acknowledged_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ArrivalConfirm(BaseModel):
    password: Optional[str] = None

from pydantic import BaseModel, ConfigDict, EmailStr
from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional

from headoffice.models.candidate import CandidateStage, RecruitmentStage
from headoffice.models.interview import InterviewStatus, InterviewType, NoteType
from headoffice.models.user import UserRole


class CandidateCreate(BaseModel):
    full_name: str
    email: EmailStr
    phone: Optional[str] = None
    skills_experience: Optional[str] = None
    recruitment_request_id: Optional[int] = None
    proposed_role: Optional[str] = None
    proposed_tier: Optional[int] = None
    proposed_salary: Optional[Decimal] = None
    proposed_hours: Optional[Decimal] = None
    proposed_start_date: Optional[date] = None


class CandidateUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    skills_experience: Optional[str] = None
    proposed_role: Optional[str] = None
    proposed_tier: Optional[int] = None
    proposed_salary: Optional[Decimal] = None
    proposed_hours: Optional[Decimal] = None
    proposed_start_date: Optional[date] = None
    contract_signed: Optional[bool] = None


class CandidateResponse(BaseModel):
    id: int
    full_name: str
    email: str
    phone: Optional[str] = None
    skills_experience: Optional[str] = None
    stage: CandidateStage
    recruitment_stage: RecruitmentStage
    recruitment_stage_updated_at: Optional[datetime] = None
    recruitment_request_id: Optional[int] = None

    proposed_role: Optional[UserRole] = None
    proposed_tier: Optional[int] = None
    proposed_salary: Optional[Decimal] = None
    proposed_hours: Optional[Decimal] = None
    proposed_start_date: Optional[date] = None
    actual_start_date: Optional[date] = None
    contract_signed: bool
    contract_signed_date: Optional[date] = None

    offer_date: Optional[date] = None
    offer_expiry_date: Optional[date] = None
    offer_salary: Optional[Decimal] = None
    offer_start_date: Optional[date] = None
    decline_reason: Optional[str] = None
    rejection_reason: Optional[str] = None
    withdrawn_reason: Optional[str] = None
    further_assessment_required: bool

    arrival_confirmed: bool
    arrival_confirmed_at: Optional[datetime] = None
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StageUpdate(BaseModel):
    new_stage: str
    reason: Optional[str] = None


# --- Interviews and notes ---

class InterviewCreate(BaseModel):
    interview_type: str
    scheduled_date: date
    scheduled_time: time
    duration_minutes: Optional[int] = None
    location: Optional[str] = None
    interviewer_ids: List[int] = []


class InterviewUpdate(BaseModel):
    status: Optional[str] = None
    score: Optional[int] = None
    notes: Optional[str] = None
    recommend_next_stage: Optional[bool] = None


class InterviewResponse(BaseModel):
    id: int
    candidate_id: int
    interview_type: InterviewType
    scheduled_date: date
    scheduled_time: time
    duration_minutes: Optional[int] = None
    location: Optional[str] = None
    interviewer_ids: List[int] = []
    status: InterviewStatus
    score: Optional[int] = None
    notes: Optional[str] = None
    recommend_next_stage: Optional[bool] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class NoteCreate(BaseModel):
    content: str
    note_type: Optional[str] = None
    is_private: bool = False


class NoteResponse(BaseModel):
    id: int
    candidate_id: int
    user_id: int
    note_type: NoteType
    content: str
    is_private: bool
    from_stage: Optional[RecruitmentStage] = None
    to_stage: Optional[RecruitmentStage] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# --- Offers ---

class OfferCreate(BaseModel):
    offer_salary: Optional[Decimal] = None
    offer_start_date: Optional[date] = None
    offer_expiry_date: Optional[date] = None


class OfferDecline(BaseModel):
    reason: Optional[str] = None

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from headoffice.database import get_db
from headoffice.models.tenant import Tenant
from headoffice.models.user import User
from headoffice.routers.auth_deps import get_current_tenant, get_current_user, get_dispatcher
from headoffice.schemas.candidate import (
    CandidateCreate, CandidateResponse, CandidateUpdate, InterviewCreate, InterviewResponse,
    InterviewUpdate, NoteCreate, NoteResponse, OfferCreate, OfferDecline, StageUpdate
)
from headoffice.services.recruitment import RecruitmentService

router = APIRouter(prefix="/candidates", tags=["Recruitment"])


def get_recruitment_service(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    dispatcher=Depends(get_dispatcher)
) -> RecruitmentService:
    return RecruitmentService(db, tenant.id, dispatcher)


@router.get("/pipeline")
def get_pipeline(
    recruitment_request_id: Optional[int] = None,
    current_user: User = Depends(get_current_user),
    service: RecruitmentService = Depends(get_recruitment_service)
):
    return service.get_pipeline(current_user, recruitment_request_id)


@router.post("/", response_model=CandidateResponse, status_code=status.HTTP_201_CREATED)
def create_candidate(
    payload: CandidateCreate,
    current_user: User = Depends(get_current_user),
    service: RecruitmentService = Depends(get_recruitment_service)
):
    return service.create_candidate(current_user, payload.model_dump(exclude_unset=True))


@router.put("/interviews/{interview_id}", response_model=InterviewResponse)
def update_interview(
    interview_id: int,
    payload: InterviewUpdate,
    current_user: User = Depends(get_current_user),
    service: RecruitmentService = Depends(get_recruitment_service)
):
    return service.update_interview(interview_id, current_user, payload.model_dump(exclude_unset=True))


@router.get("/{candidate_id}", response_model=CandidateResponse)
def get_candidate(
    candidate_id: int,
    current_user: User = Depends(get_current_user),
    service: RecruitmentService = Depends(get_recruitment_service)
):
    return service.get_candidate(candidate_id, current_user)


@router.put("/{candidate_id}", response_model=CandidateResponse)
def update_candidate(
    candidate_id: int,
    payload: CandidateUpdate,
    current_user: User = Depends(get_current_user),
    service: RecruitmentService = Depends(get_recruitment_service)
):
    return service.update_candidate(candidate_id, current_user, payload.model_dump(exclude_unset=True))


# --- Stage machine ---

@router.put("/{candidate_id}/stage")
def update_stage(
    candidate_id: int,
    payload: StageUpdate,
    current_user: User = Depends(get_current_user),
    service: RecruitmentService = Depends(get_recruitment_service)
):
    return service.update_stage(candidate_id, current_user, payload.new_stage, payload.reason)


@router.get("/{candidate_id}/stage-history")
def get_stage_history(
    candidate_id: int,
    current_user: User = Depends(get_current_user),
    service: RecruitmentService = Depends(get_recruitment_service)
):
    return service.get_stage_history(candidate_id, current_user)


# --- Interviews and notes ---

@router.post("/{candidate_id}/interviews", response_model=InterviewResponse, status_code=status.HTTP_201_CREATED)
def schedule_interview(
    candidate_id: int,
    payload: InterviewCreate,
    current_user: User = Depends(get_current_user),
    service: RecruitmentService = Depends(get_recruitment_service)
):
    return service.schedule_interview(candidate_id, current_user, payload.model_dump())


@router.get("/{candidate_id}/interviews", response_model=List[InterviewResponse])
def list_interviews(
    candidate_id: int,
    current_user: User = Depends(get_current_user),
    service: RecruitmentService = Depends(get_recruitment_service)
):
    return service.list_interviews(candidate_id, current_user)


@router.post("/{candidate_id}/notes", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
def add_note(
    candidate_id: int,
    payload: NoteCreate,
    current_user: User = Depends(get_current_user),
    service: RecruitmentService = Depends(get_recruitment_service)
):
    return service.add_note(candidate_id, current_user, payload.model_dump())


@router.get("/{candidate_id}/notes", response_model=List[NoteResponse])
def list_notes(
    candidate_id: int,
    current_user: User = Depends(get_current_user),
    service: RecruitmentService = Depends(get_recruitment_service)
):
    return service.list_notes(candidate_id, current_user)


# --- Offers ---

@router.post("/{candidate_id}/offer", response_model=CandidateResponse)
def make_offer(
    candidate_id: int,
    payload: OfferCreate,
    current_user: User = Depends(get_current_user),
    service: RecruitmentService = Depends(get_recruitment_service)
):
    return service.make_offer(candidate_id, current_user, payload.model_dump())


@router.post("/{candidate_id}/offer/accept")
def accept_offer(
    candidate_id: int,
    current_user: User = Depends(get_current_user),
    service: RecruitmentService = Depends(get_recruitment_service)
):
    return service.accept_offer(candidate_id, current_user)


@router.post("/{candidate_id}/offer/decline")
def decline_offer(
    candidate_id: int,
    payload: OfferDecline,
    current_user: User = Depends(get_current_user),
    service: RecruitmentService = Depends(get_recruitment_service)
):
    return service.decline_offer(candidate_id, current_user, payload.reason)

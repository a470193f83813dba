from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from headoffice.database import get_db
from headoffice.models.tenant import Tenant
from headoffice.models.user import User
from headoffice.routers.auth_deps import get_current_tenant, get_current_user, get_dispatcher
from headoffice.schemas.onboarding import (
    ArrivalConfirm, BackgroundCheckCreate, BackgroundCheckResponse, BackgroundCheckUpdate,
    DayOneItemCreate, DayOneItemResponse, MyOnboardingResponse, OnboardingTaskResponse,
    PolicyAcknowledgmentResponse, ReferenceCreate, ReferenceResponse, ReferenceUpdate
)
from headoffice.services.candidate_records import CandidateRecordsService
from headoffice.services.promotion import PromotionGate

router = APIRouter(tags=["Onboarding"])


def get_promotion_gate(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    dispatcher=Depends(get_dispatcher)
) -> PromotionGate:
    return PromotionGate(db, tenant.id, dispatcher)


def get_records_service(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    dispatcher=Depends(get_dispatcher)
) -> CandidateRecordsService:
    return CandidateRecordsService(db, tenant.id, dispatcher)


# --- Promotion gates ---

@router.get("/candidates/{candidate_id}/promotion-status")
def get_promotion_status(
    candidate_id: int,
    current_user: User = Depends(get_current_user),
    gate: PromotionGate = Depends(get_promotion_gate)
):
    return gate.get_promotion_status(candidate_id, current_user)


@router.post("/candidates/{candidate_id}/promote")
def promote_candidate(
    candidate_id: int,
    current_user: User = Depends(get_current_user),
    gate: PromotionGate = Depends(get_promotion_gate)
):
    return gate.promote(candidate_id, current_user)


@router.post("/candidates/{candidate_id}/confirm-arrival")
def confirm_arrival(
    candidate_id: int,
    payload: ArrivalConfirm,
    current_user: User = Depends(get_current_user),
    gate: PromotionGate = Depends(get_promotion_gate)
):
    return gate.confirm_arrival(candidate_id, current_user, payload.password)


# --- Gate A records ---

@router.post(
    "/candidates/{candidate_id}/references",
    response_model=ReferenceResponse,
    status_code=status.HTTP_201_CREATED
)
def add_reference(
    candidate_id: int,
    payload: ReferenceCreate,
    current_user: User = Depends(get_current_user),
    service: CandidateRecordsService = Depends(get_records_service)
):
    return service.add_reference(candidate_id, current_user, payload.model_dump())


@router.put("/candidates/references/{reference_id}", response_model=ReferenceResponse)
def update_reference(
    reference_id: int,
    payload: ReferenceUpdate,
    current_user: User = Depends(get_current_user),
    service: CandidateRecordsService = Depends(get_records_service)
):
    return service.update_reference(reference_id, current_user, payload.model_dump(exclude_unset=True))


@router.post(
    "/candidates/{candidate_id}/background-checks",
    response_model=BackgroundCheckResponse,
    status_code=status.HTTP_201_CREATED
)
def add_background_check(
    candidate_id: int,
    payload: BackgroundCheckCreate,
    current_user: User = Depends(get_current_user),
    service: CandidateRecordsService = Depends(get_records_service)
):
    return service.add_background_check(candidate_id, current_user, payload.model_dump())


@router.put("/candidates/background-checks/{check_id}", response_model=BackgroundCheckResponse)
def update_background_check(
    check_id: int,
    payload: BackgroundCheckUpdate,
    current_user: User = Depends(get_current_user),
    service: CandidateRecordsService = Depends(get_records_service)
):
    return service.update_background_check(check_id, current_user, payload.model_dump(exclude_unset=True))


@router.post(
    "/candidates/{candidate_id}/day-one",
    response_model=DayOneItemResponse,
    status_code=status.HTTP_201_CREATED
)
def add_day_one_item(
    candidate_id: int,
    payload: DayOneItemCreate,
    current_user: User = Depends(get_current_user),
    service: CandidateRecordsService = Depends(get_records_service)
):
    return service.add_day_one_item(candidate_id, current_user, payload.model_dump())


# --- Pre-colleague self service ---

@router.get("/onboarding/my-tasks", response_model=MyOnboardingResponse)
def get_my_onboarding(
    current_user: User = Depends(get_current_user),
    service: CandidateRecordsService = Depends(get_records_service)
):
    return service.my_onboarding(current_user)


@router.post("/onboarding/tasks/{task_id}/complete", response_model=OnboardingTaskResponse)
def complete_task(
    task_id: int,
    current_user: User = Depends(get_current_user),
    service: CandidateRecordsService = Depends(get_records_service)
):
    return service.complete_task(task_id, current_user)


@router.post(
    "/onboarding/policies/{policy_id}/acknowledge",
    response_model=PolicyAcknowledgmentResponse,
    status_code=status.HTTP_201_CREATED
)
def acknowledge_policy(
    policy_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: CandidateRecordsService = Depends(get_records_service)
):
    ip_address = request.client.host if request.client else None
    return service.acknowledge_policy(policy_id, current_user, ip_address)

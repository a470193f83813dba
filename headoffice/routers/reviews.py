from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from headoffice.database import get_db
from headoffice.models.tenant import Tenant
from headoffice.models.user import User
from headoffice.routers.auth_deps import get_current_tenant, get_current_user, get_dispatcher
from headoffice.schemas.review import ManagerReviewCreate, ReviewUpdate, SelfReflectionCreate
from headoffice.services.reviews import ReviewService

router = APIRouter(prefix="/reviews", tags=["Reviews"])


def get_review_service(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    dispatcher=Depends(get_dispatcher)
) -> ReviewService:
    return ReviewService(db, tenant.id, dispatcher)


@router.get("/", response_model=List[Dict[str, Any]])
def list_reviews(
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service)
):
    return service.list_reviews(current_user)


@router.get("/my-latest")
def get_my_latest(
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service)
):
    return service.get_my_latest(current_user)


@router.get("/my-reflection-status")
def get_my_reflection_status(
    week: Optional[date] = None,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service)
):
    return service.get_my_reflection_status(current_user, week)


@router.post("/self-reflection", status_code=status.HTTP_201_CREATED)
def create_self_reflection(
    payload: SelfReflectionCreate,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service)
):
    return service.create_self_reflection(current_user, payload.model_dump(exclude_unset=True))


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_manager_review(
    payload: ManagerReviewCreate,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service)
):
    return service.create_manager_review(current_user, payload.model_dump(exclude_unset=True))


@router.get("/{review_id}")
def get_review(
    review_id: int,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service)
):
    return service.get_review(review_id, current_user)


@router.put("/{review_id}")
def update_review(
    review_id: int,
    payload: ReviewUpdate,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service)
):
    return service.update_review(review_id, current_user, payload.model_dump(exclude_unset=True))


@router.put("/{review_id}/commit")
def commit_review(
    review_id: int,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service)
):
    return service.commit(review_id, current_user, self_assessment=False)


@router.put("/{review_id}/commit-self")
def commit_self_reflection(
    review_id: int,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service)
):
    return service.commit(review_id, current_user, self_assessment=True)


@router.put("/{review_id}/uncommit")
def uncommit_review(
    review_id: int,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service)
):
    return service.uncommit(review_id, current_user)

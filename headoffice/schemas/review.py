from pydantic import BaseModel
from datetime import date
from typing import Optional


class ReviewFields(BaseModel):
    # Ranges are checked by the review service so errors name the field
    tasks_completed: Optional[int] = None
    work_volume: Optional[int] = None
    problem_solving: Optional[int] = None
    communication: Optional[int] = None
    leadership: Optional[int] = None

    goals: Optional[str] = None
    achievements: Optional[str] = None
    areas_for_improvement: Optional[str] = None

    skip_week: bool = False
    skip_reason: Optional[str] = None


class SelfReflectionCreate(ReviewFields):
    review_date: date


class ManagerReviewCreate(ReviewFields):
    employee_id: int
    review_date: date


class ReviewUpdate(BaseModel):
    tasks_completed: Optional[int] = None
    work_volume: Optional[int] = None
    problem_solving: Optional[int] = None
    communication: Optional[int] = None
    leadership: Optional[int] = None

    goals: Optional[str] = None
    achievements: Optional[str] = None
    areas_for_improvement: Optional[str] = None

    skip_week: Optional[bool] = None
    skip_reason: Optional[str] = None

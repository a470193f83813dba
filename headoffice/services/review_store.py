from datetime import date
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from headoffice.core.exceptions import ConflictError, NotFoundError
from headoffice.models.review import Review


class ReviewCycleStore:
    """
    Review rows of one tenant keyed by (employee, week-ending, side).
    The database unique constraint is the source of truth for "one row per side".
    """

    def __init__(self, db: Session, tenant_id: int):
        self.db = db
        self.tenant_id = tenant_id

    def _query(self):
        return self.db.query(Review).filter(Review.tenant_id == self.tenant_id)

    def get(self, review_id: int) -> Review:
        review = self._query().filter(Review.id == review_id).first()
        if review is None:
            raise NotFoundError("Review not found")
        return review

    def find(self, employee_id: int, week_ending: date, is_self_assessment: bool) -> Optional[Review]:
        return self._query().filter(
            Review.employee_id == employee_id,
            Review.review_date == week_ending,
            Review.is_self_assessment.is_(is_self_assessment),
        ).first()

    def pair(self, employee_id: int, week_ending: date) -> Tuple[Optional[Review], Optional[Review]]:
        """(self-assessment, manager review) for one employee and week."""
        return (
            self.find(employee_id, week_ending, True),
            self.find(employee_id, week_ending, False),
        )

    def lock_pair(self, employee_id: int, week_ending: date) -> List[Review]:
        """
        Row-lock both sides of a week in id order and reload them, so two
        concurrent commits serialise and the second one sees the first.
        """
        return self._query().filter(
            Review.employee_id == employee_id,
            Review.review_date == week_ending,
        ).order_by(Review.id).with_for_update().populate_existing().all()

    def counterpart(self, review: Review) -> Optional[Review]:
        return self.find(review.employee_id, review.review_date, not review.is_self_assessment)

    def is_revealed(self, review: Review, counterpart: Optional[Review] = None) -> bool:
        if not review.is_committed:
            return False
        other = counterpart if counterpart is not None else self.counterpart(review)
        return other is not None and other.is_committed

    def add(self, review: Review) -> Review:
        review.tenant_id = self.tenant_id
        try:
            with self.db.begin_nested():
                self.db.add(review)
        except IntegrityError:
            side = "Self-reflection" if review.is_self_assessment else "Manager review"
            raise ConflictError(f"{side} already exists for week ending {review.review_date}")
        return review

    def for_employee(
        self,
        employee_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
        is_self_assessment: Optional[bool] = None
    ) -> List[Review]:
        query = self._query().filter(Review.employee_id == employee_id)
        if start is not None:
            query = query.filter(Review.review_date >= start)
        if end is not None:
            query = query.filter(Review.review_date <= end)
        if is_self_assessment is not None:
            query = query.filter(Review.is_self_assessment.is_(is_self_assessment))
        return query.order_by(Review.review_date.asc()).all()

    def visible_to(self, user_id: int, report_ids: Sequence[int]) -> List[Review]:
        """Rows a non-privileged viewer may list: their own, authored, or their reports'."""
        conditions = [Review.employee_id == user_id, Review.reviewer_id == user_id]
        if report_ids:
            conditions.append(Review.employee_id.in_(list(report_ids)))
        return self._query().filter(or_(*conditions)).order_by(Review.review_date.desc(), Review.id.desc()).all()

    def all(self) -> List[Review]:
        return self._query().order_by(Review.review_date.desc(), Review.id.desc()).all()

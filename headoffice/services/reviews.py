"""
Blind weekly review protocol.

For each (employee, week-ending Friday) there is at most one self-assessment
and one manager review. Numbers (ratings and derived KPIs) on either side
stay hidden until both sides are committed; free text follows a separate,
role based rule. Commit responses deliberately carry no numbers until the
reveal so neither party can infer the other's ratings.
"""
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from headoffice.core.config import settings
from headoffice.core.exceptions import ConflictError, StateError, ValidationError
from headoffice.core.permissions import Action, authorize, can
from headoffice.models.review import Review, RATING_FIELDS, TEXT_FIELDS
from headoffice.models.user import User
from headoffice.services.audit import AuditService
from headoffice.services.base import BaseService
from headoffice.services.directory import Directory
from headoffice.services.events import ManagerSnapshotCommitted, ReviewsRevealed
from headoffice.services.metrics import (
    current_week_ending, is_week_ending, kpis_for, staleness
)
from headoffice.services.notification import NotificationService
from headoffice.services.review_store import ReviewCycleStore

EDITABLE_FIELDS = RATING_FIELDS + TEXT_FIELDS + ("skip_week", "skip_reason")


def _validate_ratings(data: Dict[str, Any]) -> None:
    for field in RATING_FIELDS:
        value = data.get(field)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 10:
            raise ValidationError(f"{field} must be a whole number between 1 and 10")


def _validate_skip(data: Dict[str, Any]) -> None:
    if data.get("skip_week") and not (data.get("skip_reason") or "").strip():
        raise ValidationError("A reason is required when skipping a week")


def _validate_week(week: Any) -> date:
    if not isinstance(week, date) or isinstance(week, datetime):
        raise ValidationError("review_date is required")
    if not is_week_ending(week):
        raise ValidationError("review_date must be a week-ending Friday")
    return week


class ReviewService(BaseService):

    def __init__(self, db, tenant_id: int, dispatcher=None, events=None):
        super().__init__(db, tenant_id, dispatcher, events)
        self.store = ReviewCycleStore(db, tenant_id)
        self.directory = Directory(db, tenant_id)
        self.audit = AuditService(db, tenant_id, events=self.events)

    # --- Presentation ---

    @staticmethod
    def status_shape(review: Review) -> Dict[str, Any]:
        """Minimal committed-status view: never carries ratings, KPIs or text."""
        return {
            "id": review.id,
            "employee_id": review.employee_id,
            "reviewer_id": review.reviewer_id,
            "review_date": review.review_date,
            "is_self_assessment": review.is_self_assessment,
            "is_committed": review.is_committed,
            "committed_at": review.committed_at,
            "skip_week": review.skip_week,
        }

    def present(
        self,
        review: Review,
        viewer: User,
        revealed: Optional[bool] = None,
        allow_draft_author: bool = True,
        full: bool = False
    ) -> Dict[str, Any]:
        """`full` is the joint-commit view: both records with their text."""
        if revealed is None:
            revealed = self.store.is_revealed(review)
        data = self.status_shape(review)
        data["employee_name"] = review.employee.full_name if review.employee else None
        data["skip_reason"] = review.skip_reason
        data["revealed"] = revealed

        # Authors may see their own numbers while drafting; otherwise only after the reveal
        own_draft = allow_draft_author and not review.is_committed and review.reviewer_id == viewer.id
        if revealed or own_draft:
            for field in RATING_FIELDS:
                data[field] = getattr(review, field)
            data.update(kpis_for(review))

        subject_after_reveal = revealed and not review.is_self_assessment and review.employee_id == viewer.id
        if full or can(viewer, Action.REVIEW_READ_TEXT, review) or subject_after_reveal:
            for field in TEXT_FIELDS:
                data[field] = getattr(review, field)
            data["text_redacted"] = False
        else:
            for field in TEXT_FIELDS:
                data[field] = settings.reviews.redaction_placeholder if getattr(review, field) else None
            data["text_redacted"] = True
        return data

    # --- Creation and editing ---

    def create_self_reflection(self, actor: User, data: Dict[str, Any]) -> Dict[str, Any]:
        week = _validate_week(data.get("review_date"))
        _validate_ratings(data)
        _validate_skip(data)

        with self.transaction("create self-reflection"):
            if self.store.find(actor.id, week, True) is not None:
                raise ConflictError("Self-reflection already exists for this week")
            review = Review(
                employee_id=actor.id,
                reviewer_id=actor.id,
                review_date=week,
                is_self_assessment=True,
                **{f: data.get(f) for f in EDITABLE_FIELDS if f in data},
            )
            self.store.add(review)
            self.audit.log_create(
                actor, "review", review.id,
                f"Self-reflection created for week ending {week}",
                {"employee_id": actor.id, "review_date": week, "is_self_assessment": True},
            )
        self._logger.info(f"Self-reflection {review.id} created for user {actor.id} week {week}")
        return self.status_shape(review)

    def create_manager_review(self, actor: User, data: Dict[str, Any]) -> Dict[str, Any]:
        week = _validate_week(data.get("review_date"))
        _validate_ratings(data)
        _validate_skip(data)

        employee = self.directory.get_user(data.get("employee_id"))
        if employee.id == actor.id:
            raise ValidationError("Use a self-reflection to review yourself")
        authorize(actor, Action.REVIEW_CREATE_MANAGER, employee, "You can only review your direct reports")

        with self.transaction("create manager review"):
            if self.store.find(employee.id, week, False) is not None:
                raise ConflictError("A manager review already exists for this employee and week")
            review = Review(
                employee_id=employee.id,
                reviewer_id=actor.id,
                review_date=week,
                is_self_assessment=False,
                **{f: data.get(f) for f in EDITABLE_FIELDS if f in data},
            )
            self.store.add(review)
            self.audit.log_create(
                actor, "review", review.id,
                f"Manager review created for {employee.full_name}, week ending {week}",
                {"employee_id": employee.id, "review_date": week, "is_self_assessment": False},
            )
        return self.status_shape(review)

    def update_review(self, review_id: int, actor: User, changes: Dict[str, Any]) -> Dict[str, Any]:
        review = self.store.get(review_id)
        authorize(actor, Action.REVIEW_EDIT, review, "You can only edit your own reviews")
        if review.is_committed and not can(actor, Action.REVIEW_EDIT_COMMITTED):
            raise ConflictError("Cannot edit a committed review")

        changes = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
        # skip_week is a NOT NULL flag; an explicit null leaves it unchanged
        if changes.get("skip_week", False) is None:
            del changes["skip_week"]
        _validate_ratings(changes)
        merged = {"skip_week": review.skip_week, "skip_reason": review.skip_reason, **changes}
        _validate_skip(merged)

        with self.transaction("update review"):
            before = {f: getattr(review, f) for f in changes}
            for field, value in changes.items():
                setattr(review, field, value)
            self.audit.log_update(
                actor, "review", review.id,
                "Committed review edited by admin" if review.is_committed else "Review draft updated",
                changes,
                before_state=before,
            )
        return self.present(review, actor)

    # --- Commit protocol ---

    def commit(self, review_id: int, actor: User, self_assessment: Optional[bool] = None) -> Dict[str, Any]:
        review = self.store.get(review_id)
        if self_assessment is True and not review.is_self_assessment:
            raise ValidationError("Review is not a self-reflection")
        if self_assessment is False and review.is_self_assessment:
            raise ValidationError("Self-reflections are committed through commit-self")
        authorize(actor, Action.REVIEW_COMMIT, review, "You can only commit your own reviews")

        with self.transaction("commit review"):
            rows = self.store.lock_pair(review.employee_id, review.review_date)
            if review.is_committed:
                raise ConflictError("Review already committed")
            review.is_committed = True
            review.committed_at = datetime.now(timezone.utc)
            counterpart = next((r for r in rows if r.id != review.id), None)
            revealed = counterpart is not None and counterpart.is_committed

            self.audit.log_update(
                actor, "review", review.id,
                f"Review committed for week ending {review.review_date}",
                {"is_committed": True, "revealed": revealed},
                before_state={"is_committed": False},
            )
            if revealed:
                self_row, manager_row = (review, counterpart) if review.is_self_assessment else (counterpart, review)
                self.publish(ReviewsRevealed(
                    tenant_id=self.tenant_id,
                    review_id=manager_row.id,
                    employee_id=review.employee_id,
                    manager_id=manager_row.reviewer_id,
                    employee_name=review.employee.full_name,
                    week_ending=review.review_date,
                ))
            elif not review.is_self_assessment:
                self.publish(ManagerSnapshotCommitted(
                    tenant_id=self.tenant_id,
                    review_id=review.id,
                    employee_id=review.employee_id,
                    manager_name=actor.full_name,
                    week_ending=review.review_date,
                ))

        if revealed:
            self._logger.info(f"KPIs revealed for user {review.employee_id} week {review.review_date}")
            return {
                "both_committed": True,
                "message": "Both snapshots are committed. KPIs are now visible.",
                "self_reflection": self.present(self_row, actor, revealed=True, full=True),
                "manager_review": self.present(manager_row, actor, revealed=True, full=True),
            }

        waiting_for = "your manager" if review.is_self_assessment else "the employee"
        return {
            "both_committed": False,
            "message": f"Snapshot committed. KPIs will be revealed once {waiting_for} commits.",
            "review": self.status_shape(review),
        }

    def uncommit(self, review_id: int, actor: User) -> Dict[str, Any]:
        authorize(actor, Action.REVIEW_UNCOMMIT, message="Only Admin can uncommit reviews")
        review = self.store.get(review_id)
        if not review.is_committed:
            raise StateError("Review is not committed")

        with self.transaction("uncommit review"):
            previous = review.committed_at
            review.is_committed = False
            review.committed_at = None
            self.audit.log_action(
                action="review_uncommit_override",
                entity_type="review",
                entity_id=review.id,
                user_id=actor.id,
                user_role=actor.role.value,
                description=f"Admin override: review for week ending {review.review_date} uncommitted",
                details={"employee_id": review.employee_id, "is_self_assessment": review.is_self_assessment},
                before_state={"is_committed": True, "committed_at": previous},
                after_state={"is_committed": False},
            )
        self.log_warning(
            f"Review {review.id} uncommitted by admin {actor.id}",
            review_id=review.id, user_id=actor.id
        )
        return self.status_shape(review)

    # --- Reads ---

    def get_review(self, review_id: int, viewer: User) -> Dict[str, Any]:
        review = self.store.get(review_id)
        authorize(viewer, Action.REVIEW_VIEW, review, "Access denied to this review")
        return self.present(review, viewer)

    def list_reviews(self, viewer: User) -> List[Dict[str, Any]]:
        if can(viewer, Action.REVIEW_LIST_ALL):
            reviews = self.store.all()
        else:
            reviews = self.store.visible_to(viewer.id, self.directory.direct_report_ids(viewer.id))
        return [self.present(r, viewer) for r in reviews]

    def get_my_reflection_status(
        self,
        viewer: User,
        week: Optional[date] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        week = _validate_week(week or current_week_ending(now.date()))

        NotificationService(self.db, self.tenant_id).check_overdue_snapshots(now=now, user_id=viewer.id)

        self_row, manager_row = self.store.pair(viewer.id, week)
        self_committed = bool(self_row and self_row.is_committed)
        manager_committed = bool(manager_row and manager_row.is_committed)
        revealed = self_committed and manager_committed
        return {
            "week_ending": week,
            "self_reflection": (
                self.present(self_row, viewer, revealed, allow_draft_author=False) if self_row else None
            ),
            "manager_review": (
                self.present(manager_row, viewer, revealed, allow_draft_author=False) if manager_row else None
            ),
            "self_committed": self_committed,
            "manager_committed": manager_committed,
            "both_committed": revealed,
            "can_submit": self_row is None,
        }

    def get_my_latest(self, viewer: User, today: Optional[date] = None) -> Dict[str, Any]:
        """Most recent revealed manager review with KPIs, plus how stale it is."""
        manager_reviews = self.store.for_employee(viewer.id, is_self_assessment=False)
        latest = next(
            (r for r in reversed(manager_reviews) if self.store.is_revealed(r)),
            None
        )
        stale = staleness(latest.review_date if latest else None, today)
        return {
            "review": self.present(latest, viewer, revealed=True) if latest else None,
            "staleness_weeks": stale.weeks,
            "staleness_status": stale.status,
        }

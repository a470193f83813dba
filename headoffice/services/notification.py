from datetime import datetime, time, timedelta, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from headoffice.core.config import settings
from headoffice.core.exceptions import NotFoundError
from headoffice.models.notification import Notification
from headoffice.models.review import Review
from headoffice.models.user import User, EmploymentStatus
from headoffice.services.base import BaseService
from headoffice.services.metrics import previous_week_ending


class NotificationService(BaseService):

    def create(
        self,
        user_id: int,
        type: str,
        title: str,
        message: str,
        related_id: Optional[int] = None,
        related_type: Optional[str] = None,
        created_at: Optional[datetime] = None
    ) -> Optional[Notification]:
        """
        Fire-and-forget: a failed insert is logged and None returned,
        never raised to the business operation that triggered it.
        """
        notification = Notification(
            tenant_id=self.tenant_id,
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            related_id=related_id,
            related_type=related_type,
        )
        if created_at is not None:
            notification.created_at = created_at
        try:
            self.db.add(notification)
            self.db.commit()
            self.db.refresh(notification)
            return notification
        except SQLAlchemyError as e:
            self.db.rollback()
            self._logger.error(
                f"Failed to create notification '{type}' for user {user_id}: {e}",
                exc_info=True,
                extra={"tenant_id": self.tenant_id}
            )
            return None

    def exists_on_day(
        self,
        user_id: int,
        type: str,
        day,
        related_id: Optional[int] = None,
        message_contains: Optional[str] = None
    ) -> bool:
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        query = self.db.query(Notification.id).filter(
            Notification.tenant_id == self.tenant_id,
            Notification.user_id == user_id,
            Notification.type == type,
            Notification.created_at >= start,
            Notification.created_at < start + timedelta(days=1),
        )
        if related_id is not None:
            query = query.filter(Notification.related_id == related_id)
        if message_contains:
            query = query.filter(Notification.message.contains(message_contains))
        return query.first() is not None

    def check_overdue_snapshots(self, now: Optional[datetime] = None, user_id: Optional[int] = None) -> List[Notification]:
        """
        Early-week nudge for last week's missing self-reflections.

        Safe to run on every read: each reminder is sent at most once per
        recipient and day.
        """
        now = now or datetime.now(timezone.utc)
        today = now.date()
        if today.weekday() not in settings.reviews.overdue_scan_weekdays:
            return []

        week_ending = previous_week_ending(today)
        committed = select(Review.employee_id).where(
            Review.tenant_id == self.tenant_id,
            Review.review_date == week_ending,
            Review.is_self_assessment.is_(True),
            Review.is_committed.is_(True),
        )
        query = self.db.query(User).filter(
            User.tenant_id == self.tenant_id,
            User.is_active.is_(True),
            User.employment_status == EmploymentStatus.ACTIVE,
            User.id.notin_(committed),
        )
        if user_id is not None:
            query = query.filter(User.id == user_id)

        created = []
        for employee in query.all():
            if not self.exists_on_day(employee.id, "self_reflection_overdue", today):
                created.append(self.create(
                    employee.id,
                    "self_reflection_overdue",
                    "Self-Reflection Overdue",
                    f"Your self-reflection for week ending {week_ending} is overdue. "
                    "Please submit it as soon as possible.",
                    related_type="review",
                    created_at=now,
                ))
            if employee.manager_id and not self.exists_on_day(
                employee.manager_id, "snapshot_overdue", today, related_id=employee.id
            ):
                created.append(self.create(
                    employee.manager_id,
                    "snapshot_overdue",
                    "Team Snapshot Overdue",
                    f"{employee.full_name}'s weekly snapshot for week ending {week_ending} is overdue.",
                    related_id=employee.id,
                    related_type="user",
                    created_at=now,
                ))
        return [n for n in created if n is not None]

    # --- Inbox ---

    def list_for_user(self, user_id: int, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        query = self.db.query(Notification).filter(
            Notification.tenant_id == self.tenant_id,
            Notification.user_id == user_id
        )
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    def mark_read(self, notification_id: int, user_id: int) -> Notification:
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.tenant_id == self.tenant_id,
            Notification.user_id == user_id
        ).first()
        if notification is None:
            raise NotFoundError("Notification not found")
        with self.transaction("mark notification as read"):
            notification.is_read = True
        return notification

    def mark_all_read(self, user_id: int) -> int:
        with self.transaction("mark notifications as read"):
            updated = self.db.query(Notification).filter(
                Notification.tenant_id == self.tenant_id,
                Notification.user_id == user_id,
                Notification.is_read.is_(False)
            ).update({Notification.is_read: True}, synchronize_session=False)
        return updated

"""
Domain events and their translation into notifications.

Business services only publish events; the dispatcher runs after the
business transaction has committed and turns each event into zero or more
notifications. A failing handler is logged and skipped.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, time
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Type

from sqlalchemy.orm import Session

from headoffice.services.notification import NotificationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainEvent:
    tenant_id: int


@dataclass(frozen=True)
class ReviewsRevealed(DomainEvent):
    review_id: int
    employee_id: int
    manager_id: int
    employee_name: str
    week_ending: date


@dataclass(frozen=True)
class ManagerSnapshotCommitted(DomainEvent):
    review_id: int
    employee_id: int
    manager_name: str
    week_ending: date


@dataclass(frozen=True)
class InterviewScheduled(DomainEvent):
    interview_id: int
    candidate_name: str
    scheduled_date: date
    scheduled_time: time
    interviewer_ids: Tuple[int, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class EmployeeProvisioned(DomainEvent):
    candidate_id: int
    user_id: int
    full_name: str
    manager_id: Optional[int] = None


@dataclass(frozen=True)
class CandidateActivated(DomainEvent):
    candidate_id: int
    user_id: int
    full_name: str


def _format_week(value: date) -> str:
    return value.isoformat()


def notify_reviews_revealed(notifications: NotificationService, event: ReviewsRevealed):
    week = _format_week(event.week_ending)
    notifications.create(
        event.employee_id,
        "kpi_revealed",
        "Weekly KPIs Revealed",
        f"Both you and your manager have submitted snapshots for week ending {week}. KPIs are now visible.",
        event.review_id,
        "review",
    )
    notifications.create(
        event.manager_id,
        "kpi_revealed",
        "Weekly KPIs Revealed",
        f"Both you and {event.employee_name} have submitted snapshots for week ending {week}. KPIs are now visible.",
        event.review_id,
        "review",
    )


def notify_manager_snapshot(notifications: NotificationService, event: ManagerSnapshotCommitted):
    notifications.create(
        event.employee_id,
        "manager_snapshot_committed",
        "Manager Snapshot Submitted",
        f"{event.manager_name} has submitted their weekly snapshot for you "
        f"(week ending {_format_week(event.week_ending)}).",
        event.review_id,
        "review",
    )


def notify_interviewers(notifications: NotificationService, event: InterviewScheduled):
    for interviewer_id in event.interviewer_ids:
        notifications.create(
            interviewer_id,
            "interview_scheduled",
            "Interview Scheduled",
            f"You have been assigned to interview {event.candidate_name} on "
            f"{event.scheduled_date.isoformat()} at {event.scheduled_time.strftime('%H:%M')}.",
            event.interview_id,
            "interview",
        )


def notify_employee_provisioned(notifications: NotificationService, event: EmployeeProvisioned):
    notifications.create(
        event.user_id,
        "employee_transferred",
        "Welcome to HeadOfficeOS",
        "Your offer has been accepted! Please complete your onboarding tasks before your start date.",
        event.candidate_id,
        "candidate",
    )
    if event.manager_id:
        notifications.create(
            event.manager_id,
            "employee_transferred",
            "New Team Member Joining",
            f"{event.full_name} has accepted the offer and will be joining your team.",
            event.candidate_id,
            "candidate",
        )


def notify_candidate_activated(notifications: NotificationService, event: CandidateActivated):
    notifications.create(
        event.user_id,
        "employee_transferred",
        "Welcome - You are now active!",
        "Your onboarding is complete. Welcome to the team!",
        event.candidate_id,
        "candidate",
    )


# Registry of event handlers
EVENT_HANDLERS: Dict[Type[DomainEvent], List[Callable[[NotificationService, DomainEvent], None]]] = {
    ReviewsRevealed: [notify_reviews_revealed],
    ManagerSnapshotCommitted: [notify_manager_snapshot],
    InterviewScheduled: [notify_interviewers],
    EmployeeProvisioned: [notify_employee_provisioned],
    CandidateActivated: [notify_candidate_activated],
}


class EventDispatcher:
    def __init__(self, db: Session, handlers: Optional[Dict] = None):
        self.db = db
        self.handlers = handlers if handlers is not None else EVENT_HANDLERS

    def dispatch(self, events: Iterable[DomainEvent]) -> None:
        for event in events:
            notifications = NotificationService(self.db, event.tenant_id)
            for handler in self.handlers.get(type(event), []):
                try:
                    handler(notifications, event)
                except Exception as e:
                    # Don't fail the request if notification fails
                    logger.warning(
                        f"Event handler {handler.__name__} failed for {type(event).__name__}: {e}",
                        exc_info=True,
                    )

"""
Onboarding provisioner.

Turns an accepted candidate into a pre-colleague: employee account with a
temporary password and sequential employee number, default onboarding task
list and day-one schedule. Runs inside the caller's transaction.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_random

from headoffice.core.config import settings
from headoffice.core.exceptions import ConflictError, StateError
from headoffice.core.security import generate_temp_password, get_password_hash
from headoffice.models.candidate import Candidate, CandidateStage
from headoffice.models.notification import Notification
from headoffice.models.onboarding_task import DayOneItem, OnboardingTask, OnboardingTaskType
from headoffice.models.recruitment_request import RecruitmentRequestStatus
from headoffice.models.user import EmploymentStatus, User, UserRole
from headoffice.services.audit import AuditService
from headoffice.services.base import BaseService
from headoffice.services.directory import Directory
from headoffice.services.events import EmployeeProvisioned
from headoffice.services.notification import NotificationService

DEFAULT_TASKS = [
    {"task_name": "Read Employee Handbook", "task_type": OnboardingTaskType.document_read, "required_before_start": True},
    {"task_name": "Complete emergency contact form", "task_type": OnboardingTaskType.form_submit, "required_before_start": True},
    {"task_name": "Set up IT account", "task_type": OnboardingTaskType.check_complete, "required_before_start": True},
    {"task_name": "Complete health declaration", "task_type": OnboardingTaskType.form_submit, "required_before_start": True},
    {"task_name": "Meet with manager", "task_type": OnboardingTaskType.meeting, "required_before_start": False},
    {"task_name": "Complete induction training", "task_type": OnboardingTaskType.training, "required_before_start": False},
]

# (time slot, activity, location, meeting with)
DEFAULT_DAY_ONE = [
    ("09:00", "Arrive at reception", "Main entrance", "Reception"),
    ("09:15", "Welcome and building tour", "Office", "HR"),
    ("10:00", "IT setup and equipment collection", "IT desk", "IT Support"),
    ("11:00", "Meet your team", "Team area", "Team members"),
    ("12:00", "Lunch with manager", "Canteen", "Your manager"),
    ("13:30", "HR paperwork and policies", "HR office", "HR"),
    ("15:00", "Workstation setup", "Your desk", "Buddy"),
    ("16:30", "End of day check-in", "Manager office", "Your manager"),
]

STAGE_ORDER = [CandidateStage.candidate, CandidateStage.pre_colleague, CandidateStage.active]


def advance_stage(candidate: Candidate, target: CandidateStage) -> None:
    """Employment stage only ever moves one step forward."""
    current = STAGE_ORDER.index(candidate.stage)
    if STAGE_ORDER.index(target) != current + 1:
        raise StateError(f"Cannot move candidate from {candidate.stage.value} to {target.value}")
    candidate.stage = target


@dataclass
class ProvisionResult:
    user: User
    temp_password: Optional[str]
    created: bool


class OnboardingProvisioner(BaseService):

    def __init__(self, db, tenant_id: int, dispatcher=None, events=None):
        super().__init__(db, tenant_id, dispatcher, events)
        self.directory = Directory(db, tenant_id)
        self.audit = AuditService(db, tenant_id, events=self.events)

    def next_employee_number(self) -> str:
        prefix = settings.onboarding.employee_number_prefix
        pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
        rows = self.db.query(User.employee_number).filter(
            User.tenant_id == self.tenant_id,
            User.employee_number.like(f"{prefix}%"),
        ).all()
        numbers = [int(m.group(1)) for (value,) in rows if value and (m := pattern.match(value))]
        highest = max(numbers) if numbers else settings.onboarding.employee_number_base
        return f"{prefix}{highest + 1:03d}"

    @retry(
        stop=stop_after_attempt(settings.onboarding.employee_number_retries),
        wait=wait_random(min=0, max=0.05),
        retry=retry_if_exception_type(IntegrityError),
        reraise=True
    )
    def _insert_account(self, **fields) -> User:
        """
        Allocate an employee number and insert the account in a SAVEPOINT.
        A concurrent allocation of the same number violates the unique
        constraint, rolls back only the savepoint, and is retried.
        """
        user = User(tenant_id=self.tenant_id, employee_number=self.next_employee_number(), **fields)
        try:
            with self.db.begin_nested():
                self.db.add(user)
        except IntegrityError:
            self.log_warning(f"Employee number {user.employee_number} taken, retrying")
            raise
        return user

    def provision(self, candidate: Candidate, actor: User) -> ProvisionResult:
        if candidate.user_id is not None:
            self._logger.info(f"Candidate {candidate.id} already provisioned as user {candidate.user_id}")
            return ProvisionResult(user=candidate.user, temp_password=None, created=False)
        if candidate.stage != CandidateStage.candidate:
            raise StateError(f"Cannot provision a candidate at stage {candidate.stage.value}")

        email = candidate.email.strip().lower()
        if self.directory.find_by_email(email) is not None:
            raise ConflictError("An account with this email already exists")

        request = candidate.recruitment_request
        manager_id = request.requested_by if request is not None else None
        start_date = candidate.offer_start_date or candidate.proposed_start_date
        temp_password = generate_temp_password(settings.onboarding.temp_password_length)

        user = self._insert_account(
            email=email,
            full_name=candidate.full_name,
            hashed_password=get_password_hash(temp_password),
            role=candidate.proposed_role or UserRole.EMPLOYEE,
            tier=candidate.proposed_tier,
            manager_id=manager_id,
            start_date=start_date,
            employment_status=EmploymentStatus.PRE_START,
            is_active=True,
        )

        candidate.user_id = user.id
        candidate.user = user
        advance_stage(candidate, CandidateStage.pre_colleague)

        for task in DEFAULT_TASKS:
            candidate.onboarding_tasks.append(OnboardingTask(
                tenant_id=self.tenant_id,
                due_date=start_date if task["required_before_start"] else None,
                **task,
            ))
        for order, (slot, activity, location, meeting_with) in enumerate(DEFAULT_DAY_ONE):
            candidate.day_one_items.append(DayOneItem(
                tenant_id=self.tenant_id,
                time_slot=slot,
                activity=activity,
                location=location,
                meeting_with=meeting_with,
                sort_order=order,
            ))
        if request is not None:
            request.status = RecruitmentRequestStatus.filled
        self.db.flush()

        self.audit.log_create(
            actor, "user", user.id,
            f"Employee account {user.employee_number} provisioned for candidate {candidate.full_name}",
            {"candidate_id": candidate.id, "employee_number": user.employee_number, "manager_id": manager_id},
        )
        self.publish(EmployeeProvisioned(
            tenant_id=self.tenant_id,
            candidate_id=candidate.id,
            user_id=user.id,
            full_name=candidate.full_name,
            manager_id=manager_id,
        ))
        self._logger.info(
            f"Provisioned user {user.id} ({user.employee_number}) for candidate {candidate.id}",
            extra={"tenant_id": self.tenant_id}
        )
        return ProvisionResult(user=user, temp_password=temp_password, created=True)

    def check_upcoming_start_dates(self, now: Optional[datetime] = None) -> List[Notification]:
        """
        Remind onboarding staff of imminent start dates. Idempotent per
        candidate, recipient and day.
        """
        now = now or datetime.now(timezone.utc)
        today = now.date()
        alert_days = settings.onboarding.start_reminder_days
        notifications = NotificationService(self.db, self.tenant_id)

        candidates = self.db.query(Candidate).filter(
            Candidate.tenant_id == self.tenant_id,
            Candidate.stage.in_([CandidateStage.candidate, CandidateStage.pre_colleague]),
            Candidate.proposed_start_date.isnot(None),
            Candidate.proposed_start_date >= today,
        ).all()

        created = []
        staff = None
        for candidate in candidates:
            days_until = (candidate.proposed_start_date - today).days
            if days_until not in alert_days:
                continue
            if staff is None:
                staff = self.directory.onboarding_staff()
            message = self._reminder_message(candidate.full_name, candidate.proposed_start_date, days_until)
            for user in staff:
                if notifications.exists_on_day(user.id, "onboarding_reminder", today, related_id=candidate.id):
                    continue
                created.append(notifications.create(
                    user.id, "onboarding_reminder", "Upcoming Start Date", message,
                    related_id=candidate.id, related_type="candidate", created_at=now,
                ))
        return [n for n in created if n is not None]

    @staticmethod
    def _reminder_message(name: str, start_date: date, days_until: int) -> str:
        if days_until == 0:
            return f"TODAY: {name} is starting today!"
        if days_until == 1:
            return f"TOMORROW: {name} is starting tomorrow!"
        return f"{name} is starting in {days_until} days ({start_date.strftime('%A %d %b')})"

"""
Records feeding the promotion gates: references and background checks
(Gate A), onboarding tasks, policy acknowledgments and the day-one plan
(Gate B), plus the pre-colleague's own self-service view of them.
"""
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError

from headoffice.core.exceptions import ConflictError, NotFoundError, ValidationError
from headoffice.core.permissions import Action, authorize
from headoffice.models.background_check import (
    BackgroundCheck, CandidateReference, CheckStatus, CheckType, ReferenceStatus
)
from headoffice.models.candidate import Candidate
from headoffice.models.onboarding_task import DayOneItem, OnboardingTask, OnboardingTaskStatus
from headoffice.models.policy import Policy, PolicyAcknowledgment, PolicyStatus
from headoffice.models.user import User
from headoffice.services.audit import AuditService
from headoffice.services.base import BaseService, parse_enum

REFERENCE_FIELDS = ("status", "reference_notes", "received_date")
CHECK_FIELDS = ("status", "submitted_date", "completed_date", "certificate_number", "expiry_date", "notes")


class CandidateRecordsService(BaseService):

    def __init__(self, db, tenant_id: int, dispatcher=None, events=None):
        super().__init__(db, tenant_id, dispatcher, events)
        self.audit = AuditService(db, tenant_id, events=self.events)

    def _get(self, model, record_id: int, label: str):
        record = self.db.query(model).filter(model.id == record_id, model.tenant_id == self.tenant_id).first()
        if record is None:
            raise NotFoundError(f"{label} not found")
        return record

    def _candidate_for_user(self, user: User) -> Candidate:
        candidate = self.db.query(Candidate).filter(
            Candidate.tenant_id == self.tenant_id,
            Candidate.user_id == user.id
        ).first()
        if candidate is None:
            raise NotFoundError("No onboarding record found")
        return candidate

    # --- References ---

    def add_reference(self, candidate_id: int, actor: User, data: Dict[str, Any]) -> CandidateReference:
        authorize(actor, Action.ONBOARDING_MANAGE, message="You do not have permission to add references")
        if not (data.get("reference_name") or "").strip():
            raise ValidationError("Reference name is required")
        candidate = self._get(Candidate, candidate_id, "Candidate")

        with self.transaction("add reference"):
            reference = CandidateReference(
                tenant_id=self.tenant_id,
                reference_name=data["reference_name"].strip(),
                reference_company=data.get("reference_company"),
                reference_email=data.get("reference_email"),
                relationship_to_candidate=data.get("relationship_to_candidate"),
            )
            candidate.references.append(reference)
            self.db.flush()
            self.audit.log_create(
                actor, "candidate_reference", reference.id,
                f"Reference {reference.reference_name} added for {candidate.full_name}",
                {"candidate_id": candidate.id},
            )
        return reference

    def update_reference(self, reference_id: int, actor: User, changes: Dict[str, Any]) -> CandidateReference:
        authorize(actor, Action.ONBOARDING_MANAGE, message="You do not have permission to update references")
        reference = self._get(CandidateReference, reference_id, "Reference")
        changes = {k: v for k, v in changes.items() if k in REFERENCE_FIELDS and v is not None}
        if "status" in changes:
            changes["status"] = parse_enum(ReferenceStatus, changes["status"], "Invalid reference status")

        with self.transaction("update reference"):
            before = {f: getattr(reference, f) for f in changes}
            for field, value in changes.items():
                setattr(reference, field, value)
            if reference.status in (ReferenceStatus.received, ReferenceStatus.verified) and not reference.received_date:
                reference.received_date = date.today()
            self.audit.log_update(
                actor, "candidate_reference", reference.id, "Reference updated", changes, before_state=before
            )
        return reference

    # --- Background checks ---

    def add_background_check(self, candidate_id: int, actor: User, data: Dict[str, Any]) -> BackgroundCheck:
        authorize(actor, Action.ONBOARDING_MANAGE, message="You do not have permission to add background checks")
        if not data.get("check_type"):
            raise ValidationError("Check type is required")
        check_type = parse_enum(CheckType, data["check_type"], "Invalid check type")
        candidate = self._get(Candidate, candidate_id, "Candidate")

        with self.transaction("add background check"):
            check = BackgroundCheck(
                tenant_id=self.tenant_id,
                check_type=check_type,
                check_type_other=data.get("check_type_other"),
                required=data.get("required") is not False,
            )
            candidate.background_checks.append(check)
            self.db.flush()
            self.audit.log_create(
                actor, "background_check", check.id,
                f"{check.label} check added for {candidate.full_name}",
                {"candidate_id": candidate.id, "check_type": check_type, "required": check.required},
            )
        return check

    def update_background_check(self, check_id: int, actor: User, changes: Dict[str, Any]) -> BackgroundCheck:
        authorize(actor, Action.ONBOARDING_MANAGE, message="You do not have permission to update background checks")
        check = self._get(BackgroundCheck, check_id, "Background check")
        changes = {k: v for k, v in changes.items() if k in CHECK_FIELDS and v is not None}
        if "status" in changes:
            changes["status"] = parse_enum(CheckStatus, changes["status"], "Invalid check status")

        with self.transaction("update background check"):
            before = {f: getattr(check, f) for f in changes}
            for field, value in changes.items():
                setattr(check, field, value)
            if check.status == CheckStatus.cleared and not check.completed_date:
                check.completed_date = date.today()
            self.audit.log_update(
                actor, "background_check", check.id, f"{check.label} check updated", changes, before_state=before
            )
        return check

    # --- Day one plan ---

    def add_day_one_item(self, candidate_id: int, actor: User, data: Dict[str, Any]) -> DayOneItem:
        authorize(actor, Action.ONBOARDING_MANAGE, message="You do not have permission to add day one items")
        if not (data.get("activity") or "").strip():
            raise ValidationError("Activity is required")
        candidate = self._get(Candidate, candidate_id, "Candidate")

        with self.transaction("add day one item"):
            sort_order = data.get("sort_order")
            if sort_order is None:
                sort_order = max((i.sort_order or 0 for i in candidate.day_one_items), default=-1) + 1
            item = DayOneItem(
                tenant_id=self.tenant_id,
                time_slot=data.get("time_slot"),
                activity=data["activity"].strip(),
                location=data.get("location"),
                meeting_with=data.get("meeting_with"),
                notes=data.get("notes"),
                sort_order=sort_order,
            )
            candidate.day_one_items.append(item)
            self.db.flush()
        return item

    # --- Pre-colleague self service ---

    def my_onboarding(self, viewer: User, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or date.today()
        candidate = self._candidate_for_user(viewer)

        tasks = sorted(
            candidate.onboarding_tasks,
            key=lambda t: (not t.required_before_start, t.due_date or date.max, t.id)
        )
        policies = self.db.query(Policy).filter(
            Policy.tenant_id == self.tenant_id,
            Policy.status == PolicyStatus.published,
            Policy.requires_acknowledgment.is_(True),
        ).order_by(Policy.title).all()
        acks = {
            a.policy_id: a for a in self.db.query(PolicyAcknowledgment).filter(
                PolicyAcknowledgment.tenant_id == self.tenant_id,
                PolicyAcknowledgment.candidate_id == candidate.id,
            )
        }

        required = [t for t in tasks if t.required_before_start]
        tasks_completed = sum(1 for t in required if t.status == OnboardingTaskStatus.completed)
        policies_acknowledged = sum(1 for p in policies if p.id in acks)
        total = len(required) + len(policies)
        done = tasks_completed + policies_acknowledged
        start_date = candidate.proposed_start_date

        return {
            "stage": candidate.stage,
            "start_date": start_date,
            "days_until_start": (start_date - today).days if start_date else None,
            "tasks": tasks,
            "policies": [
                {
                    "id": p.id,
                    "title": p.title,
                    "version": p.version,
                    "summary": p.summary,
                    "acknowledged": p.id in acks,
                    "acknowledged_at": acks[p.id].acknowledged_at if p.id in acks else None,
                }
                for p in policies
            ],
            "day_one_plan": list(candidate.day_one_items),
            "progress": {
                "tasks_completed": tasks_completed,
                "tasks_total": len(required),
                "policies_acknowledged": policies_acknowledged,
                "policies_total": len(policies),
                "percentage": round(done / total * 100) if total else 100,
            },
        }

    def complete_task(self, task_id: int, actor: User) -> OnboardingTask:
        task = self._get(OnboardingTask, task_id, "Task")
        authorize(actor, Action.ONBOARDING_SELF_SERVICE, task, "You can only complete your own tasks")
        if task.status == OnboardingTaskStatus.completed:
            return task

        with self.transaction("complete task"):
            task.status = OnboardingTaskStatus.completed
            task.completed_at = datetime.now(timezone.utc)
        self._logger.info(f"Onboarding task {task.id} completed by user {actor.id}")
        return task

    def acknowledge_policy(self, policy_id: int, actor: User, ip_address: Optional[str] = None) -> PolicyAcknowledgment:
        policy = self._get(Policy, policy_id, "Policy")
        if policy.status != PolicyStatus.published:
            raise ValidationError("Only published policies can be acknowledged")
        candidate = self._candidate_for_user(actor)

        existing = self.db.query(PolicyAcknowledgment.id).filter(
            PolicyAcknowledgment.policy_id == policy.id,
            PolicyAcknowledgment.candidate_id == candidate.id,
        ).first()
        if existing is not None:
            raise ConflictError("Policy already acknowledged")

        with self.transaction("acknowledge policy"):
            ack = PolicyAcknowledgment(
                tenant_id=self.tenant_id,
                candidate_id=candidate.id,
                user_id=actor.id,
                policy_id=policy.id,
                ip_address=ip_address,
            )
            try:
                with self.db.begin_nested():
                    self.db.add(ack)
            except IntegrityError:
                raise ConflictError("Policy already acknowledged")
            self.audit.log_create(
                actor, "policy_acknowledgment", ack.id,
                f"Policy '{policy.title}' v{policy.version} acknowledged",
                {"policy_id": policy.id, "candidate_id": candidate.id},
            )
        return ack

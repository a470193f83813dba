"""
Promotion gates for the employment lifecycle.

Gate A (candidate -> pre_colleague) and Gate B (pre_colleague -> active)
are evaluated fresh on every call. Evaluation is side-effect free; only
`promote` and `confirm_arrival` change state.
"""
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, Optional

from headoffice.core.exceptions import AuthenticationError, ConflictError, StateError, ValidationError
from headoffice.core.permissions import Action, authorize
from headoffice.core.security import verify_password
from headoffice.models.background_check import CheckStatus, ReferenceStatus
from headoffice.models.candidate import Candidate, CandidateStage
from headoffice.models.onboarding_task import OnboardingTaskStatus
from headoffice.models.policy import Policy, PolicyAcknowledgment, PolicyStatus
from headoffice.models.user import EmploymentStatus, User
from headoffice.services.audit import AuditService
from headoffice.services.base import BaseService
from headoffice.services.events import CandidateActivated
from headoffice.services.onboarding_service import OnboardingProvisioner, advance_stage
from headoffice.services.probation import ProbationService
from headoffice.services.recruitment import RecruitmentService

REQUIRED_REFERENCES = 2

NEXT_STAGE = {
    CandidateStage.candidate: CandidateStage.pre_colleague,
    CandidateStage.pre_colleague: CandidateStage.active,
}


def _gate_a(candidate: Candidate, status: Dict[str, Any]) -> None:
    verified = sum(1 for r in candidate.references if r.status == ReferenceStatus.verified)
    status["requirements"].append({
        "name": f"Verified references (minimum {REQUIRED_REFERENCES})",
        "required": REQUIRED_REFERENCES,
        "current": verified,
    })
    if verified >= REQUIRED_REFERENCES:
        status["completed"].append(f"{REQUIRED_REFERENCES}+ references verified")
    else:
        status["missing"].append(f"Need {REQUIRED_REFERENCES - verified} more verified reference(s)")

    checks = [c for c in candidate.background_checks if c.required]
    status["requirements"].append({
        "name": "All required background checks cleared",
        "checks": [{"type": c.check_type, "status": c.status} for c in checks],
    })
    # No configured checks is a failure, not a pass
    if not checks:
        status["missing"].append("No background checks configured")
    elif all(c.status == CheckStatus.cleared for c in checks):
        status["completed"].append("All required background checks cleared")
    else:
        for c in checks:
            if c.status != CheckStatus.cleared:
                status["missing"].append(f"{c.label} not cleared ({c.status.value})")

    fields = {
        "role": candidate.proposed_role is not None,
        "salary": bool(candidate.proposed_salary),
        "hours": bool(candidate.proposed_hours),
        "start date": candidate.proposed_start_date is not None,
    }
    status["requirements"].append({"name": "Contract details complete", "fields": fields})
    absent = [name for name, present in fields.items() if not present]
    if absent:
        status["missing"].append(f"Missing contract details: {', '.join(absent)}")
    else:
        status["completed"].append("Contract details complete")

    status["requirements"].append({
        "name": "Contract signed",
        "signed": candidate.contract_signed,
        "signed_date": candidate.contract_signed_date,
    })
    if candidate.contract_signed:
        status["completed"].append("Contract signed")
    else:
        status["missing"].append("Contract not signed")


def _gate_b(
    candidate: Candidate,
    status: Dict[str, Any],
    today: date,
    required_policies: Iterable[Policy],
    acknowledged_policy_ids: Iterable[int]
) -> None:
    tasks = [t for t in candidate.onboarding_tasks if t.required_before_start]
    status["requirements"].append({
        "name": "All required onboarding tasks completed",
        "tasks": [{"name": t.task_name, "status": t.status} for t in tasks],
    })
    # Unlike background checks, having no required tasks passes
    if not tasks:
        status["completed"].append("No required tasks configured")
    elif all(t.status == OnboardingTaskStatus.completed for t in tasks):
        status["completed"].append("All required tasks completed")
    else:
        for t in tasks:
            if t.status != OnboardingTaskStatus.completed:
                status["missing"].append(f"Task incomplete: {t.task_name}")

    acknowledged = set(acknowledged_policy_ids)
    policies = list(required_policies)
    status["requirements"].append({
        "name": "All policies acknowledged",
        "policies": [{"name": p.title, "acknowledged": p.id in acknowledged} for p in policies],
    })
    pending = [p for p in policies if p.id not in acknowledged]
    if pending:
        for p in pending:
            status["missing"].append(f"Policy not acknowledged: {p.title}")
    else:
        status["completed"].append("All policies acknowledged")

    status["requirements"].append({
        "name": "Arrival confirmed",
        "confirmed": candidate.arrival_confirmed,
        "confirmed_at": candidate.arrival_confirmed_at,
        "start_date": candidate.proposed_start_date,
    })
    if candidate.arrival_confirmed:
        status["completed"].append("Arrival confirmed")
    else:
        status["missing"].append("Arrival not confirmed - confirm when employee arrives for first day")

    checks = [c for c in candidate.background_checks if c.required]
    status["requirements"].append({
        "name": "Background checks still valid",
        "checks": [
            {
                "type": c.check_type,
                "status": c.status,
                "expired": c.expiry_date is not None and c.expiry_date < today,
            }
            for c in checks
        ],
    })
    problems = []
    for c in checks:
        if c.status != CheckStatus.cleared:
            problems.append(f"{c.label} not cleared")
        elif c.expiry_date is not None and c.expiry_date < today:
            problems.append(f"{c.label} expired")
    if problems:
        status["missing"].extend(problems)
    else:
        status["completed"].append("Background checks valid")


def calculate_promotion_status(
    candidate: Candidate,
    today: date,
    required_policies: Iterable[Policy] = (),
    acknowledged_policy_ids: Iterable[int] = ()
) -> Dict[str, Any]:
    """What the candidate has and still needs for the next employment stage."""
    next_stage = NEXT_STAGE.get(candidate.stage)
    status = {
        "current_stage": candidate.stage,
        "next_stage": next_stage,
        "can_promote": False,
        "requirements": [],
        "completed": [],
        "missing": [],
    }
    if candidate.stage == CandidateStage.candidate:
        _gate_a(candidate, status)
    elif candidate.stage == CandidateStage.pre_colleague:
        _gate_b(candidate, status, today, required_policies, acknowledged_policy_ids)
    else:
        return status
    status["can_promote"] = not status["missing"]
    return status


class PromotionGate(BaseService):

    def __init__(self, db, tenant_id: int, dispatcher=None, events=None):
        super().__init__(db, tenant_id, dispatcher, events)
        self.candidates = RecruitmentService(db, tenant_id, events=self.events)
        self.provisioner = OnboardingProvisioner(db, tenant_id, events=self.events)
        self.probation = ProbationService(db, tenant_id, events=self.events)
        self.audit = AuditService(db, tenant_id, events=self.events)

    def required_policies(self):
        return self.db.query(Policy).filter(
            Policy.tenant_id == self.tenant_id,
            Policy.status == PolicyStatus.published,
            Policy.requires_acknowledgment.is_(True),
        ).order_by(Policy.id).all()

    def evaluate(self, candidate: Candidate, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or date.today()
        if candidate.stage != CandidateStage.pre_colleague:
            return calculate_promotion_status(candidate, today)
        acknowledged = self.db.query(PolicyAcknowledgment.policy_id).filter(
            PolicyAcknowledgment.tenant_id == self.tenant_id,
            PolicyAcknowledgment.candidate_id == candidate.id,
        ).all()
        return calculate_promotion_status(
            candidate, today, self.required_policies(), [row.policy_id for row in acknowledged]
        )

    def get_promotion_status(self, candidate_id: int, viewer: User, today: Optional[date] = None) -> Dict[str, Any]:
        authorize(viewer, Action.CANDIDATE_PROMOTE, message="Only administrators can view promotion status")
        return self.evaluate(self.candidates.get_candidate_record(candidate_id), today)

    def promote(self, candidate_id: int, actor: User, today: Optional[date] = None) -> Dict[str, Any]:
        authorize(actor, Action.CANDIDATE_PROMOTE, message="Only administrators can promote candidates")
        candidate = self.candidates.get_candidate_record(candidate_id)
        if candidate.stage == CandidateStage.active:
            raise StateError("Candidate is already active")

        today = today or date.today()
        status = self.evaluate(candidate, today)
        if not status["can_promote"]:
            raise StateError("Cannot promote - requirements not met", details={"missing": status["missing"]})

        if candidate.stage == CandidateStage.candidate:
            with self.transaction("promote candidate"):
                provisioned = self.provisioner.provision(candidate, actor)
            return {
                "message": "Candidate promoted to Pre-Colleague",
                "new_stage": CandidateStage.pre_colleague,
                "user_id": provisioned.user.id,
                "employee_number": provisioned.user.employee_number,
                "temp_password": provisioned.temp_password,
            }

        with self.transaction("activate employee"):
            self.activate(candidate, actor, today)
        return {
            "message": "Pre-Colleague promoted to Active Employee",
            "new_stage": CandidateStage.active,
        }

    def confirm_arrival(
        self,
        candidate_id: int,
        actor: User,
        password: Optional[str],
        today: Optional[date] = None
    ) -> Dict[str, Any]:
        """
        Record that a pre-colleague has physically arrived, re-authenticating
        the confirming user, and activate them.
        """
        authorize(actor, Action.ARRIVAL_CONFIRM, message="Only Admin or HR can confirm arrival")
        if not password:
            raise ValidationError("Password confirmation required")
        if not verify_password(password, actor.hashed_password):
            self.log_warning(f"Arrival confirmation with wrong password by user {actor.id}", user_id=actor.id)
            raise AuthenticationError("Incorrect password")

        candidate = self.candidates.get_candidate_record(candidate_id)
        if candidate.stage != CandidateStage.pre_colleague:
            raise StateError("Can only confirm arrival for pre-colleagues")
        if candidate.arrival_confirmed:
            raise ConflictError("Arrival already confirmed")

        today = today or date.today()
        confirmed_at = datetime.now(timezone.utc)
        with self.transaction("confirm arrival"):
            candidate.arrival_confirmed = True
            candidate.arrival_confirmed_at = confirmed_at
            candidate.arrival_confirmed_by = actor.id
            # Arrival activates regardless; Gate B items still open are reported for follow-up
            outstanding = self.evaluate(candidate, today)["missing"]
            self.audit.log_update(
                actor, "candidate", candidate.id, f"Arrival confirmed for {candidate.full_name}",
                {"arrival_confirmed": True, "outstanding": outstanding},
                before_state={"arrival_confirmed": False},
            )
            self.activate(candidate, actor, today)

        if outstanding:
            self.log_warning(
                f"Candidate {candidate.id} activated on arrival with {len(outstanding)} open item(s)",
                candidate_id=candidate.id,
            )
        return {
            "message": f"{candidate.full_name} has arrived and is now active!",
            "confirmed_at": confirmed_at,
            "activated": True,
            "outstanding": outstanding,
        }

    def activate(self, candidate: Candidate, actor: User, today: date) -> None:
        """Gate B side effects. Runs inside the caller's transaction."""
        user = candidate.user
        if user is None:
            raise StateError("Candidate has no employee account")
        advance_stage(candidate, CandidateStage.active)
        candidate.actual_start_date = today
        user.employment_status = EmploymentStatus.ACTIVE

        if self.probation.active_for(user.id) is None:
            self.probation.create_probation(user.id, candidate.proposed_start_date or today, actor.id)

        self.audit.log_update(
            actor, "candidate", candidate.id, f"{candidate.full_name} promoted to active employee",
            {"stage": CandidateStage.active, "actual_start_date": today},
            before_state={"stage": CandidateStage.pre_colleague},
        )
        self.publish(CandidateActivated(
            tenant_id=self.tenant_id,
            candidate_id=candidate.id,
            user_id=user.id,
            full_name=candidate.full_name,
        ))
        self._logger.info(f"Candidate {candidate.id} activated as employee {user.id}")

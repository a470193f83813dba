"""
Recruitment pipeline.

`recruitment_stage` moves through a fixed transition table. Admins may
force any move (recorded as forced in the history); guards apply to
everyone. Reaching offer_accepted provisions the employee account in the
same transaction.
"""
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from headoffice.core.exceptions import ConflictError, NotFoundError, StateError, ValidationError
from headoffice.core.permissions import Action, authorize, can
from headoffice.models.background_check import BackgroundCheck, CheckType
from headoffice.models.candidate import Candidate, CandidateStageHistory, RecruitmentStage
from headoffice.models.interview import CandidateInterview, CandidateNote, InterviewStatus, InterviewType, NoteType
from headoffice.models.recruitment_request import RecruitmentRequest
from headoffice.models.user import User, UserRole
from headoffice.services.audit import AuditService
from headoffice.services.base import BaseService, parse_enum
from headoffice.services.directory import Directory
from headoffice.services.events import InterviewScheduled
from headoffice.services.onboarding_service import OnboardingProvisioner, ProvisionResult

S = RecruitmentStage

STAGE_TRANSITIONS: Dict[RecruitmentStage, tuple] = {
    S.application: (S.shortlisted, S.rejected, S.withdrawn),
    S.shortlisted: (S.interview_requested, S.rejected, S.withdrawn),
    S.interview_requested: (S.interview_scheduled, S.rejected, S.withdrawn),
    S.interview_scheduled: (S.interview_complete, S.further_assessment, S.final_shortlist, S.rejected, S.withdrawn),
    S.interview_complete: (S.further_assessment, S.final_shortlist, S.rejected, S.withdrawn),
    S.further_assessment: (S.interview_scheduled, S.final_shortlist, S.rejected, S.withdrawn),
    S.final_shortlist: (S.offer_made, S.rejected, S.withdrawn),
    S.offer_made: (S.offer_accepted, S.offer_declined, S.withdrawn),
    S.offer_accepted: (),
    S.offer_declined: (S.application, S.shortlisted),
    S.rejected: (S.application, S.shortlisted),
    S.withdrawn: (S.application, S.shortlisted),
}

# Interview scheduling nudges the candidate one step along
INTERVIEW_AUTO_ADVANCE = {
    S.shortlisted: S.interview_requested,
    S.interview_requested: S.interview_scheduled,
}

REASON_FIELDS = {
    S.rejected: "rejection_reason",
    S.withdrawn: "withdrawn_reason",
}

DEFAULT_REQUIRED_CHECKS = (CheckType.right_to_work, CheckType.dbs_basic)

CANDIDATE_FIELDS = (
    "full_name", "phone", "skills_experience", "proposed_role", "proposed_tier",
    "proposed_salary", "proposed_hours", "proposed_start_date",
)


def allowed_transitions(stage: RecruitmentStage) -> List[str]:
    return [s.value for s in STAGE_TRANSITIONS.get(stage, ())]


class RecruitmentService(BaseService):

    def __init__(self, db, tenant_id: int, dispatcher=None, events=None):
        super().__init__(db, tenant_id, dispatcher, events)
        self.directory = Directory(db, tenant_id)
        self.audit = AuditService(db, tenant_id, events=self.events)
        self.provisioner = OnboardingProvisioner(db, tenant_id, events=self.events)

    def get_candidate_record(self, candidate_id: int) -> Candidate:
        candidate = self.db.query(Candidate).filter(
            Candidate.id == candidate_id,
            Candidate.tenant_id == self.tenant_id
        ).first()
        if candidate is None:
            raise NotFoundError("Candidate not found")
        return candidate

    # --- Transitions ---

    def _check_guards(
        self,
        candidate: Candidate,
        from_stage: RecruitmentStage,
        to_stage: RecruitmentStage,
        reason: Optional[str]
    ) -> None:
        if from_stage == S.application and to_stage == S.shortlisted:
            if not any(n.note_type == NoteType.screening for n in candidate.notes):
                raise StateError("Screening note required before shortlisting")

        if from_stage == S.interview_scheduled and to_stage == S.interview_complete:
            scored = [
                i for i in candidate.interviews
                if i.status == InterviewStatus.completed and i.score is not None
            ]
            if not scored:
                raise StateError("At least one interview must be completed and scored")

        if from_stage == S.final_shortlist and to_stage == S.offer_made:
            if not candidate.offer_salary or not candidate.offer_start_date:
                raise StateError("Offer details (salary and start date) must be set first")

        if to_stage in REASON_FIELDS and not (reason or "").strip():
            raise ValidationError("Reason required for rejection or withdrawal")

    def _record_transition(
        self,
        candidate: Candidate,
        to_stage: RecruitmentStage,
        actor: User,
        reason: Optional[str] = None,
        forced: bool = False,
        note: bool = False
    ) -> RecruitmentStage:
        from_stage = candidate.recruitment_stage
        candidate.recruitment_stage = to_stage
        candidate.recruitment_stage_updated_at = datetime.now(timezone.utc)
        candidate.stage_history.append(CandidateStageHistory(
            tenant_id=self.tenant_id,
            from_stage=from_stage,
            to_stage=to_stage,
            changed_by=actor.id,
            reason=reason,
            forced=forced,
        ))
        if note and reason:
            candidate.notes.append(CandidateNote(
                tenant_id=self.tenant_id,
                user_id=actor.id,
                note_type=NoteType.stage_change,
                content=reason,
                from_stage=from_stage,
                to_stage=to_stage,
            ))
        return from_stage

    def _audit_stage_change(
        self,
        candidate: Candidate,
        actor: User,
        from_stage: RecruitmentStage,
        reason: Optional[str] = None,
        forced: bool = False
    ) -> None:
        to_stage = candidate.recruitment_stage
        self.audit.log_update(
            actor, "candidate", candidate.id,
            f"Candidate moved from {from_stage.value} to {to_stage.value}" + (" (forced)" if forced else ""),
            {"recruitment_stage": to_stage, "reason": reason, "forced": forced},
            before_state={"recruitment_stage": from_stage},
        )

    def update_stage(
        self,
        candidate_id: int,
        actor: User,
        new_stage: Any,
        reason: Optional[str] = None
    ) -> Dict[str, Any]:
        authorize(actor, Action.RECRUITMENT_MANAGE, message="You do not have permission to update candidate stages")
        candidate = self.get_candidate_record(candidate_id)
        to_stage = parse_enum(RecruitmentStage, new_stage, "Invalid stage")
        from_stage = candidate.recruitment_stage

        allowed = STAGE_TRANSITIONS.get(from_stage, ())
        forced = to_stage not in allowed
        if forced and not can(actor, Action.RECRUITMENT_FORCE):
            raise StateError(
                f"Cannot transition from {from_stage.value} to {to_stage.value}",
                details={"allowed_transitions": allowed_transitions(from_stage)}
            )
        self._check_guards(candidate, from_stage, to_stage, reason)

        provisioned: Optional[ProvisionResult] = None
        with self.transaction("update candidate stage"):
            self._record_transition(candidate, to_stage, actor, reason, forced=forced, note=True)
            if to_stage in REASON_FIELDS:
                setattr(candidate, REASON_FIELDS[to_stage], reason)
            if to_stage == S.offer_accepted:
                provisioned = self.provisioner.provision(candidate, actor)
            self._audit_stage_change(candidate, actor, from_stage, reason, forced)

        if forced:
            self.log_warning(
                f"Forced transition of candidate {candidate.id} from {from_stage.value} to {to_stage.value}",
                candidate_id=candidate.id, user_id=actor.id
            )
        result = {
            "message": f"Candidate moved to {to_stage.value}",
            "previous_stage": from_stage,
            "new_stage": to_stage,
            "forced": forced,
        }
        if provisioned is not None:
            result.update(self._provision_payload(provisioned))
        return result

    @staticmethod
    def _provision_payload(provisioned: ProvisionResult) -> Dict[str, Any]:
        return {
            "user_id": provisioned.user.id,
            "employee_number": provisioned.user.employee_number,
            "temp_password": provisioned.temp_password,
        }

    def get_stage_history(self, candidate_id: int, viewer: User) -> List[Dict[str, Any]]:
        authorize(viewer, Action.RECRUITMENT_VIEW)
        candidate = self.get_candidate_record(candidate_id)
        names = {}
        history = []
        for entry in reversed(candidate.stage_history):
            if entry.changed_by not in names:
                user = self.directory.find_user(entry.changed_by)
                names[entry.changed_by] = user.full_name if user else None
            history.append({
                "id": entry.id,
                "from_stage": entry.from_stage,
                "to_stage": entry.to_stage,
                "changed_by": entry.changed_by,
                "changed_by_name": names[entry.changed_by],
                "reason": entry.reason,
                "forced": entry.forced,
                "created_at": entry.created_at,
            })
        return history

    # --- Candidates ---

    def create_candidate(self, actor: User, data: Dict[str, Any]) -> Candidate:
        authorize(actor, Action.CANDIDATE_CREATE, message="You do not have permission to add candidates")
        full_name = (data.get("full_name") or "").strip()
        email = (data.get("email") or "").strip().lower()
        if not full_name or not email:
            raise ValidationError("Full name and email are required")

        exists = self.db.query(Candidate.id).filter(
            Candidate.tenant_id == self.tenant_id,
            Candidate.email == email
        ).first()
        if exists is not None:
            raise ConflictError("A candidate with this email already exists")

        request_id = data.get("recruitment_request_id")
        if request_id is not None:
            request = self.db.query(RecruitmentRequest).filter(
                RecruitmentRequest.id == request_id,
                RecruitmentRequest.tenant_id == self.tenant_id
            ).first()
            if request is None:
                raise NotFoundError("Recruitment request not found")

        fields = {f: data[f] for f in CANDIDATE_FIELDS[1:] if data.get(f) is not None}
        if "proposed_role" in fields:
            fields["proposed_role"] = parse_enum(UserRole, fields["proposed_role"], "Invalid role")

        with self.transaction("create candidate"):
            candidate = Candidate(
                tenant_id=self.tenant_id,
                full_name=full_name,
                email=email,
                recruitment_request_id=request_id,
                created_by=actor.id,
                recruitment_stage_updated_at=datetime.now(timezone.utc),
                **fields,
            )
            for check_type in DEFAULT_REQUIRED_CHECKS:
                candidate.background_checks.append(BackgroundCheck(
                    tenant_id=self.tenant_id,
                    check_type=check_type,
                    required=True,
                ))
            self.db.add(candidate)
            self.db.flush()
            self.audit.log_create(
                actor, "candidate", candidate.id,
                f"Candidate {full_name} added",
                {"email": email, "recruitment_request_id": request_id},
            )
        self._logger.info(f"Candidate {candidate.id} created by user {actor.id}")
        return candidate

    def update_candidate(self, candidate_id: int, actor: User, changes: Dict[str, Any]) -> Candidate:
        authorize(actor, Action.ONBOARDING_MANAGE, message="You do not have permission to update candidates")
        candidate = self.get_candidate_record(candidate_id)
        changes = {k: v for k, v in changes.items() if k in CANDIDATE_FIELDS + ("contract_signed",)}
        if "proposed_role" in changes and changes["proposed_role"] is not None:
            changes["proposed_role"] = parse_enum(UserRole, changes["proposed_role"], "Invalid role")
        if "full_name" in changes and not (changes["full_name"] or "").strip():
            raise ValidationError("Full name cannot be empty")

        with self.transaction("update candidate"):
            before = {f: getattr(candidate, f) for f in changes}
            for field, value in changes.items():
                setattr(candidate, field, value)
            if "contract_signed" in changes:
                if changes["contract_signed"]:
                    candidate.contract_signed_date = candidate.contract_signed_date or date.today()
                else:
                    candidate.contract_signed_date = None
            self.audit.log_update(
                actor, "candidate", candidate.id, "Candidate details updated", changes, before_state=before
            )
        return candidate

    def get_candidate(self, candidate_id: int, viewer: User) -> Candidate:
        authorize(viewer, Action.RECRUITMENT_VIEW)
        return self.get_candidate_record(candidate_id)

    # --- Interviews ---

    def schedule_interview(self, candidate_id: int, actor: User, data: Dict[str, Any]) -> CandidateInterview:
        authorize(actor, Action.RECRUITMENT_MANAGE, message="You do not have permission to schedule interviews")
        if not data.get("interview_type") or not data.get("scheduled_date") or not data.get("scheduled_time"):
            raise ValidationError("Interview type, date, and time are required")
        interview_type = parse_enum(InterviewType, data["interview_type"], "Invalid interview type")
        candidate = self.get_candidate_record(candidate_id)
        interviewer_ids = [self.directory.get_user(i, "Interviewer").id for i in data.get("interviewer_ids") or []]

        with self.transaction("schedule interview"):
            interview = CandidateInterview(
                tenant_id=self.tenant_id,
                interview_type=interview_type,
                scheduled_date=data["scheduled_date"],
                scheduled_time=data["scheduled_time"],
                duration_minutes=data.get("duration_minutes") or 60,
                location=data.get("location"),
                interviewer_ids=interviewer_ids,
                scheduled_by=actor.id,
            )
            candidate.interviews.append(interview)
            next_stage = INTERVIEW_AUTO_ADVANCE.get(candidate.recruitment_stage)
            if next_stage is not None:
                from_stage = self._record_transition(candidate, next_stage, actor)
                self._audit_stage_change(candidate, actor, from_stage, "Interview scheduled")
            self.db.flush()
            self.publish(InterviewScheduled(
                tenant_id=self.tenant_id,
                interview_id=interview.id,
                candidate_name=candidate.full_name,
                scheduled_date=interview.scheduled_date,
                scheduled_time=interview.scheduled_time,
                interviewer_ids=tuple(interviewer_ids),
            ))
        return interview

    def list_interviews(self, candidate_id: int, viewer: User) -> List[CandidateInterview]:
        authorize(viewer, Action.RECRUITMENT_VIEW)
        candidate = self.get_candidate_record(candidate_id)
        return sorted(
            candidate.interviews,
            key=lambda i: (i.scheduled_date, i.scheduled_time),
            reverse=True
        )

    def update_interview(self, interview_id: int, actor: User, changes: Dict[str, Any]) -> CandidateInterview:
        authorize(actor, Action.RECRUITMENT_MANAGE, message="You do not have permission to update interviews")
        interview = self.db.query(CandidateInterview).filter(
            CandidateInterview.id == interview_id,
            CandidateInterview.tenant_id == self.tenant_id
        ).first()
        if interview is None:
            raise NotFoundError("Interview not found")

        status = changes.get("status")
        if status is not None:
            status = parse_enum(InterviewStatus, status, "Invalid interview status")
        score = changes.get("score")
        if score is not None and not 1 <= score <= 10:
            raise ValidationError("Score must be between 1 and 10")

        with self.transaction("update interview"):
            if status is not None:
                interview.status = status
                if status == InterviewStatus.completed:
                    interview.completed_at = datetime.now(timezone.utc)
            for field in ("score", "notes", "recommend_next_stage"):
                if field in changes:
                    setattr(interview, field, changes[field])

            candidate = interview.candidate
            if status == InterviewStatus.completed and changes.get("recommend_next_stage") is False:
                candidate.further_assessment_required = True
            if status == InterviewStatus.completed and changes.get("notes"):
                candidate.notes.append(CandidateNote(
                    tenant_id=self.tenant_id,
                    user_id=actor.id,
                    note_type=NoteType.interview_feedback,
                    content=changes["notes"],
                ))
        return interview

    # --- Notes ---

    def add_note(self, candidate_id: int, actor: User, data: Dict[str, Any]) -> CandidateNote:
        authorize(actor, Action.RECRUITMENT_VIEW)
        content = (data.get("content") or "").strip()
        if not content:
            raise ValidationError("Note content is required")
        note_type = parse_enum(NoteType, data.get("note_type") or NoteType.general, "Invalid note type")
        candidate = self.get_candidate_record(candidate_id)

        with self.transaction("add note"):
            note = CandidateNote(
                tenant_id=self.tenant_id,
                user_id=actor.id,
                note_type=note_type,
                content=content,
                is_private=bool(data.get("is_private")),
            )
            candidate.notes.append(note)
            self.db.flush()
        return note

    def list_notes(self, candidate_id: int, viewer: User) -> List[CandidateNote]:
        """Private notes are only visible to their author and admins."""
        authorize(viewer, Action.RECRUITMENT_VIEW)
        candidate = self.get_candidate_record(candidate_id)
        visible = [
            n for n in candidate.notes
            if not n.is_private or can(viewer, Action.NOTE_VIEW_PRIVATE, n)
        ]
        return sorted(visible, key=lambda n: n.id, reverse=True)

    # --- Offers ---

    def make_offer(self, candidate_id: int, actor: User, data: Dict[str, Any]) -> Candidate:
        authorize(actor, Action.OFFER_MANAGE, message="Only HR/Admin can make offers")
        salary = data.get("offer_salary")
        start_date = data.get("offer_start_date")
        if not salary or not start_date:
            raise ValidationError("Salary and start date are required")
        salary = Decimal(str(salary))
        if salary <= 0:
            raise ValidationError("Salary must be positive")

        candidate = self.get_candidate_record(candidate_id)
        if candidate.recruitment_stage not in (S.final_shortlist, S.offer_made):
            raise StateError("Candidate must be at final_shortlist stage to receive an offer")

        with self.transaction("make offer"):
            candidate.offer_salary = salary
            candidate.offer_start_date = start_date
            candidate.offer_expiry_date = data.get("offer_expiry_date")
            candidate.offer_date = date.today()
            reason = f"Offer: £{salary}, Start: {start_date}"
            from_stage = self._record_transition(candidate, S.offer_made, actor, reason)
            self._audit_stage_change(candidate, actor, from_stage, reason)
            candidate.notes.append(CandidateNote(
                tenant_id=self.tenant_id,
                user_id=actor.id,
                note_type=NoteType.offer,
                content=f"Offer made: £{salary} salary, start date {start_date}",
            ))
            self.audit.log_update(
                actor, "candidate", candidate.id, f"Offer made to {candidate.full_name}",
                {"offer_salary": salary, "offer_start_date": start_date},
            )
        return candidate

    def accept_offer(self, candidate_id: int, actor: User) -> Dict[str, Any]:
        authorize(actor, Action.OFFER_MANAGE, message="Only HR/Admin can record offer acceptance")
        candidate = self.get_candidate_record(candidate_id)
        if candidate.recruitment_stage != S.offer_made:
            raise StateError("No offer has been made to this candidate")

        with self.transaction("accept offer"):
            candidate.contract_signed = True
            candidate.contract_signed_date = date.today()
            from_stage = self._record_transition(candidate, S.offer_accepted, actor, "Candidate accepted offer")
            self._audit_stage_change(candidate, actor, from_stage, "Candidate accepted offer")
            provisioned = self.provisioner.provision(candidate, actor)

        self._logger.info(f"Offer accepted by candidate {candidate.id}, onboarding initiated")
        return {"message": "Offer accepted - onboarding initiated", **self._provision_payload(provisioned)}

    def decline_offer(self, candidate_id: int, actor: User, reason: Optional[str]) -> Dict[str, Any]:
        authorize(actor, Action.OFFER_MANAGE, message="Only HR/Admin can record offer decline")
        if not (reason or "").strip():
            raise ValidationError("Decline reason is required")
        candidate = self.get_candidate_record(candidate_id)
        if candidate.recruitment_stage != S.offer_made:
            raise StateError("No offer has been made to this candidate")

        with self.transaction("decline offer"):
            candidate.decline_reason = reason
            from_stage = self._record_transition(candidate, S.offer_declined, actor, reason)
            self._audit_stage_change(candidate, actor, from_stage, reason)
        return {"message": "Offer declined recorded", "reason": reason}

    # --- Pipeline ---

    def get_pipeline(
        self,
        viewer: User,
        recruitment_request_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        authorize(viewer, Action.RECRUITMENT_VIEW, message="You do not have permission to view the pipeline")
        self.provisioner.check_upcoming_start_dates(now)

        query = self.db.query(Candidate).filter(Candidate.tenant_id == self.tenant_id)
        if recruitment_request_id is not None:
            query = query.filter(Candidate.recruitment_request_id == recruitment_request_id)
        candidates = query.order_by(Candidate.recruitment_stage_updated_at.desc(), Candidate.id.desc()).all()

        pipeline = {stage.value: [] for stage in RecruitmentStage}
        for c in candidates:
            pipeline[c.recruitment_stage.value].append({
                "id": c.id,
                "full_name": c.full_name,
                "email": c.email,
                "recruitment_stage": c.recruitment_stage,
                "recruitment_stage_updated_at": c.recruitment_stage_updated_at,
                "recruitment_request_id": c.recruitment_request_id,
                "role_title": c.recruitment_request.role_title if c.recruitment_request else None,
            })
        return {
            "counts": {stage: len(rows) for stage, rows in pipeline.items()},
            "pipeline": pipeline,
            "stages": [stage.value for stage in RecruitmentStage],
        }

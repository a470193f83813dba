import pytest
from datetime import date

from headoffice.core.exceptions import AccessDeniedError, AuthenticationError, ConflictError, StateError, ValidationError
from headoffice.models.audit_log import AuditLog
from headoffice.models.background_check import BackgroundCheck, CheckStatus, CheckType
from headoffice.models.candidate import CandidateStage
from headoffice.models.onboarding_task import OnboardingTask, OnboardingTaskStatus
from headoffice.models.policy import Policy, PolicyAcknowledgment, PolicyStatus
from headoffice.models.probation import ProbationPeriod, ProbationReviewType
from headoffice.models.user import EmploymentStatus, User
from headoffice.services.events import CandidateActivated, EmployeeProvisioned
from headoffice.services.promotion import PromotionGate, calculate_promotion_status

START = date(2026, 11, 2)


@pytest.fixture
def gate(db_session, tenant, dispatcher):
    return PromotionGate(db_session, tenant.id, dispatcher)


@pytest.fixture
def pre_colleague(gate, gate_a_ready, admin_user):
    gate.promote(gate_a_ready.id, admin_user, today=date(2026, 10, 18))
    return gate_a_ready


def _complete_required_tasks(db_session, candidate):
    for task in candidate.onboarding_tasks:
        if task.required_before_start:
            task.status = OnboardingTaskStatus.completed
    db_session.commit()


# --- Gate A ---

def test_gate_a_lists_everything_missing(make_candidate):
    candidate = make_candidate()
    status = calculate_promotion_status(candidate, date(2026, 10, 18))

    assert status["current_stage"] == CandidateStage.candidate
    assert status["next_stage"] == CandidateStage.pre_colleague
    assert status["can_promote"] is False
    assert status["missing"] == [
        "Need 2 more verified reference(s)",
        "No background checks configured",
        "Missing contract details: role, salary, start date",
        "Contract not signed",
    ]


def test_gate_a_passes_when_complete(gate, gate_a_ready):
    status = gate.evaluate(gate_a_ready, date(2026, 10, 18))
    assert status["can_promote"] is True
    assert status["missing"] == []
    assert "Contract signed" in status["completed"]


def test_gate_a_names_uncleared_checks(gate, gate_a_ready, db_session):
    check = next(c for c in gate_a_ready.background_checks if c.check_type == CheckType.dbs_basic)
    check.status = CheckStatus.pending
    db_session.commit()

    status = gate.evaluate(gate_a_ready, date(2026, 10, 18))
    assert status["can_promote"] is False
    assert status["missing"] == ["DBS Basic not cleared (pending)"]


def test_gate_a_ignores_optional_checks(gate, gate_a_ready, db_session, tenant):
    gate_a_ready.background_checks.append(BackgroundCheck(
        tenant_id=tenant.id, check_type=CheckType.qualification_verify, required=False
    ))
    db_session.commit()
    assert gate.evaluate(gate_a_ready, date(2026, 10, 18))["can_promote"] is True


def test_gate_a_only_optional_checks_fails(make_candidate, tenant):
    candidate = make_candidate()
    candidate.background_checks.append(BackgroundCheck(
        tenant_id=tenant.id, check_type=CheckType.other, status=CheckStatus.cleared, required=False
    ))
    status = calculate_promotion_status(candidate, date(2026, 10, 18))
    assert "No background checks configured" in status["missing"]


# --- Promote ---

def test_promote_to_pre_colleague(gate, gate_a_ready, admin_user, dispatcher):
    result = gate.promote(gate_a_ready.id, admin_user, today=date(2026, 10, 18))

    assert result["message"] == "Candidate promoted to Pre-Colleague"
    assert result["new_stage"] == CandidateStage.pre_colleague
    assert result["employee_number"] == "EMP101"
    assert result["temp_password"]
    assert gate_a_ready.stage == CandidateStage.pre_colleague
    assert gate_a_ready.user.employment_status == EmploymentStatus.PRE_START
    assert len(dispatcher.of_type(EmployeeProvisioned)) == 1


def test_promote_requires_admin(gate, gate_a_ready, hr_user):
    with pytest.raises(AccessDeniedError) as exc:
        gate.promote(gate_a_ready.id, hr_user)
    assert exc.value.message == "Only administrators can promote candidates"


def test_promote_refuses_when_requirements_missing(gate, make_candidate, admin_user):
    candidate = make_candidate()
    with pytest.raises(StateError) as exc:
        gate.promote(candidate.id, admin_user)
    assert exc.value.message == "Cannot promote - requirements not met"
    assert "Contract not signed" in exc.value.details["missing"]
    assert candidate.stage == CandidateStage.candidate


def test_promote_active_candidate_reports_already_active(gate, make_candidate, admin_user):
    candidate = make_candidate(stage=CandidateStage.active)
    with pytest.raises(StateError) as exc:
        gate.promote(candidate.id, admin_user)
    assert exc.value.message == "Candidate is already active"

def test_promotion_status_has_no_side_effects(gate, gate_a_ready, admin_user, db_session):
    first = gate.get_promotion_status(gate_a_ready.id, admin_user, today=date(2026, 10, 18))
    second = gate.get_promotion_status(gate_a_ready.id, admin_user, today=date(2026, 10, 18))

    assert first == second
    assert gate_a_ready.stage == CandidateStage.candidate
    assert gate_a_ready.user_id is None
    assert db_session.query(User).filter(User.email == gate_a_ready.email).count() == 0
    assert db_session.query(OnboardingTask).count() == 0


def test_repeated_promote_does_not_provision_again(gate, gate_a_ready, admin_user, db_session):
    first = gate.promote(gate_a_ready.id, admin_user, today=date(2026, 10, 18))
    users = db_session.query(User).count()
    tasks = db_session.query(OnboardingTask).count()

    # The candidate is now gated on Gate B, which is not yet met
    with pytest.raises(StateError) as exc:
        gate.promote(gate_a_ready.id, admin_user, today=date(2026, 10, 18))
    assert exc.value.message == "Cannot promote - requirements not met"

    assert gate_a_ready.stage == CandidateStage.pre_colleague
    assert gate_a_ready.user.employee_number == first["employee_number"]
    assert db_session.query(User).count() == users
    assert db_session.query(OnboardingTask).count() == tasks



# --- Gate B ---

def test_gate_b_requires_tasks_and_arrival(gate, pre_colleague):
    status = gate.evaluate(pre_colleague, START)
    assert status["next_stage"] == CandidateStage.active
    assert status["can_promote"] is False
    assert status["missing"] == [
        "Task incomplete: Read Employee Handbook",
        "Task incomplete: Complete emergency contact form",
        "Task incomplete: Set up IT account",
        "Task incomplete: Complete health declaration",
        "Arrival not confirmed - confirm when employee arrives for first day",
    ]


def test_gate_b_without_required_tasks_passes_task_check(gate, pre_colleague, db_session):
    for task in pre_colleague.onboarding_tasks:
        task.required_before_start = False
    pre_colleague.arrival_confirmed = True
    db_session.commit()

    status = gate.evaluate(pre_colleague, START)
    assert "No required tasks configured" in status["completed"]
    assert status["can_promote"] is True


def test_gate_b_requires_policy_acknowledgment(gate, pre_colleague, db_session, tenant):
    policy = Policy(tenant_id=tenant.id, title="Code of Conduct", status=PolicyStatus.published)
    db_session.add_all([
        policy,
        Policy(tenant_id=tenant.id, title="Draft Policy", status=PolicyStatus.draft),
    ])
    _complete_required_tasks(db_session, pre_colleague)
    pre_colleague.arrival_confirmed = True
    db_session.commit()

    status = gate.evaluate(pre_colleague, START)
    assert status["missing"] == ["Policy not acknowledged: Code of Conduct"]

    db_session.add(PolicyAcknowledgment(
        tenant_id=tenant.id, candidate_id=pre_colleague.id, policy_id=policy.id
    ))
    db_session.commit()
    assert gate.evaluate(pre_colleague, START)["can_promote"] is True


def test_gate_b_rejects_expired_checks(gate, pre_colleague, db_session):
    _complete_required_tasks(db_session, pre_colleague)
    pre_colleague.arrival_confirmed = True
    check = next(c for c in pre_colleague.background_checks if c.check_type == CheckType.right_to_work)
    check.expiry_date = date(2026, 11, 1)
    db_session.commit()

    status = gate.evaluate(pre_colleague, START)
    assert status["missing"] == ["Right to Work expired"]
    # Expiring on the start date itself is still valid
    assert gate.evaluate(pre_colleague, date(2026, 11, 1))["can_promote"] is True


def test_active_candidate_has_no_next_stage(make_candidate):
    status = calculate_promotion_status(make_candidate(stage=CandidateStage.active), START)
    assert status["next_stage"] is None
    assert status["can_promote"] is False


# --- Arrival ---

def test_confirm_arrival_checks_password(gate, pre_colleague, hr_user):
    with pytest.raises(ValidationError):
        gate.confirm_arrival(pre_colleague.id, hr_user, None)
    with pytest.raises(AuthenticationError) as exc:
        gate.confirm_arrival(pre_colleague.id, hr_user, "wrong-password")
    assert exc.value.message == "Incorrect password"
    assert pre_colleague.arrival_confirmed is False


def test_confirm_arrival_requires_hr(gate, pre_colleague, manager_user, password):
    with pytest.raises(AccessDeniedError):
        gate.confirm_arrival(pre_colleague.id, manager_user, password)


def test_confirm_arrival_only_for_pre_colleagues(gate, gate_a_ready, hr_user, password):
    with pytest.raises(StateError):
        gate.confirm_arrival(gate_a_ready.id, hr_user, password)


def test_confirm_arrival_activates_with_outstanding_tasks(gate, pre_colleague, hr_user, admin_user, db_session,
                                                         password):
    result = gate.confirm_arrival(pre_colleague.id, hr_user, password, today=START)

    assert result["activated"] is True
    assert result["outstanding"] == [
        "Task incomplete: Read Employee Handbook",
        "Task incomplete: Complete emergency contact form",
        "Task incomplete: Set up IT account",
        "Task incomplete: Complete health declaration",
    ]
    assert pre_colleague.arrival_confirmed is True
    assert pre_colleague.arrival_confirmed_by == hr_user.id
    assert pre_colleague.stage == CandidateStage.active
    assert pre_colleague.user.employment_status == EmploymentStatus.ACTIVE

    entry = db_session.query(AuditLog).filter(AuditLog.description == "Arrival confirmed for Casey Jones").one()
    assert entry.after_state["outstanding"] == result["outstanding"]

    with pytest.raises(StateError):
        gate.confirm_arrival(pre_colleague.id, hr_user, password, today=START)
    with pytest.raises(StateError) as exc:
        gate.promote(pre_colleague.id, admin_user, today=START)
    assert exc.value.message == "Candidate is already active"

def test_confirm_arrival_twice_conflicts(gate, pre_colleague, hr_user, db_session, password):
    pre_colleague.arrival_confirmed = True
    db_session.commit()
    with pytest.raises(ConflictError) as exc:
        gate.confirm_arrival(pre_colleague.id, hr_user, password, today=START)
    assert exc.value.message == "Arrival already confirmed"
    assert pre_colleague.stage == CandidateStage.pre_colleague



def test_confirm_arrival_activates_employee(gate, pre_colleague, hr_user, db_session, dispatcher, password):
    _complete_required_tasks(db_session, pre_colleague)
    result = gate.confirm_arrival(pre_colleague.id, hr_user, password, today=START)

    assert result["activated"] is True
    assert result["message"] == "Casey Jones has arrived and is now active!"
    assert result["outstanding"] == []
    assert pre_colleague.stage == CandidateStage.active
    assert pre_colleague.actual_start_date == START
    user = pre_colleague.user
    assert user.employment_status == EmploymentStatus.ACTIVE

    probation = db_session.query(ProbationPeriod).filter(ProbationPeriod.employee_id == user.id).one()
    assert probation.start_date == START
    assert probation.end_date == date(2027, 5, 2)
    assert [r.review_type for r in probation.reviews] == [
        ProbationReviewType.one_month,
        ProbationReviewType.three_month,
        ProbationReviewType.six_month,
        ProbationReviewType.final,
    ]
    assert probation.reviews[-1].scheduled_date == date(2027, 4, 18)
    assert len(dispatcher.of_type(CandidateActivated)) == 1


def test_promotion_status_is_admin_only(gate, gate_a_ready, hr_user):
    with pytest.raises(AccessDeniedError):
        gate.get_promotion_status(gate_a_ready.id, hr_user)


# --- HTTP ---

def test_promotion_api(client, gate_a_ready, admin_user, hr_user, auth_headers):
    admin_headers = auth_headers(admin_user)
    response = client.get(f"/api/candidates/{gate_a_ready.id}/promotion-status", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["can_promote"] is True

    response = client.post(f"/api/candidates/{gate_a_ready.id}/promote", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["new_stage"] == "pre_colleague"
    assert response.json()["employee_number"] == "EMP101"

    response = client.post(f"/api/candidates/{gate_a_ready.id}/confirm-arrival",
                           json={"password": "nope"}, headers=auth_headers(hr_user))
    assert response.status_code == 401
    assert response.json()["errors"][0]["msg"] == "Incorrect password"


def test_promote_api_reports_missing_requirements(client, make_candidate, admin_user, auth_headers):
    candidate = make_candidate()
    response = client.post(f"/api/candidates/{candidate.id}/promote", headers=auth_headers(admin_user))
    assert response.status_code == 400
    body = response.json()
    assert body["errors"][0]["code"] == "INVALID_STATE"
    assert "Contract not signed" in body["details"]["missing"]

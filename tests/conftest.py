import pytest
import os
from datetime import date
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite://"

from headoffice.database import Base, configure_sqlite, get_db
from headoffice.main import app
from headoffice.core.security import get_password_hash
from fastapi.testclient import TestClient

# SQLite in-memory database shared by every connection in the test run
engine = configure_sqlite(create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
))
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "Password123!"
PASSWORD_HASH = get_password_hash(PASSWORD)


class RecordingDispatcher:
    """Collects dispatched domain events instead of turning them into notifications."""

    def __init__(self):
        self.events = []

    def dispatch(self, events):
        self.events.extend(events)

    def of_type(self, event_type):
        return [e for e in self.events if isinstance(e, event_type)]


@pytest.fixture(scope="function")
def db_session():
    """Fresh schema per test; services commit, so rollback isolation is not enough."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture(scope="function")
def password():
    """Plain-text password of every user made by `make_user`."""
    return PASSWORD


@pytest.fixture(scope="function")
def tenant(db_session):
    from headoffice.models.tenant import Tenant
    tenant = Tenant(name="Alpha Corp", slug="alpha-corp")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope="function")
def other_tenant(db_session):
    from headoffice.models.tenant import Tenant
    tenant = Tenant(name="Beta Ltd", slug="beta-ltd")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope="function")
def make_user(db_session, tenant):
    """Factory for users in the default tenant."""
    from headoffice.models.user import User, UserRole

    def _make_user(email, role=UserRole.EMPLOYEE, full_name=None, manager=None, tenant_id=None, **fields):
        fields.setdefault("is_active", True)
        user = User(
            tenant_id=tenant_id or tenant.id,
            email=email,
            hashed_password=PASSWORD_HASH,
            full_name=full_name or email.split("@")[0].title(),
            role=role,
            manager_id=manager.id if manager is not None else None,
            **fields
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make_user


@pytest.fixture(scope="function")
def admin_user(make_user):
    from headoffice.models.user import UserRole
    return make_user("admin@alphacorp.com", UserRole.ADMIN, "System Admin")


@pytest.fixture(scope="function")
def hr_user(make_user):
    from headoffice.models.user import UserRole
    return make_user("hr@alphacorp.com", UserRole.HR_MANAGER, "Hannah Reed")


@pytest.fixture(scope="function")
def compliance_user(make_user):
    from headoffice.models.user import UserRole
    return make_user("compliance@alphacorp.com", UserRole.COMPLIANCE_OFFICER, "Cora Lane")


@pytest.fixture(scope="function")
def manager_user(make_user):
    from headoffice.models.user import UserRole
    return make_user("manager@alphacorp.com", UserRole.MANAGER, "Morgan Hale")


@pytest.fixture(scope="function")
def employee_user(make_user, manager_user):
    from headoffice.models.user import UserRole
    return make_user("employee@alphacorp.com", UserRole.EMPLOYEE, "Erin Shaw", manager=manager_user)


@pytest.fixture(scope="function")
def auth_headers():
    """Identity headers the upstream gateway would forward for `user`."""
    def _auth_headers(user):
        return {"X-User-ID": str(user.id), "X-Tenant-ID": str(user.tenant_id)}
    return _auth_headers


@pytest.fixture(scope="function")
def recruitment_request(db_session, tenant, manager_user):
    from headoffice.models.recruitment_request import RecruitmentRequest, RecruitmentRequestStatus
    request = RecruitmentRequest(
        tenant_id=tenant.id,
        requested_by=manager_user.id,
        role_title="Support Analyst",
        status=RecruitmentRequestStatus.approved,
    )
    db_session.add(request)
    db_session.commit()
    return request


@pytest.fixture(scope="function")
def make_candidate(db_session, tenant):
    """Factory for candidates created directly in the database."""
    from headoffice.models.candidate import Candidate

    def _make_candidate(email="casey@example.com", full_name="Casey Jones", **fields):
        candidate = Candidate(tenant_id=tenant.id, email=email, full_name=full_name, **fields)
        db_session.add(candidate)
        db_session.commit()
        return candidate
    return _make_candidate


@pytest.fixture(scope="function")
def gate_a_ready(db_session, tenant, make_candidate, recruitment_request):
    """A candidate meeting every Gate A requirement."""
    from headoffice.models.background_check import (
        BackgroundCheck, CandidateReference, CheckStatus, CheckType, ReferenceStatus
    )
    from headoffice.models.user import UserRole

    candidate = make_candidate(
        recruitment_request_id=recruitment_request.id,
        proposed_role=UserRole.EMPLOYEE,
        proposed_salary=Decimal("32000.00"),
        proposed_hours=Decimal("37.5"),
        proposed_start_date=date(2026, 11, 2),
        contract_signed=True,
        contract_signed_date=date(2026, 10, 1),
    )
    for name in ("Ref One", "Ref Two"):
        candidate.references.append(CandidateReference(
            tenant_id=tenant.id, reference_name=name, status=ReferenceStatus.verified
        ))
    for check_type in (CheckType.right_to_work, CheckType.dbs_basic):
        candidate.background_checks.append(BackgroundCheck(
            tenant_id=tenant.id, check_type=check_type, status=CheckStatus.cleared, required=True
        ))
    db_session.commit()
    return candidate


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()

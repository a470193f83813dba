import pytest
from datetime import date, datetime, timezone

from headoffice.core.exceptions import AccessDeniedError, NotFoundError, ValidationError
from headoffice.models.review import Review
from headoffice.services.reports import ReportService

COMMITTED_AT = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(db_session, tenant):
    return ReportService(db_session, tenant.id)


@pytest.fixture
def add_week(db_session, tenant, employee_user, manager_user):
    """Store one week's pair of reviews with every rating set to `score`."""
    def _add_week(week, score, self_committed=True, manager_committed=True):
        ratings = {f: score for f in ("tasks_completed", "work_volume", "problem_solving",
                                      "communication", "leadership")}
        db_session.add_all([
            Review(tenant_id=tenant.id, employee_id=employee_user.id, reviewer_id=employee_user.id,
                   review_date=week, is_self_assessment=True, is_committed=self_committed,
                   committed_at=COMMITTED_AT if self_committed else None, **ratings),
            Review(tenant_id=tenant.id, employee_id=employee_user.id, reviewer_id=manager_user.id,
                   review_date=week, is_self_assessment=False, is_committed=manager_committed,
                   committed_at=COMMITTED_AT if manager_committed else None, **ratings),
        ])
        db_session.commit()
    return _add_week


@pytest.fixture
def history(add_week):
    add_week(date(2026, 9, 25), 5)
    add_week(date(2026, 10, 2), 6)
    add_week(date(2026, 10, 9), 8)
    # Manager committed, employee still drafting: not revealed
    add_week(date(2026, 10, 16), 2, self_committed=False)


def test_quarterly_report_uses_revealed_weeks_only(service, history, employee_user, manager_user):
    report = service.quarterly_report(employee_user.id, "2026-Q4", manager_user)

    assert report["quarter"]["label"] == "2026-Q4"
    assert report["quarter"]["start_date"] == date(2026, 10, 1)
    assert report["employee"]["manager_name"] == "Morgan Hale"

    averages = report["quarter_averages"]
    assert averages["reviews_count"] == 2
    assert averages["self_assessments_count"] == 2
    assert averages["weeks_with_data"] == 2
    assert averages["velocity"] == 7.0
    assert averages["cohesion"] == 7.0

    weeks = {w["week_ending"]: w for w in report["weekly_trends"]}
    assert len(weeks) == 13
    assert weeks[date(2026, 10, 9)]["velocity"] == 8.0
    assert weeks[date(2026, 10, 9)]["reviewer_name"] == "Morgan Hale"
    assert weeks[date(2026, 10, 16)]["has_data"] is False
    assert weeks[date(2026, 10, 16)]["tasks_completed"] is None

    assert report["trends"]["velocity"] == "improving"


def test_quarterly_report_monthly_breakdown(service, history, employee_user, manager_user):
    monthly = service.quarterly_report(employee_user.id, "2026-Q4", manager_user)["monthly_comparison"]
    assert [m["month"] for m in monthly] == ["Oct", "Nov", "Dec"]
    assert monthly[0]["manager"]["count"] == 2
    assert monthly[0]["manager"]["velocity"] == 7.0
    assert monthly[0]["self"]["count"] == 2
    assert monthly[1]["manager"] == {"velocity": None, "friction": None, "cohesion": None, "count": 0}


def test_quarterly_report_compares_previous_quarter(service, history, employee_user):
    report = service.quarterly_report(employee_user.id, "2026-Q4", employee_user)
    assert report["previous_quarter"]["label"] == "2026-Q3"
    assert report["previous_quarter"]["velocity"] == 5.0
    assert report["quarter_comparison"]["velocity_diff"] == 2.0


def test_quarterly_report_without_previous_quarter(service, add_week, employee_user):
    add_week(date(2026, 10, 2), 6)
    report = service.quarterly_report(employee_user.id, "2026-Q4", employee_user)
    assert report["previous_quarter"] is None
    assert report["quarter_comparison"] is None


def test_empty_quarter(service, employee_user):
    report = service.quarterly_report(employee_user.id, "2026-Q1", employee_user)
    assert report["quarter_averages"]["velocity"] is None
    assert report["quarter_averages"]["weeks_with_data"] == 0
    assert report["trends"] == {"velocity": "stable", "friction": "stable", "cohesion": "stable"}


def test_report_access(service, history, employee_user, compliance_user, hr_user, make_user):
    assert service.quarterly_report(employee_user.id, "2026-Q4", compliance_user)["quarter_averages"]
    peer = make_user("peer@alphacorp.com")
    with pytest.raises(AccessDeniedError):
        service.quarterly_report(employee_user.id, "2026-Q4", peer)
    with pytest.raises(AccessDeniedError):
        service.quarterly_report(employee_user.id, "2026-Q4", hr_user)
    with pytest.raises(NotFoundError):
        service.quarterly_report(999, "2026-Q4", compliance_user)


def test_invalid_quarter(service, employee_user):
    with pytest.raises(ValidationError):
        service.quarterly_report(employee_user.id, "2026-Q7", employee_user)


def test_available_quarters(service, history, employee_user):
    quarters = service.available_quarters(employee_user.id, employee_user, today=date(2027, 1, 4))
    assert quarters == [
        {"value": "2027-Q1", "label": "Q1 2027"},
        {"value": "2026-Q4", "label": "Q4 2026"},
        {"value": "2026-Q3", "label": "Q3 2026"},
    ]


def test_available_quarters_without_reviews(service, employee_user):
    quarters = service.available_quarters(employee_user.id, employee_user, today=date(2026, 10, 18))
    assert quarters == [{"value": "2026-Q4", "label": "Q4 2026"}]


def test_reports_api(client, history, employee_user, manager_user, auth_headers):
    response = client.get(f"/api/reports/quarterly/{employee_user.id}/2026-Q4", headers=auth_headers(manager_user))
    assert response.status_code == 200
    assert response.json()["quarter_averages"]["velocity"] == 7.0

    response = client.get(f"/api/reports/quarterly/{employee_user.id}/last-quarter",
                          headers=auth_headers(employee_user))
    assert response.status_code == 400

    response = client.get(f"/api/reports/quarters/{employee_user.id}", headers=auth_headers(employee_user))
    assert response.status_code == 200
    assert {"value": "2026-Q3", "label": "Q3 2026"} in response.json()

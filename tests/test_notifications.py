import pytest
from datetime import date, datetime, timezone

from headoffice.core.exceptions import NotFoundError
from headoffice.models.notification import Notification
from headoffice.models.review import Review
from headoffice.models.user import EmploymentStatus
from headoffice.services.notification import NotificationService

SUNDAY = datetime(2026, 10, 18, 8, 0, tzinfo=timezone.utc)
MONDAY = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)
WEDNESDAY = datetime(2026, 10, 21, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(db_session, tenant):
    return NotificationService(db_session, tenant.id)


@pytest.fixture
def manager_reflected(db_session, tenant, manager_user):
    """The manager has committed their own self-reflection for the week ending 2026-10-16."""
    db_session.add(Review(
        tenant_id=tenant.id, employee_id=manager_user.id, reviewer_id=manager_user.id,
        review_date=date(2026, 10, 16), is_self_assessment=True, is_committed=True,
        committed_at=SUNDAY,
    ))
    db_session.commit()


def test_overdue_scan_notifies_employee_and_manager(service, manager_reflected, employee_user, manager_user):
    created = service.check_overdue_snapshots(now=SUNDAY)

    by_type = {n.type: n for n in created}
    assert set(by_type) == {"self_reflection_overdue", "snapshot_overdue"}
    assert by_type["self_reflection_overdue"].user_id == employee_user.id
    assert by_type["self_reflection_overdue"].message == (
        "Your self-reflection for week ending 2026-10-16 is overdue. Please submit it as soon as possible."
    )
    assert by_type["snapshot_overdue"].user_id == manager_user.id
    assert by_type["snapshot_overdue"].related_id == employee_user.id
    assert by_type["snapshot_overdue"].message == "Erin Shaw's weekly snapshot for week ending 2026-10-16 is overdue."


def test_overdue_scan_sends_once_per_day(service, manager_reflected, employee_user, db_session):
    assert len(service.check_overdue_snapshots(now=SUNDAY)) == 2
    assert service.check_overdue_snapshots(now=SUNDAY) == []
    # Monday is a new day for the same overdue week
    assert len(service.check_overdue_snapshots(now=MONDAY)) == 2
    assert db_session.query(Notification).count() == 4


def test_overdue_scan_only_early_week(service, manager_reflected, employee_user):
    assert service.check_overdue_snapshots(now=WEDNESDAY) == []


def test_overdue_scan_skips_committed_and_pre_start(service, manager_reflected, make_user, db_session, tenant,
                                                    employee_user):
    make_user("starter@alphacorp.com", employment_status=EmploymentStatus.PRE_START)
    db_session.add(Review(
        tenant_id=tenant.id, employee_id=employee_user.id, reviewer_id=employee_user.id,
        review_date=date(2026, 10, 16), is_self_assessment=True, is_committed=True,
    ))
    db_session.commit()
    assert service.check_overdue_snapshots(now=SUNDAY) == []


def test_overdue_scan_for_single_user(service, manager_reflected, employee_user, manager_user, make_user):
    make_user("other@alphacorp.com")
    created = service.check_overdue_snapshots(now=SUNDAY, user_id=employee_user.id)
    assert sorted(n.user_id for n in created) == sorted([employee_user.id, manager_user.id])


def test_inbox_is_scoped_to_user_and_tenant(service, db_session, employee_user, manager_user, other_tenant):
    service.create(employee_user.id, "general", "Older", "first", created_at=SUNDAY)
    service.create(employee_user.id, "general", "Newer", "second", created_at=MONDAY)
    service.create(manager_user.id, "general", "Not yours", "third")

    inbox = service.list_for_user(employee_user.id)
    assert [n.title for n in inbox] == ["Newer", "Older"]
    assert NotificationService(db_session, other_tenant.id).list_for_user(employee_user.id) == []


def test_mark_read(service, employee_user, manager_user):
    notification = service.create(employee_user.id, "general", "Hello", "world")
    with pytest.raises(NotFoundError):
        service.mark_read(notification.id, manager_user.id)

    service.mark_read(notification.id, employee_user.id)
    assert notification.is_read is True
    assert service.list_for_user(employee_user.id, unread_only=True) == []


def test_mark_all_read(service, employee_user, manager_user):
    for i in range(3):
        service.create(employee_user.id, "general", f"Note {i}", "body")
    service.create(manager_user.id, "general", "Manager note", "body")

    assert service.mark_all_read(employee_user.id) == 3
    assert service.list_for_user(employee_user.id, unread_only=True) == []
    assert len(service.list_for_user(manager_user.id, unread_only=True)) == 1


def test_notifications_api(client, service, employee_user, manager_user, auth_headers):
    headers = auth_headers(employee_user)
    first = service.create(employee_user.id, "kpi_revealed", "Weekly KPIs Revealed", "Visible now",
                           related_id=7, related_type="review", created_at=SUNDAY)
    service.create(employee_user.id, "general", "Reminder", "Check your tasks", created_at=MONDAY)
    mine = service.create(manager_user.id, "general", "Manager only", "Private")

    response = client.get("/api/notifications/", headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert [n["title"] for n in body] == ["Reminder", "Weekly KPIs Revealed"]
    assert body[1]["related_type"] == "review"

    response = client.patch(f"/api/notifications/{first.id}/read", headers=headers)
    assert response.status_code == 200
    assert response.json()["is_read"] is True

    response = client.patch(f"/api/notifications/{mine.id}/read", headers=headers)
    assert response.status_code == 404

    response = client.get("/api/notifications/", params={"unread_only": True}, headers=headers)
    assert [n["title"] for n in response.json()] == ["Reminder"]

    response = client.post("/api/notifications/mark-all-read", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"message": "All notifications marked as read"}
    assert client.get("/api/notifications/", params={"unread_only": True}, headers=headers).json() == []

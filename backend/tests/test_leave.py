from datetime import date

import pytest

from app.models.audit_log import AuditLog
from app.models.leave import Holiday, LeaveBalance, LeaveRequest, LeaveType
from app.models.timesheet import TimesheetEntry
from app.models.user import OrgReportingManager, OrgUser


@pytest.fixture
def pto(db):
    lt = LeaveType(code="PTO", name="Paid Time Off", paid=True)
    db.add(lt)
    db.add(Holiday(date=date(2026, 12, 25), year=2026, name="Christmas Day", country="BOTH"))
    db.add(Holiday(date=date(2026, 12, 24), year=2026, name="Office closure", country="INDIA"))
    db.commit()
    return lt


def _apply(client, lt, start="2026-12-21", end="2026-12-25"):
    return client.post(
        "/api/leave/apply",
        json={"leaveTypeId": str(lt.id), "startDate": start, "endDate": end, "reason": "Holidays"},
    )


def _decide(client, request_id, action="APPROVE"):
    return client.post("/api/leave/approve", json={"requestId": request_id, "action": action})


def test_apply_requires_country(client, make_user, login, pto):
    login(make_user("Nomad", country=None))

    assert _apply(client, pto).status_code == 409


def test_apply_rejects_reversed_range(client, make_user, login, pto):
    login(make_user("Cal"))

    assert _apply(client, pto, start="2026-12-25", end="2026-12-21").status_code == 400


def test_apply_unknown_type(client, make_user, login):
    login(make_user("Cal"))

    r = client.post(
        "/api/leave/apply",
        json={"leaveTypeId": "00000000-0000-0000-0000-000000000009", "startDate": "2026-12-21", "endDate": "2026-12-21"},
    )

    assert r.status_code == 404


def test_approval_deducts_working_days_and_fills_timesheet(client, make_user, login, db, pto):
    owner = make_user("Olga", roles=("OWNER",))
    user = make_user("Cal", country="US")
    login(user)
    request_id = _apply(client, pto).json()["request"]["id"]

    login(owner)
    r = _decide(client, request_id)

    assert r.status_code == 200
    assert r.json() == {"ok": True, "status": "APPROVED", "working_days": 4, "hours_deducted": 32.0}

    balance = db.query(LeaveBalance).one()
    assert balance.year == 2026
    assert float(balance.used_hours) == 32
    assert float(balance.balance_hours) == -32

    entries = db.query(TimesheetEntry).filter(TimesheetEntry.user_id == user.id).order_by(TimesheetEntry.date).all()
    assert [e.date.day for e in entries] == [21, 22, 23, 24]
    assert {e.task_id for e in entries} == {"LEAVE"}
    assert {e.task_name for e in entries} == {"PTO"}
    assert all(float(e.tracked_hours) == 8 and e.estimate_locked for e in entries)
    assert db.query(AuditLog).filter(AuditLog.action == "leave.approved").count() == 1


def test_country_specific_holidays_are_skipped(client, make_user, login, db, pto):
    owner = make_user("Olga", roles=("OWNER",))
    user = make_user("Ira", country="INDIA")
    login(user)
    request_id = _apply(client, pto).json()["request"]["id"]

    login(owner)
    r = _decide(client, request_id)

    assert r.json()["working_days"] == 3


def test_approval_without_subject_country_leaves_request_pending(client, make_user, login, db, pto):
    owner = make_user("Olga", roles=("OWNER",))
    user = make_user("Cal")
    login(user)
    request_id = _apply(client, pto).json()["request"]["id"]
    db.query(OrgUser).filter(OrgUser.id == user.id).update({OrgUser.country: None})
    db.commit()

    login(owner)
    r = _decide(client, request_id)

    assert r.status_code == 409
    db.expire_all()
    assert db.query(LeaveRequest).one().status == "PENDING"
    assert db.query(LeaveBalance).count() == 0


def test_reject_does_not_touch_balance(client, make_user, login, db, pto):
    owner = make_user("Olga", roles=("OWNER",))
    user = make_user("Cal")
    login(user)
    request_id = _apply(client, pto).json()["request"]["id"]

    login(owner)
    assert _decide(client, request_id, "reject").json()["status"] == "REJECTED"
    assert _decide(client, request_id).status_code == 409
    assert db.query(LeaveBalance).count() == 0


def test_manager_scope_for_leave(client, make_user, login, db, pto):
    manager = make_user("Max", roles=("MANAGER",))
    report = make_user("Rae")
    stranger = make_user("Sam")
    db.add(OrgReportingManager(user_id=report.id, manager_user_id=manager.id))
    db.commit()

    login(report)
    report_request = _apply(client, pto).json()["request"]["id"]
    login(stranger)
    stranger_request = _apply(client, pto).json()["request"]["id"]

    login(manager)
    pending = client.get("/api/leave/pending").json()["requests"]
    assert [p["user_name"] for p in pending] == ["Rae"]
    assert _decide(client, stranger_request).status_code == 403
    assert _decide(client, report_request).status_code == 200

    login(stranger)
    assert client.get("/api/leave/pending").status_code == 403


def test_balances_and_calendar(client, make_user, login, pto):
    owner = make_user("Olga", roles=("OWNER",))
    user = make_user("Cal")
    login(user)
    request_id = _apply(client, pto, start="2026-12-24", end="2026-12-28").json()["request"]["id"]
    login(owner)
    _decide(client, request_id)

    login(user)
    balances = client.get("/api/leave/balances", params={"year": 2026}).json()
    assert balances["balances"][0]["code"] == "PTO"
    assert balances["balances"][0]["used_hours"] == 16

    cal = client.get("/api/leave/calendar", params={"start": "2026-12-21", "end": "2026-12-31"}).json()
    assert [h["name"] for h in cal["holidays"]] == ["Christmas Day"]
    assert [d["date"] for d in cal["leave"]] == ["2026-12-24", "2026-12-25", "2026-12-28"]

    assert [r["status"] for r in client.get("/api/leave/requests").json()["requests"]] == ["APPROVED"]

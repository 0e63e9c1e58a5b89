from datetime import date

from app.models.audit_log import AuditLog
from app.models.timesheet import TimesheetEntry, WeeklyEstimate, WeeklyTimesheetStatus


def _save(client, week_start="2026-10-12", hours=32, **extra):
    return client.post("/api/weekly-estimates", json={"weekStart": week_start, "hours": hours, **extra})


def test_estimate_is_locked_on_save(client, make_user, login):
    login(make_user("Cal"))

    first = _save(client)
    second = _save(client, hours=40)

    assert first.status_code == 200
    assert first.json()["estimate"]["locked"] is True
    assert first.json()["estimate"]["hours"] == 32
    assert second.status_code == 409


def test_next_week_allowed_other_weeks_rejected(client, make_user, login):
    login(make_user("Cal"))

    assert _save(client, week_start="2026-10-21").status_code == 200
    assert _save(client, week_start="2026-10-05").status_code == 409
    assert _save(client, week_start="2026-10-26").status_code == 409


def test_hours_above_week_rejected(client, make_user, login):
    login(make_user("Cal"))

    assert _save(client, hours=200).status_code == 400


def test_not_editable_once_submitted(client, make_user, login, db):
    user = make_user("Cal")
    db.add(WeeklyTimesheetStatus(user_id=user.id, week_start=date(2026, 10, 12), status="SUBMITTED"))
    db.commit()
    login(user)

    assert _save(client).status_code == 403


def test_admin_unlock_allows_one_more_edit(client, make_user, login, db):
    user = make_user("Cal")
    admin = make_user("Ada", roles=("ADMIN",))
    login(user)
    _save(client)

    assert client.post(
        "/api/weekly-estimates/unlock", json={"userId": str(user.id), "weekStart": "2026-10-12"}
    ).status_code == 403

    login(admin)
    r = client.post("/api/weekly-estimates/unlock", json={"userId": str(user.id), "weekStart": "2026-10-12"})
    assert r.status_code == 200
    assert r.json()["estimate"]["locked"] is False
    assert db.query(AuditLog).filter(AuditLog.action == "estimate.unlock").count() == 1

    login(user)
    assert _save(client, hours=36).status_code == 200
    assert _save(client, hours=38).status_code == 409

    db.expire_all()
    estimate = db.query(WeeklyEstimate).one()
    assert float(estimate.hours) == 36
    assert estimate.unlocked_by == admin.id


def test_unlock_missing_estimate_is_404(client, make_user, login):
    user = make_user("Cal")
    login(make_user("Ada", roles=("ADMIN",)))

    r = client.post("/api/weekly-estimates/unlock", json={"userId": str(user.id), "weekStart": "2026-10-12"})

    assert r.status_code == 404


def test_admin_sets_estimate_for_another_user(client, make_user, login):
    user = make_user("Cal")
    login(make_user("Ada", roles=("ADMIN",)))

    r = _save(client, userId=str(user.id))
    assert r.status_code == 200
    assert r.json()["estimate"]["user_id"] == str(user.id)

    login(make_user("Pat"))
    assert _save(client, userId=str(user.id)).status_code == 403
    assert client.get("/api/weekly-estimates", params={"userId": str(user.id)}).status_code == 403


def test_new_estimate_pushes_week_of_tracked_time(client, make_user, login, db, workspace, monkeypatch):
    monkeypatch.setenv("CLICKUP_TEAM_ID", "team-1")
    user = make_user("Cal")
    db.add_all([
        TimesheetEntry(user_id=user.id, task_id="task-1", date=date(2026, 10, 12), tracked_hours=2),
        TimesheetEntry(user_id=user.id, task_id="task-1", date=date(2026, 10, 13), tracked_hours=3),
        TimesheetEntry(user_id=user.id, task_id="LEAVE", date=date(2026, 10, 14), tracked_hours=8),
        TimesheetEntry(user_id=user.id, task_id="task-1", date=date(2026, 10, 17), tracked_hours=4),
    ])
    db.commit()
    login(user)

    r = _save(client)

    assert r.json()["sync"] == {"ok": True, "pushed": 1, "failed": []}
    (call,) = workspace.calls_named("create_time_entry")
    assert call["task_id"] == "task-1"
    assert call["duration_ms"] == 5 * 3_600_000


def test_list_own_estimates(client, make_user, login):
    login(make_user("Cal"))
    _save(client)
    _save(client, week_start="2026-10-19")

    weeks = [e["week_start"] for e in client.get("/api/weekly-estimates").json()["estimates"]]

    assert weeks == ["2026-10-19", "2026-10-12"]

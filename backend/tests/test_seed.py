from datetime import date

from app.models.leave import Holiday, LeaveType
from app.seed import seed_holidays, seed_leave_types, seed_owner
from app.services.iam import get_user_roles


def test_seed_leave_types_is_idempotent(db):
    assert seed_leave_types(db) == 3
    assert seed_leave_types(db) == 0
    assert {lt.code for lt in db.query(LeaveType).all()} == {"PTO", "SICK", "UNPAID"}


def test_seed_holidays_for_year(db):
    created = seed_holidays(db, 2027)

    assert created == db.query(Holiday).count()
    christmas = db.query(Holiday).filter(Holiday.date == date(2027, 12, 25)).one()
    assert christmas.country == "BOTH"
    assert seed_holidays(db, 2027) == 0


def test_seed_owner_needs_signed_in_user(db, make_user, monkeypatch):
    monkeypatch.setenv("OWNER_EMAIL", "olga@example.com")
    assert seed_owner(db) is False

    user = make_user("Olga", email="olga@example.com")
    assert seed_owner(db) is True
    assert "OWNER" in get_user_roles(db, user.id)

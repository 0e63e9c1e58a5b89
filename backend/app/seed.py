"""
Seed script for the timesheet portal: reference data for a first deploy.

Run: python -m app.seed
"""
import logging
import os
import sys
from datetime import date

from app.database import SessionLocal
from app.models.leave import ALL_COUNTRIES, Holiday, LeaveType
from app.models.user import OrgUser
from app.services.iam import ensure_owner_by_env

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

LEAVE_TYPES = [
    ("PTO", "Paid Time Off", True),
    ("SICK", "Sick Leave", True),
    ("UNPAID", "Unpaid Leave", False),
]

# (month, day, name, country) for holidays that fall on a fixed date
FIXED_HOLIDAYS = [
    (1, 1, "New Year's Day", ALL_COUNTRIES),
    (1, 26, "Republic Day", "INDIA"),
    (7, 4, "Independence Day", "US"),
    (8, 15, "Independence Day", "INDIA"),
    (10, 2, "Gandhi Jayanti", "INDIA"),
    (11, 11, "Veterans Day", "US"),
    (12, 25, "Christmas Day", ALL_COUNTRIES),
]


def seed_leave_types(db) -> int:
    created = 0
    for code, name, paid in LEAVE_TYPES:
        if db.query(LeaveType).filter(LeaveType.code == code).first():
            continue
        db.add(LeaveType(code=code, name=name, paid=paid))
        created += 1
    db.commit()
    return created


def seed_holidays(db, year: int) -> int:
    created = 0
    for month, day, name, country in FIXED_HOLIDAYS:
        d = date(year, month, day)
        exists = db.query(Holiday).filter(Holiday.date == d, Holiday.country == country).first()
        if exists:
            continue
        db.add(Holiday(date=d, year=year, name=name, country=country))
        created += 1
    db.commit()
    return created


def seed_owner(db) -> bool:
    """Grant OWNER to the OWNER_EMAIL account if it has already signed in."""
    owner_email = os.getenv("OWNER_EMAIL", "").strip()
    if not owner_email:
        logger.info("OWNER_EMAIL not set, skipping owner seed.")
        return False
    user = db.query(OrgUser).filter(OrgUser.email.ilike(owner_email)).first()
    if not user:
        logger.info("Owner %s has not signed in yet; role is granted on first login.", owner_email)
        return False
    return ensure_owner_by_env(db, user)


def run_seed():
    db = SessionLocal()
    try:
        created_lt = seed_leave_types(db)
        if created_lt:
            logger.info("Seeded %d leave types.", created_lt)
        else:
            logger.info("Leave types already exist, skipping.")

        year = int(os.getenv("SEED_HOLIDAY_YEAR", date.today().year))
        created_h = seed_holidays(db, year)
        logger.info("Seeded %d holidays for %d.", created_h, year)

        if seed_owner(db):
            logger.info("Granted OWNER from OWNER_EMAIL.")

        logger.info("Seed complete.")
    except Exception:
        logger.exception("Seed failed")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()

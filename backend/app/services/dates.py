"""Week arithmetic and the fixed-offset lock cutoff."""

from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Iterator, Optional

FRIDAY = 4


def week_start_of(d: date) -> date:
    """Monday of the week containing ``d``."""
    return d - timedelta(days=d.weekday())


def allowed_week_starts(today: date) -> tuple[date, date]:
    current = week_start_of(today)
    return current, current + timedelta(days=7)


def iter_days(start: date, end: date) -> Iterator[date]:
    d = start
    while d <= end:
        yield d
        d += timedelta(days=1)


def business_days(start: date, end: date, holidays: Optional[Iterable[date]] = None) -> list[date]:
    skip = set(holidays or ())
    return [d for d in iter_days(start, end) if d.weekday() < 5 and d not in skip]


def noon_utc_ms(d: date) -> int:
    return int(datetime(d.year, d.month, d.day, 12, tzinfo=timezone.utc).timestamp() * 1000)


def local_now(now_utc: datetime, offset_hours: float) -> datetime:
    if now_utc.tzinfo is None:
        now_utc = now_utc.replace(tzinfo=timezone.utc)
    return now_utc.astimezone(timezone.utc).replace(tzinfo=None) + timedelta(hours=offset_hours)


def lock_cutoff(now_utc: datetime, offset_hours: float, cutoff_hour: int) -> tuple[date, datetime]:
    """Week start and the Friday cutoff (both in local wall time) for ``now_utc``."""
    local = local_now(now_utc, offset_hours)
    week_start = week_start_of(local.date())
    friday = week_start + timedelta(days=FRIDAY)
    return week_start, datetime(friday.year, friday.month, friday.day, cutoff_hour)


def is_past_cutoff(now_utc: datetime, offset_hours: float, cutoff_hour: int) -> bool:
    _, cutoff = lock_cutoff(now_utc, offset_hours, cutoff_hour)
    return local_now(now_utc, offset_hours) >= cutoff

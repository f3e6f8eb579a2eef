"""Time helpers shared by entries, recurring runs and invitations.

Datetimes are stored as UTC. Some drivers (SQLite) return naive values,
so comparisons go through as_utc().
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from tally_api.config.env import get_local_timezone_name

DEFAULT_START_HOUR = 9


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes, convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_tz() -> tzinfo:
    name = get_local_timezone_name()
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def local_today(now: Optional[datetime] = None) -> date:
    """Calendar day in the configured local timezone."""
    now = as_utc(now) if now else utcnow()
    return now.astimezone(local_tz()).date()


def local_day_start(day: date, hour: int = DEFAULT_START_HOUR) -> datetime:
    """`hour`:00 local time on `day`, as a UTC datetime.

    Materialized entries (manual by duration, bulk, templates, recurring)
    default to 09:00 local.
    """
    local = datetime.combine(day, time(hour=hour), tzinfo=local_tz())
    return local.astimezone(timezone.utc)


def local_day_end(day: date) -> datetime:
    """Last instant of `day` in local time, as UTC."""
    start = datetime.combine(day, time(0), tzinfo=local_tz())
    return (start + timedelta(days=1) - timedelta(microseconds=1)).astimezone(timezone.utc)

"""
Pickup Dates — Weekday and lead-time arithmetic for auto-scheduled orders.

Rules:
  - Preferred day is matched case-insensitively against weekday names
  - Unknown or empty preferred day falls back to Monday
  - Pickup is never earlier than today + lead time
  - If today + lead time already lands on the preferred day, that day is used
  - Delivery follows pickup by DELIVERY_OFFSET_DAYS
"""

from __future__ import annotations
from datetime import datetime, date, timedelta
from zoneinfo import ZoneInfo

from config import settings

WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

DEFAULT_WEEKDAY = WEEKDAYS["monday"]


def scheduler_now() -> datetime:
    """Current time in the scheduler's configured timezone."""
    return datetime.now(ZoneInfo(settings.SCHEDULER_TIMEZONE))


def resolve_weekday(preferred_day: str | None) -> int:
    """Map a weekday name to date.weekday() numbering (Monday == 0)."""
    if not preferred_day:
        return DEFAULT_WEEKDAY
    return WEEKDAYS.get(preferred_day.strip().lower(), DEFAULT_WEEKDAY)


def next_pickup_date(
    preferred_day: str | None,
    lead_time_days: int,
    now: datetime | date | None = None,
) -> date:
    """
    Earliest date on the preferred weekday that respects the lead time.

    Args:
        preferred_day: Weekday name, e.g. "friday"
        lead_time_days: Minimum days between now and pickup (negatives count as 0)
        now: Reference time; defaults to scheduler_now()

    Returns:
        Pickup date, always >= now + lead_time_days
    """
    if now is None:
        now = scheduler_now()
    today = now.date() if isinstance(now, datetime) else now

    floor = today + timedelta(days=max(lead_time_days, 0))
    days_ahead = (resolve_weekday(preferred_day) - floor.weekday()) % 7
    return floor + timedelta(days=days_ahead)


def delivery_date_for(pickup_date: date, offset_days: int | None = None) -> date:
    """Delivery date for a pickup, DELIVERY_OFFSET_DAYS later by default."""
    if offset_days is None:
        offset_days = settings.DELIVERY_OFFSET_DAYS
    return pickup_date + timedelta(days=offset_days)

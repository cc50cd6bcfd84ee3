"""
Timezone helpers for evaluating notification windows in each user's local time.

The notification jobs tick on a fixed UTC cadence; every rule is checked
against the user's own clock, so a rule such as "Wednesday 18:00" matches in
exactly one hourly tick per user.
"""

from datetime import datetime, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .config import config, logger


COMMON_TIMEZONES: List[str] = [
    "Europe/Kyiv",
    "Europe/Brussels",
    "Europe/London",
    "Europe/Berlin",
    "Europe/Paris",
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "Asia/Tokyo",
    "Asia/Shanghai",
    "Australia/Sydney",
]

MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY, SATURDAY, SUNDAY = range(7)


def is_valid_timezone(name: Optional[str]) -> bool:
    if not name:
        return False
    try:
        ZoneInfo(name)
        return True
    except (ZoneInfoNotFoundError, ValueError):
        return False


def get_zone(name: Optional[str]) -> ZoneInfo:
    """Resolve ``name`` to a zone, falling back to the configured default."""
    if is_valid_timezone(name):
        return ZoneInfo(name)
    logger.warning(f"Invalid timezone '{name}', using {config.DEFAULT_TIMEZONE}")
    return ZoneInfo(config.DEFAULT_TIMEZONE)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_now(tz: Optional[str], now: Optional[datetime] = None) -> datetime:
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(get_zone(tz))


def is_hour_in_timezone(tz: Optional[str], hour: int, now: Optional[datetime] = None) -> bool:
    return local_now(tz, now).hour == hour


def day_of_week_in_timezone(tz: Optional[str], now: Optional[datetime] = None) -> int:
    """Local weekday, Monday == 0."""
    return local_now(tz, now).weekday()


def format_time_in_timezone(moment: datetime, tz: Optional[str], fmt: str = "%H:%M") -> str:
    return local_now(tz, moment).strftime(fmt)


def get_common_timezones() -> List[str]:
    return list(COMMON_TIMEZONES)

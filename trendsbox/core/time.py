"""Time helpers for the daily quota window."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from .settings import get_settings


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def quota_today() -> date:
    """Current quota day (calendar day in the configured timezone, UTC by default)."""
    tz = get_settings().tz
    if tz.upper() == "UTC":
        return utc_now().date()
    return utc_now().astimezone(ZoneInfo(tz)).date()

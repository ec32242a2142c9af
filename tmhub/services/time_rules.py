"""
Time helpers shared by the status, expiry and notification services.
Every instant is normalised to timezone-aware UTC before comparison.
"""
import math
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

import pytz
import structlog

logger = structlog.get_logger(__name__)

ONE_DAY = timedelta(days=1)


def get_now() -> datetime:
    """
    Current instant (UTC).

    This is the only place wall-clock time is read. Routes receive it as a
    dependency and hand it to the services explicitly.
    """
    return datetime.now(pytz.UTC)


def ensure_utc(dt: datetime) -> datetime:
    # SQLite hands back naive values for timezone-aware columns; they were written as UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=pytz.UTC)
    return dt.astimezone(pytz.UTC)


def coerce_instant(value: Any) -> Optional[datetime]:
    """
    Best-effort conversion of a stored date value to an aware UTC datetime.

    Accepts datetimes, dates, ISO-8601 strings (a trailing "Z" included) and
    epoch seconds. Returns None for anything missing or unparseable, never raises.
    """
    if value is None:
        return None
    try:
        if isinstance(value, datetime):
            return ensure_utc(value)
        if isinstance(value, date):
            return pytz.UTC.localize(datetime.combine(value, time.min))
        if isinstance(value, bool):
            raise TypeError("bool is not an instant")
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value, tz=pytz.UTC)
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            return ensure_utc(datetime.fromisoformat(text))
    except (TypeError, ValueError, OverflowError, OSError) as e:
        logger.debug("malformed_instant", value=repr(value), error=str(e))
        return None
    logger.debug("malformed_instant", value=repr(value), error="unsupported type")
    return None


def days_between(later: datetime, earlier: datetime) -> int:
    """
    Whole days from `earlier` to `later`, truncated toward zero.

    Partial days never count: 6.9 days is 6 and -0.5 days is 0.
    """
    return math.trunc((ensure_utc(later) - ensure_utc(earlier)) / ONE_DAY)


def utc_to_local(utc_datetime: datetime, timezone_str: str) -> datetime:
    """
    Convert a UTC datetime to the given timezone, falling back to UTC when
    the timezone name is unknown.
    """
    try:
        tz = pytz.timezone(timezone_str)
    except pytz.UnknownTimeZoneError:
        return ensure_utc(utc_datetime)
    return ensure_utc(utc_datetime).astimezone(tz)


def format_local_date(dt: datetime, timezone_str: str) -> str:
    """Render as e.g. "05 Mar 2024" in the tenant's timezone."""
    return utc_to_local(dt, timezone_str).strftime("%d %b %Y")

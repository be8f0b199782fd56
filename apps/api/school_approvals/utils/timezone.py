"""
Timezone Utilities.

Rules:
1. Database: Always store UTC
2. API: Accept and return ISO 8601 with offset
3. Comparisons: normalize both sides with to_utc() first, since some
   drivers (SQLite) hand back naive datetimes
"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

# UTC constant
UTC = timezone.utc


def utc_now() -> datetime:
    """
    Get current time in UTC (timezone-aware).

    Always use this instead of datetime.utcnow() which returns
    naive datetime.
    """
    return datetime.now(UTC)


def to_utc(dt: datetime, source_tz: Optional[str] = None) -> datetime:
    """
    Convert datetime to UTC.

    Naive datetimes are taken to be in source_tz, or UTC when omitted.
    """
    if dt.tzinfo is None:
        if source_tz:
            dt = dt.replace(tzinfo=ZoneInfo(source_tz))
        else:
            dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)

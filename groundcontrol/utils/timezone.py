"""
Timezone Utilities.

Golden Rules:
1. Database: Always store UTC
2. API: Return ISO 8601 (UTC)
3. Evaluation: compare aware datetimes only
"""

from datetime import datetime, timezone
from typing import Optional

# UTC constant
UTC = timezone.utc


def utc_now() -> datetime:
    """
    Get current time in UTC (timezone-aware).

    Always use this instead of datetime.utcnow() which returns
    naive datetime.
    """
    return datetime.now(UTC)


def to_utc(dt: datetime) -> datetime:
    """
    Convert datetime to UTC.

    Naive datetimes are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """to_utc() that passes None through. Handy for optional columns."""
    if dt is None:
        return None
    return to_utc(dt)

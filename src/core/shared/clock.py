"""Time helpers shared by the domain."""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def hours_between(start: datetime, end: Optional[datetime] = None) -> float:
    """Elapsed hours from ``start`` to ``end`` (now when omitted), two decimals."""
    end = end or utcnow()
    return round((end - start).total_seconds() / 3600, 2)


def ensure_aware(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_datetime(value) -> Optional[datetime]:
    """
    Accept a datetime or an ISO 8601 string and return an aware datetime.

    Raises:
        ValueError: If the string is not ISO 8601
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return ensure_aware(value)

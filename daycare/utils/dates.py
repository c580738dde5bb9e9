"""Date helpers shared by models, services and serializers."""
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union
import uuid


def utcnow() -> datetime:
    """
    Current UTC time as a naive datetime.

    Timestamps are stored without tzinfo and are always UTC, so expiry
    comparisons behave the same on PostgreSQL and SQLite.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def hours_from_now(hours: int) -> datetime:
    return utcnow() + timedelta(hours=hours)


def new_id() -> str:
    """Primary key generator for every table."""
    return str(uuid.uuid4())


def iso(value: Union[date, datetime, None]) -> Optional[str]:
    """Serialize a date/datetime for JSON responses (None stays None)."""
    if value is None:
        return None
    return value.isoformat()


def parse_date(value: Optional[str]) -> Optional[date]:
    """
    Parse an ISO date ('2021-05-04') or datetime string into a date.

    Raises:
        ValueError: If the string is not ISO formatted
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(value.replace('Z', '+00:00')).date() if 'T' in value else date.fromisoformat(value)

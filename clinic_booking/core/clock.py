from datetime import datetime, timezone
from typing import Callable

# Zero-argument callable returning the current time as naive UTC
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)

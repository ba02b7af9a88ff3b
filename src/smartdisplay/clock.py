"""Time helpers. Every component takes a `clock` callable so tests can drive time."""

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def rfc3339(value: Optional[datetime]) -> Optional[str]:
    """Format an aware datetime as RFC 3339 UTC with a `Z` suffix."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def seconds_between(start: datetime, end: datetime) -> int:
    """Whole seconds from start to end, clamped at zero."""
    return max(0, int((end - start).total_seconds()))

from datetime import datetime, timezone
from typing import Callable, Optional

# Anything returning the current aware UTC time. Services take one of these
# instead of reading the wall clock so tests can freeze or advance time.
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO timestamp as stored in the CSV tables. Naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_timestamp(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""

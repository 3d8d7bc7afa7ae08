"""
Timestamp helpers.

All datetimes inside the system are timezone-aware UTC; storage keeps them
as ISO-8601 strings.
"""

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Optional

# India Standard Time; fixed offset, no daylight saving
IST = timezone(timedelta(hours=5, minutes=30), name="Asia/Kolkata")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime, assume_tz: tzinfo = timezone.utc) -> datetime:
    """Attach ``assume_tz`` to naive datetimes; leave aware ones alone."""
    if value.tzinfo is None:
        return value.replace(tzinfo=assume_tz)
    return value


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return ensure_aware(value).astimezone(timezone.utc).isoformat()


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return ensure_aware(datetime.fromisoformat(value))


def parse_datetime(value: Any, assume_tz: tzinfo = timezone.utc) -> Optional[datetime]:
    """
    Parse the timestamp shapes vendors send.

    Accepts datetimes, epoch seconds (int/float or numeric strings), ISO-8601
    strings and ``"YYYY-MM-DD HH:MM:SS"`` strings. Returns None for empty or
    unparseable input.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return ensure_aware(value, assume_tz)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(int(value), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    text = str(value).strip()
    if text.isdigit():
        return parse_datetime(int(text), assume_tz)
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return ensure_aware(datetime.fromisoformat(text.replace(' ', 'T', 1)), assume_tz)
    except ValueError:
        return None


def to_epoch_seconds(value: datetime) -> int:
    return int(ensure_aware(value).timestamp())


def parse_local_datetime(value: Any) -> Optional[datetime]:
    """``parse_datetime`` for vendor wall-clock strings, which carry no offset and are IST."""
    return parse_datetime(value, assume_tz=IST)

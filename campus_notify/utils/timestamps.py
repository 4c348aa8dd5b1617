"""UTC timestamp helpers.

Notification rows store ``created_at`` as fixed-width ISO-8601 strings, so the
formatting here doubles as the storage format: lexical order of the stored
strings matches chronological order.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    Naive datetimes are assumed to already be UTC.

    Example:
        >>> naive = datetime(2025, 11, 4, 12, 0, 0)
        >>> ensure_utc(naive).tzinfo == timezone.utc
        True
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def format_timestamp(dt: datetime, include_microseconds: bool = False) -> str:
    """Format a datetime as an ISO-8601 UTC string with a 'Z' suffix.

    Example:
        >>> format_timestamp(datetime(2025, 11, 4, 12, 0, 0, tzinfo=timezone.utc))
        '2025-11-04T12:00:00Z'
    """
    dt_utc = ensure_utc(dt)
    if dt_utc is None:
        return ""

    if include_microseconds:
        return dt_utc.strftime(STORAGE_FORMAT)
    return dt_utc.strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_iso_datetime(iso_string: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string into a UTC datetime.

    Accepts a trailing 'Z', explicit offsets, naive timestamps and bare dates.
    Returns None for empty or unparseable input.
    """
    if not iso_string or not iso_string.strip():
        return None

    cleaned = iso_string.strip()
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(cleaned))
    except ValueError:
        pass

    try:
        return ensure_utc(datetime.strptime(iso_string.strip(), "%Y-%m-%d"))
    except ValueError:
        return None


def cutoff_before(days: int, now: Optional[datetime] = None) -> datetime:
    """Return the instant ``days`` days before ``now`` (defaults to utc_now()).

    Example:
        >>> now = datetime(2025, 11, 30, tzinfo=timezone.utc)
        >>> cutoff_before(30, now)
        datetime.datetime(2025, 10, 31, 0, 0, tzinfo=datetime.timezone.utc)
    """
    reference = ensure_utc(now) if now is not None else utc_now()
    return reference - timedelta(days=days)

"""Datetime utilities for timezone-aware UTC timestamps.

SQLite stores DateTime columns without timezone information, so values read
back from the database are naive. Every date comparison in the engine goes
through ensure_utc() so naive and aware values never meet.

Usage:
    from bom_engine.utils.datetime_utils import utc_now, ensure_utc

    timestamp = utc_now()
    effective = ensure_utc(item.effective_date)
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to timezone-aware UTC.

    Naive values are assumed to already be UTC (the way they were written).

    Args:
        value: Datetime to normalize, or None

    Returns:
        Aware UTC datetime, or None if value was None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_within_window(
    effective_date: Optional[datetime],
    expiry_date: Optional[datetime],
    now: Optional[datetime] = None,
    inclusive_expiry: bool = True,
) -> bool:
    """Check whether `now` falls inside an effective/expiry window.

    Args:
        effective_date: Start of the window (None means always started)
        expiry_date: End of the window (None means open-ended)
        now: Reference time (defaults to utc_now())
        inclusive_expiry: If True, a window expiring exactly at `now` is still open

    Returns:
        True if effective_date <= now and the window has not expired
    """
    now = ensure_utc(now) or utc_now()
    effective = ensure_utc(effective_date)
    expiry = ensure_utc(expiry_date)

    if effective is not None and effective > now:
        return False
    if expiry is None:
        return True
    return expiry >= now if inclusive_expiry else expiry > now

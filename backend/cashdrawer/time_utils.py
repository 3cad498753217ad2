# Overview: Canonical UTC clock and timestamp serialization for shifts and audit entries.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

# Anything returning the current naive-UTC datetime; ShiftManager takes one so
# tests can pin timestamps.
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Default shift clock: naive UTC, as stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Render a shift timestamp as ISO-8601 with trailing 'Z', to the second.

    Naive values are UTC by convention; None stays None so open shifts
    serialize end_time as null.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")

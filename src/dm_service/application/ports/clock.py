"""Time source for message timestamps."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol

# PostgreSQL timestamptz resolution
TICK = timedelta(microseconds=1)


class Clock(Protocol):
    def now(self) -> datetime:
        """Current UTC time. May stall or step backwards."""
        ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def next_created_at(now: datetime, last: datetime | None) -> datetime:
    """Strictly increasing timestamp within a conversation, even if the clock stalls."""
    if last is not None and now <= last:
        return last + TICK
    return now

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class OutboxRecord:
    """A claimed outbox row as seen by the worker."""

    id: int
    event_type: str
    payload: dict[str, Any]
    attempts: int
    aggregate_key: str | None = None


class OutboxWriter(Protocol):
    async def add(
        self,
        event_type: str,
        payload: dict[str, Any],
        *,
        aggregate_key: str | None = None,
    ) -> None: ...

    async def claim_batch(self, batch_size: int, max_attempts: int) -> list[OutboxRecord]:
        """Mark up to ``batch_size`` due rows as processing and return them, oldest first."""
        ...

    async def mark_sent(self, ids: list[int]) -> None: ...

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None: ...

    async def mark_dead(self, record_id: int) -> None:
        """Stop retrying ``record_id``; the row is kept for inspection."""
        ...

    async def release_stale(self, older_than: timedelta) -> int:
        """Return rows stuck in processing longer than ``older_than`` to the queue."""
        ...

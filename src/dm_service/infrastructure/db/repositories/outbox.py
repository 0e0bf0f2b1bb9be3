from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dm_service.application.repositories.outbox import OutboxRecord
from dm_service.domain.value_objects.enums import OutboxStatus
from dm_service.infrastructure.db.models.outbox import OutboxMessageModel

_DUE = (OutboxStatus.PENDING.value, OutboxStatus.FAILED.value)


class OutboxWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        event_type: str,
        payload: dict[str, Any],
        *,
        aggregate_key: str | None = None,
    ) -> None:
        self._session.add(
            OutboxMessageModel(
                event_type=event_type,
                aggregate_key=aggregate_key,
                payload=payload,
            )
        )
        await self._session.flush()

    async def claim_batch(self, batch_size: int, max_attempts: int) -> list[OutboxRecord]:
        # SKIP LOCKED lets several workers drain the table without double sends.
        due = (
            select(OutboxMessageModel.id)
            .where(
                OutboxMessageModel.status.in_(_DUE),
                OutboxMessageModel.attempts < max_attempts,
                (
                    OutboxMessageModel.next_retry_at.is_(None)
                    | (OutboxMessageModel.next_retry_at <= func.now())
                ),
            )
            .order_by(OutboxMessageModel.id.asc())
            .limit(batch_size)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        result = await self._session.execute(
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id.in_(due))
            .values(status=OutboxStatus.PROCESSING.value, updated_at=func.now())
            .returning(
                OutboxMessageModel.id,
                OutboxMessageModel.event_type,
                OutboxMessageModel.payload,
                OutboxMessageModel.attempts,
                OutboxMessageModel.aggregate_key,
            )
        )
        records = [
            OutboxRecord(
                id=row.id,
                event_type=row.event_type,
                payload=row.payload,
                attempts=row.attempts,
                aggregate_key=row.aggregate_key,
            )
            for row in result
        ]
        records.sort(key=lambda r: r.id)
        return records

    async def mark_sent(self, ids: list[int]) -> None:
        if not ids:
            return
        await self._session.execute(
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id.in_(ids))
            .values(status=OutboxStatus.SENT.value, published_at=func.now())
        )

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None:
        await self._session.execute(
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id == record_id)
            .values(
                status=OutboxStatus.FAILED.value,
                attempts=OutboxMessageModel.attempts + 1,
                next_retry_at=next_retry_at,
            )
        )

    async def mark_dead(self, record_id: int) -> None:
        await self._session.execute(
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id == record_id)
            .values(
                status=OutboxStatus.DEAD.value,
                attempts=OutboxMessageModel.attempts + 1,
                next_retry_at=None,
            )
        )

    async def release_stale(self, older_than: timedelta) -> int:
        result = await self._session.execute(
            update(OutboxMessageModel)
            .where(
                OutboxMessageModel.status == OutboxStatus.PROCESSING.value,
                OutboxMessageModel.updated_at < func.now() - older_than,
            )
            .values(status=OutboxStatus.FAILED.value)
        )
        return result.rowcount or 0

"""Bounded exponential backoff for transient failures."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from dm_service.application.exceptions import TransientIOError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 5.0

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> T:
        """Call ``operation`` until it succeeds, retrying only TransientIOError.

        The last TransientIOError propagates once ``attempts`` calls have failed.
        """
        for attempt in range(self.attempts):
            try:
                return await operation()
            except TransientIOError:
                if attempt + 1 >= self.attempts:
                    raise
                delay = self.delay_for(attempt)
                logger.info("Transient failure (attempt %d/%d), retrying in %.2fs",
                            attempt + 1, self.attempts, delay)
                await sleep(delay)
        raise AssertionError("unreachable: attempts must be >= 1")

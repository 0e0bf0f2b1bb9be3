"""One-time script: create the messaging tables."""
from __future__ import annotations

import asyncio
import logging

from dm_service.infrastructure.db.session import create_schema, dispose_engine
from dm_service.logging_setup import configure_logging

logger = logging.getLogger(__name__)


async def _run() -> None:
    try:
        await create_schema()
        logger.info("Schema is up to date")
    finally:
        await dispose_engine()


def main() -> None:
    configure_logging()
    asyncio.run(_run())


if __name__ == "__main__":
    main()

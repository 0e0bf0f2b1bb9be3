"""Entrypoint: python -m dm_service"""
from __future__ import annotations

import uvicorn

from dm_service.config import settings
from dm_service.logging_setup import configure_logging


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(
        "dm_service.app:create_app",
        factory=True,
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        # keep the root handler installed above
        log_config=None,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()

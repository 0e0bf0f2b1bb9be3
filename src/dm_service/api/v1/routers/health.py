from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from dm_service.config import settings
from dm_service.infrastructure.db.session import AsyncSessionLocal

router = APIRouter(tags=["health"])


async def _postgres() -> None:
    async with AsyncSessionLocal() as session:
        await session.execute(text("SELECT 1"))


async def _redis(request: Request) -> None:
    await request.app.state.redis.ping()


async def _uploads() -> None:
    if not await asyncio.to_thread(Path(settings.UPLOAD_DIR).is_dir):
        raise FileNotFoundError(f"{settings.UPLOAD_DIR} is not a directory")


async def _probe(name: str, check: Awaitable[None]) -> str | None:
    try:
        await asyncio.wait_for(check, settings.READINESS_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        return f"{name}: timed out"
    except Exception as exc:  # noqa: BLE001
        return f"{name}: {exc}"
    return None


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    """Ready when the message store, the fan-out bus and attachment storage all answer."""
    results = await asyncio.gather(
        _probe("postgres", _postgres()),
        _probe("redis", _redis(request)),
        _probe("uploads", _uploads()),
    )
    errors = [r for r in results if r is not None]
    if errors:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "errors": errors},
        )
    return JSONResponse(content={"status": "ready"})

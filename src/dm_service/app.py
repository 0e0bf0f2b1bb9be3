from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import InterfaceError, OperationalError

from dm_service.api.deps import close_identity_resolver
from dm_service.api.middleware.request_context import RequestContextMiddleware
from dm_service.api.v1.routers import conversations, health, messages, ws
from dm_service.application.exceptions import AppError, TransientIOError
from dm_service.config import settings
from dm_service.domain.events.message_created import EVENT_TYPE as MESSAGE_CREATED
from dm_service.infrastructure.bus.redis_pubsub import RedisPubSubSubscriber
from dm_service.infrastructure.db.session import dispose_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    logger.info("Redis connection pool created")

    subscriber = RedisPubSubSubscriber(
        app.state.redis,
        settings.REDIS_PUBSUB_CHANNEL,
        reconnect_max=settings.PUBSUB_RECONNECT_MAX_SECONDS,
    )
    # every API process forwards fan-out events to the sockets it holds
    subscriber.on(MESSAGE_CREATED, ws.get_manager().deliver_message_created)
    await subscriber.start()
    app.state.pubsub_subscriber = subscriber

    try:
        yield
    finally:
        await subscriber.stop()
        await close_identity_resolver()
        await app.state.redis.aclose()
        await dispose_engine()
        logger.info("Shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Direct Messaging Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware, slow_ms=settings.SLOW_REQUEST_MS)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(conversations.router)
    app.include_router(messages.router)
    app.include_router(ws.router)

    app.mount(
        settings.UPLOAD_URL_PREFIX,
        StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
        name="uploads",
    )

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(req: Request, exc: AppError) -> JSONResponse:
        if isinstance(exc, TransientIOError):
            logger.warning("Transient failure during %s %s: %s", req.method, req.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(OperationalError)
    @app.exception_handler(InterfaceError)
    async def _db_unavailable(req: Request, exc: Exception) -> JSONResponse:
        logger.warning("Database unavailable during %s %s: %s", req.method, req.url.path, exc)
        return JSONResponse(
            status_code=TransientIOError.status_code,
            content={"detail": "Storage temporarily unavailable"},
        )

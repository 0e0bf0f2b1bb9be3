from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000

    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300
    DB_APPLICATION_NAME: str = "dm-service"
    DB_LOCK_TIMEOUT_MS: int = 5000

    REDIS_URL: str = "redis://localhost:6379/0"

    JWT_SECRET: str = ""
    JWT_VERIFY_MODE: Literal["hs256", "jwks"] = "hs256"
    JWT_ALGORITHM: str = "HS256"
    JWKS_URL: str | None = None
    JWKS_ALGORITHMS: list[str] = ["RS256", "ES256"]
    JWT_AUDIENCE: str | None = None
    JWT_LEEWAY_SECONDS: int = 0

    CORS_ORIGINS: list[str] = ["*"]

    LOG_LEVEL: str = "INFO"

    OUTBOX_POLL_INTERVAL: float = 0.5
    OUTBOX_BATCH_SIZE: int = 50
    OUTBOX_MAX_ATTEMPTS: int = 5
    OUTBOX_CLAIM_TIMEOUT_SECONDS: int = 60

    WS_HEARTBEAT_SECONDS: int = 30

    REDIS_PUBSUB_CHANNEL: str = "dm.fanout"
    NOTIFICATIONS_STREAM: str = "notifications.events"
    NOTIFICATIONS_STREAM_MAXLEN: int = 100_000
    PUBSUB_RECONNECT_MAX_SECONDS: float = 30.0

    SLOW_REQUEST_MS: float = 1000.0
    READINESS_TIMEOUT_SECONDS: float = 2.0

    HISTORY_DEFAULT_LIMIT: int = 50
    HISTORY_MAX_LIMIT: int = 200

    UPLOAD_DIR: str = "uploads"
    UPLOAD_URL_PREFIX: str = "/uploads"
    UPLOAD_MAX_FILES: int = 5
    UPLOAD_MAX_BYTES: int = 50 * 1024 * 1024
    UPLOAD_ALLOWED_TYPES: list[str] = [
        "image/jpeg",
        "image/png",
        "image/webp",
        "video/mp4",
        "video/mpeg",
        "video/quicktime",
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ]

    IDENTITY_SERVICE_URL: str | None = None
    IDENTITY_TIMEOUT_SECONDS: float = 3.0

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Settings for a messaging client session."""

    base_url: str
    token: str
    page_size: int = 50
    timeout_seconds: float = 10.0
    retry_attempts: int = 3
    retry_base_delay: float = 0.5
    retry_max_delay: float = 5.0

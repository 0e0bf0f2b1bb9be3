from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from dm_service.logging_setup import correlation_id_ctx

logger = logging.getLogger(__name__)

HEADER = "X-Request-ID"
MAX_LENGTH = 64


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Adopt the caller's request id (or mint one), echo it back and log latency.

    Requests slower than ``slow_ms`` are logged at WARNING.
    """

    def __init__(self, app: ASGIApp, *, slow_ms: float = 1000.0) -> None:
        super().__init__(app)
        self._slow_ms = slow_ms

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        cid = (request.headers.get(HEADER) or uuid.uuid4().hex)[:MAX_LENGTH]
        token = correlation_id_ctx.set(cid)
        start = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - start) * 1000
            response.headers[HEADER] = cid
            logger.log(
                logging.WARNING if elapsed_ms >= self._slow_ms else logging.INFO,
                "%s %s %s %.1fms",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
            )
            return response
        finally:
            correlation_id_ctx.reset(token)

import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


logger = logging.getLogger("app.middleware")

QUIET_PATHS = frozenset({"/health"})


class LoggingMiddleware(BaseHTTPMiddleware):
    """Access log for REST calls. WebSocket traffic never passes through here."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        if request.url.path in QUIET_PATHS:
            return response

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={
                "duration_ms": duration_ms,
                "status": response.status_code,
                "client": request.client.host if request.client else None,
            },
        )
        return response

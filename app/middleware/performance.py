"""Request timing middleware."""

import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.utils.constants import API_PREFIX

logger = logging.getLogger(__name__)


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Logs request duration and sets the X-Process-Time header.

    Requests slower than SLOW_REQUEST_THRESHOLD are logged as warnings.
    Event streams stay open until the client leaves, so they are timed
    only up to the first byte and never count as slow.
    """

    SLOW_REQUEST_THRESHOLD = 0.5  # 500ms

    EXCLUDED_PATHS = {
        "/health",
        "/",
    }

    STREAMING_PATHS = {
        f"{API_PREFIX}/onboarding/events",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = time.perf_counter() - start_time

        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        path = request.url.path
        if path in self.EXCLUDED_PATHS:
            return response

        line = f"{request.method} {path} {response.status_code} - {process_time:.3f}s"
        if path in self.STREAMING_PATHS:
            logger.debug(f"[STREAM] {line}")
        elif process_time >= self.SLOW_REQUEST_THRESHOLD:
            logger.warning(f"[SLOW REQUEST] {line}")
        else:
            logger.debug(f"[REQUEST] {line}")

        return response

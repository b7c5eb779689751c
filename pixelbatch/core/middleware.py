"""
Request logging and rate limiting for the batch API
"""

import logging
import time
import uuid
from collections import defaultdict, deque
from typing import Deque, Dict, Iterable, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory sliding-window limit on batch submissions per client IP.

    Only paths starting with one of ``limited_prefixes`` count; health,
    presets and docs are never limited.
    """

    def __init__(
        self,
        app,
        calls: int = 10,
        period: int = 60,
        limited_prefixes: Iterable[str] = ("/api/v1/batches",),
    ):
        super().__init__(app)
        self.calls = calls
        self.period = period
        self.limited_prefixes: Tuple[str, ...] = tuple(limited_prefixes)
        self.clients: Dict[str, Deque[float]] = defaultdict(deque)

    def is_limited(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.limited_prefixes)

    async def dispatch(self, request: Request, call_next):
        if not self.is_limited(request.url.path):
            return await call_next(request)

        client_ip = request.client.host if request.client is not None else "unknown"
        now = time.monotonic()
        window = self.clients[client_ip]
        while window and window[0] <= now - self.period:
            window.popleft()

        if len(window) >= self.calls:
            logger.warning("Rate limit exceeded for IP: %s", client_ip)
            return JSONResponse(
                status_code=429,
                content={
                    "detail": {
                        "error": "Rate limit exceeded",
                        "details": f"Maximum {self.calls} batches per {self.period} seconds",
                    }
                },
            )

        window.append(now)
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request and tag the response with a request id"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        client_host = request.client.host if request.client is not None else "unknown"
        logger.info(
            "[%s] Request: %s %s from %s",
            request_id,
            request.method,
            request.url.path,
            client_host,
        )

        response = await call_next(request)

        # Streaming responses are logged when headers go out, not when the body ends
        logger.info(
            "[%s] Response: %d in %.3fs",
            request_id,
            response.status_code,
            time.perf_counter() - start_time,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

import math
import time

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from ..pipeline.config import API_PREFIX
from .envelope import error_response
from .requestID import client_address

RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."


def under_prefix(path: str, prefix: str) -> bool:
    return path == prefix.rstrip("/") or path.startswith(prefix)


class FixedWindowRateLimitMiddleware(BaseHTTPMiddleware):
    """At most ``max_requests`` per client address per window, on ``prefix`` paths only."""

    def __init__(self, app, max_requests: int = 10, window_seconds: int = 60, prefix: str = API_PREFIX):
        super().__init__(app)
        self.prefix = prefix
        self.item = RateLimitItemPerSecond(max_requests, window_seconds)
        self.limiter = FixedWindowRateLimiter(MemoryStorage())
        logger.info(f"[RATE] {max_requests} requests per {window_seconds}s on {prefix}*")

    async def dispatch(self, request, call_next):
        if not under_prefix(request.url.path, self.prefix):
            return await call_next(request)

        identity = client_address(request)
        if self.limiter.hit(self.item, "api", identity):
            return await call_next(request)

        reset_time, _remaining = self.limiter.get_window_stats(self.item, "api", identity)
        retry_after = max(1, math.ceil(reset_time - time.time()))
        logger.warning(f"[RATE] {identity} exceeded {self.item} on {request.url.path}, retry in {retry_after}s")
        return error_response(429, RATE_LIMIT_MESSAGE, headers={"Retry-After": str(retry_after)})

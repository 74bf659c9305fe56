import hmac
from typing import Iterable, Optional

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse

from ..pipeline.config import API_PREFIX
from .envelope import error_response
from .rateLimiter import under_prefix
from .requestID import client_address

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, max_bytes: int = 10 * 1024):
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request, call_next):
        length = request.headers.get("content-length")
        if length is not None:
            try:
                too_large = int(length) > self.max_bytes
            except ValueError:
                return error_response(400, "Invalid Content-Length header")
            if too_large:
                logger.warning(f"[BODY] Rejected {length} byte body from {client_address(request)}")
                return error_response(413, f"Request body exceeds {self.max_bytes} bytes")
        return await call_next(request)


def api_key_matches(expected: Optional[str], supplied: Optional[str]) -> bool:
    if expected is None:
        return True
    if supplied is None:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """Requires ``x-api-key`` on ``prefix`` paths when a key is configured."""

    def __init__(self, app, api_key: Optional[str] = None, prefix: str = API_PREFIX):
        super().__init__(app)
        self.api_key = api_key
        self.prefix = prefix

    async def dispatch(self, request, call_next):
        if self.api_key is None or not under_prefix(request.url.path, self.prefix):
            return await call_next(request)
        if not api_key_matches(self.api_key, request.headers.get("x-api-key")):
            logger.warning(f"[AUTH] Rejected {request.method} {request.url.path} from {client_address(request)}")
            return error_response(401, "Unauthorized: Invalid API key")
        return await call_next(request)


class OriginGateMiddleware(BaseHTTPMiddleware):
    """Refuses browser requests whose ``Origin`` is not allow-listed; requests without one pass."""

    def __init__(self, app, allowed_origins: Iterable[str] = ()):
        super().__init__(app)
        self.allowed_origins = frozenset(allowed_origins)

    async def dispatch(self, request, call_next):
        origin = request.headers.get("origin")
        if origin is None or origin in self.allowed_origins:
            return await call_next(request)
        logger.warning(f"[CORS] Rejected {request.method} {request.url.path} from origin {origin!r}")
        return PlainTextResponse("Not allowed by CORS", status_code=403)

import re
import time
import uuid

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from ..pipeline.config import REQUEST_ID_SLICE_SIZE

_CLIENT_REQUEST_ID = re.compile(r"^[A-Za-z0-9\-]{1,64}$")


def reqID():
    return str(uuid.uuid4())[:REQUEST_ID_SLICE_SIZE]


def client_address(request) -> str:
    return request.client.host if request.client else "-"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags every request with an id and writes the access log."""

    async def dispatch(self, request, call_next):
        supplied = request.headers.get("X-Request-ID", "")
        request_id = supplied if _CLIENT_REQUEST_ID.match(supplied) else reqID()
        request.state.request_id = request_id

        start = time.perf_counter()
        logger.info(
            f"[ACCESS] Request {request_id} started: {request.method} {request.url.path} "
            f"from {client_address(request)}"
        )
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"[ACCESS] Request {request_id} crashed after {time.perf_counter() - start:.3f}s")
            raise

        response.headers["X-Request-ID"] = request_id
        logger.info(
            f"[ACCESS] Request {request_id} finished: {response.status_code} "
            f"in {time.perf_counter() - start:.3f}s \"{request.headers.get('user-agent', '-')}\""
        )
        return response

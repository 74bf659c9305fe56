import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..commons.envelope import error_response
from ..commons.rateLimiter import FixedWindowRateLimitMiddleware
from ..commons.requestID import RequestIDMiddleware
from ..commons.security import (
    ApiKeyMiddleware,
    BodySizeLimitMiddleware,
    OriginGateMiddleware,
    SecurityHeadersMiddleware,
)
from ..pipeline.config import Settings
from ..searching.browserSession import BrowserSessionManager
from ..searching.transcriptExtractor import TranscriptExtractor
from .gateways import health, transcript

logger = logging.getLogger("transcript-api")


class TranscriptAPI:

    def __init__(
        self,
        settings: Settings,
        session_manager: Optional[BrowserSessionManager] = None,
        extractor: Optional[TranscriptExtractor] = None,
    ):
        self.settings = settings
        self.session_manager = session_manager or BrowserSessionManager(settings)
        self.extractor = extractor or TranscriptExtractor.from_settings(settings)

        self.app = FastAPI(title="Transcript API", lifespan=self._lifespan)
        self.app.state.settings = settings
        self.app.state.session_manager = self.session_manager
        self.app.state.extractor = self.extractor

        self._setup_middleware()
        self._setup_cors()
        self._setup_request_logging()
        self._register_routes()
        self._register_error_handlers()

    def _setup_middleware(self):
        # innermost first; the last middleware added runs first
        self.app.add_middleware(ApiKeyMiddleware, api_key=self.settings.api_key)
        self.app.add_middleware(BodySizeLimitMiddleware, max_bytes=self.settings.max_body_bytes)
        self.app.add_middleware(
            FixedWindowRateLimitMiddleware,
            max_requests=self.settings.rate_limit_max,
            window_seconds=self.settings.rate_limit_window,
        )

    def _setup_cors(self):
        # preflights are answered by CORSMiddleware before reaching the gate
        self.app.add_middleware(OriginGateMiddleware, allowed_origins=self.settings.allowed_origins)
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=list(self.settings.allowed_origins),
            allow_methods=["GET", "OPTIONS"],
            allow_headers=["x-api-key", "content-type", "x-request-id"],
            expose_headers=["X-Request-ID", "Retry-After"],
        )

    def _setup_request_logging(self):
        self.app.add_middleware(SecurityHeadersMiddleware)
        self.app.add_middleware(RequestIDMiddleware)

    def _register_routes(self):
        self.app.add_api_route("/health", health.health_check, methods=["GET"])
        self.app.add_api_route("/api/transcript", transcript.get_transcript, methods=["GET"])

    def _register_error_handlers(self):
        @self.app.exception_handler(StarletteHTTPException)
        async def http_error(request: Request, exc: StarletteHTTPException):
            return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

        @self.app.exception_handler(RequestValidationError)
        async def validation_error(request: Request, exc: RequestValidationError):
            return error_response(400, "Invalid request parameters")

        @self.app.exception_handler(Exception)
        async def internal_error(request: Request, exc: Exception):
            request_id = getattr(request.state, "request_id", "-")
            logger.error(f"[{request_id}] Internal error: {exc}", exc_info=exc)
            return error_response(500, "Internal server error")

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        logger.info("[APP] Transcript API ready")
        if not self.settings.api_key_required:
            logger.warning("[APP] Running without API_KEY, /api/ is open to anyone allowed through CORS")
        if not self.settings.allowed_origins:
            logger.info("[APP] ALLOWED_ORIGINS is empty, only non-browser clients can call the API")
        try:
            yield
        finally:
            logger.info("[APP] Shutting down Transcript API...")
            await self.session_manager.shutdown()

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        host = host or self.settings.host
        port = port or self.settings.port
        logger.info("[APP] Starting Transcript API...")
        logger.info(f"[APP] Listening on http://{host}:{port}")
        uvicorn.run(
            self.app,
            host=host,
            port=port,
            proxy_headers=True,
            forwarded_allow_ips=",".join(self.settings.trusted_proxies),
            log_level=self.settings.log_level.lower(),
        )


def create_app(
    settings: Optional[Settings] = None,
    session_manager: Optional[BrowserSessionManager] = None,
    extractor: Optional[TranscriptExtractor] = None,
) -> TranscriptAPI:
    return TranscriptAPI(settings or Settings(), session_manager=session_manager, extractor=extractor)

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Set

from loguru import logger
from playwright.async_api import async_playwright

from ..pipeline.config import REQUEST_ID_SLICE_SIZE, VIEWPORT, Settings
from .errors import BrowserLaunchError, SessionCapacityError
from .transcriptPage import PlaywrightTranscriptPage, TranscriptPage


class SessionSlots:
    """Caps how many browser sessions may be open at once."""

    def __init__(self, max_sessions: int, timeout: float = 30.0):
        self.max_sessions = max_sessions
        self.timeout = timeout
        self.semaphore: Optional[asyncio.Semaphore] = None
        self.in_use = 0
        self.stats = {
            "total_requests": 0,
            "total_rejected": 0,
            "total_waited": 0.0,
        }
        logger.info(f"[SESSION] Limiting browser sessions to {max_sessions} slots")

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        start_time = time.time()
        self.stats["total_requests"] += 1
        try:
            await self._acquire()
        except asyncio.TimeoutError:
            self.stats["total_rejected"] += 1
            logger.error(f"[SESSION] No free browser slot after {self.timeout:g}s")
            raise SessionCapacityError(
                f"All {self.max_sessions} browser sessions are busy, try again later"
            )

        waited_time = time.time() - start_time
        self.stats["total_waited"] += waited_time
        if waited_time > 1.0:
            logger.warning(f"[SESSION] Long wait: {waited_time:.2f}s for a browser slot")

        self.in_use += 1
        try:
            yield
        finally:
            self.in_use -= 1
            self.semaphore.release()

    async def _acquire(self):
        # created on first use so it belongs to the serving event loop
        if self.semaphore is None:
            self.semaphore = asyncio.Semaphore(self.max_sessions)
        acquire = asyncio.ensure_future(self.semaphore.acquire())
        try:
            await asyncio.wait_for(asyncio.shield(acquire), timeout=self.timeout)
        except asyncio.TimeoutError:
            # the permit may have been granted as the timeout fired
            acquire.cancel()
            try:
                await acquire
            except asyncio.CancelledError:
                pass
            else:
                self.semaphore.release()
            raise


class BrowserSession:
    """One browser process plus one page, owned by a single request."""

    def __init__(self, playwright, browser, context, page: TranscriptPage):
        self.session_id = str(uuid.uuid4())[:REQUEST_ID_SLICE_SIZE]
        self.playwright = playwright
        self.browser = browser
        self.context = context
        self.page = page
        self.opened_at = time.perf_counter()
        self.closed = False

    async def close(self):
        if self.closed:
            return
        self.closed = True
        try:
            if self.browser:
                await self.browser.close()
        except Exception as e:
            logger.warning(f"[SESSION] Failed to close browser for session {self.session_id}: {e}")
        try:
            if self.playwright:
                await self.playwright.stop()
        except Exception as e:
            logger.warning(f"[SESSION] Failed to stop playwright for session {self.session_id}: {e}")
        logger.info(
            f"[SESSION] Closed session {self.session_id} after "
            f"{time.perf_counter() - self.opened_at:.2f}s"
        )


class BrowserSessionManager:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.active: Set[BrowserSession] = set()
        self.slots: Optional[SessionSlots] = None
        if settings.max_concurrent_sessions > 0:
            self.slots = SessionSlots(settings.max_concurrent_sessions, settings.session_queue_timeout)

    @property
    def active_count(self) -> int:
        return len(self.active)

    async def acquire(self) -> BrowserSession:
        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(
                headless=self.settings.headless,
                args=list(self.settings.chromium_args),
                executable_path=self.settings.chromium_path or None,
            )
        except Exception as e:
            await playwright.stop()
            logger.error(f"[SESSION] Browser launch failed: {e}")
            raise BrowserLaunchError(f"Failed to launch browser: {e}") from e

        try:
            context = await browser.new_context(user_agent=self.settings.user_agent, viewport=VIEWPORT)
            page = await context.new_page()
        except Exception as e:
            await browser.close()
            await playwright.stop()
            raise BrowserLaunchError(f"Failed to open browser page: {e}") from e

        session = BrowserSession(playwright, browser, context, PlaywrightTranscriptPage(page))
        self.active.add(session)
        logger.info(f"[SESSION] Opened session {session.session_id}. Active sessions: {self.active_count}")
        return session

    async def release(self, session: BrowserSession):
        try:
            await session.close()
        finally:
            self.active.discard(session)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[BrowserSession]:
        if self.slots is None:
            async with self._scoped() as session:
                yield session
        else:
            async with self.slots.slot():
                async with self._scoped() as session:
                    yield session

    @asynccontextmanager
    async def _scoped(self) -> AsyncIterator[BrowserSession]:
        session = await self.acquire()
        try:
            yield session
        finally:
            await self.release(session)

    async def shutdown(self):
        if not self.active:
            return
        logger.warning(f"[SESSION] Closing {self.active_count} sessions left open at shutdown")
        for session in list(self.active):
            await self.release(session)

    def get_status(self) -> Dict:
        status = {
            "active_sessions": self.active_count,
            "max_sessions": self.settings.max_concurrent_sessions or None,
        }
        if self.slots is not None:
            status["slots"] = dict(self.slots.stats, in_use=self.slots.in_use)
        return status

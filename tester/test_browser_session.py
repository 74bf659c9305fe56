"""
Browser session lifecycle against a mocked Playwright: launch flags,
executable override, guaranteed close, and the optional slot limit.
"""
import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest

from transcriptapi.pipeline.config import Settings
from transcriptapi.searching import browserSession
from transcriptapi.searching.browserSession import BrowserSession, BrowserSessionManager, SessionSlots
from transcriptapi.searching.errors import BrowserLaunchError, SessionCapacityError
from transcriptapi.searching.transcriptPage import PlaywrightTranscriptPage


class FakePlaywrightStarter:
    def __init__(self, playwright):
        self.playwright = playwright

    async def start(self):
        return self.playwright


@pytest.fixture
def playwright_mocks(monkeypatch):
    page = MagicMock(name="page")
    context = MagicMock(name="context")
    context.new_page = AsyncMock(return_value=page)
    browser = MagicMock(name="browser")
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()
    playwright = MagicMock(name="playwright")
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()

    monkeypatch.setattr(browserSession, "async_playwright", lambda: FakePlaywrightStarter(playwright))
    return playwright, browser, context, page


async def test_acquire_launches_headless_chromium_with_sandbox_flags(playwright_mocks):
    playwright, browser, context, page = playwright_mocks
    settings = Settings()
    manager = BrowserSessionManager(settings)

    session = await manager.acquire()

    kwargs = playwright.chromium.launch.call_args.kwargs
    assert kwargs["headless"] is True
    assert "--no-sandbox" in kwargs["args"]
    assert "--disable-setuid-sandbox" in kwargs["args"]
    assert kwargs["executable_path"] is None
    assert browser.new_context.call_args.kwargs["user_agent"] == settings.user_agent
    assert isinstance(session.page, PlaywrightTranscriptPage)
    assert session.page.page is page
    assert manager.active_count == 1

    await manager.release(session)
    assert manager.active_count == 0


async def test_acquire_uses_configured_executable(playwright_mocks):
    playwright, _, _, _ = playwright_mocks
    manager = BrowserSessionManager(replace(Settings(), chromium_path="/usr/bin/chromium"))

    await manager.acquire()

    assert playwright.chromium.launch.call_args.kwargs["executable_path"] == "/usr/bin/chromium"


async def test_launch_failure_stops_playwright(playwright_mocks):
    playwright, _, _, _ = playwright_mocks
    playwright.chromium.launch.side_effect = RuntimeError("Executable doesn't exist")
    manager = BrowserSessionManager(Settings())

    with pytest.raises(BrowserLaunchError, match="Executable doesn't exist"):
        await manager.acquire()

    playwright.stop.assert_awaited_once()
    assert manager.active_count == 0


async def test_session_is_closed_when_the_body_raises(playwright_mocks):
    playwright, browser, _, _ = playwright_mocks
    manager = BrowserSessionManager(Settings())

    with pytest.raises(ValueError):
        async with manager.session():
            raise ValueError("extraction blew up")

    browser.close.assert_awaited_once()
    playwright.stop.assert_awaited_once()
    assert manager.active_count == 0


async def test_close_is_idempotent_and_swallows_close_errors():
    browser = MagicMock()
    browser.close = AsyncMock(side_effect=RuntimeError("Target closed"))
    playwright = MagicMock()
    playwright.stop = AsyncMock()
    session = BrowserSession(playwright, browser, None, page=None)

    await session.close()
    await session.close()

    browser.close.assert_awaited_once()
    playwright.stop.assert_awaited_once()
    assert session.closed


async def test_shutdown_closes_leftover_sessions(playwright_mocks):
    _, browser, _, _ = playwright_mocks
    manager = BrowserSessionManager(Settings())
    await manager.acquire()
    await manager.acquire()

    await manager.shutdown()

    assert browser.close.await_count == 2
    assert manager.active_count == 0


async def test_slots_reject_when_no_slot_frees_in_time():
    slots = SessionSlots(1, timeout=0.05)

    async with slots.slot():
        with pytest.raises(SessionCapacityError, match="busy"):
            async with slots.slot():
                pass

    assert slots.stats["total_requests"] == 2
    assert slots.stats["total_rejected"] == 1

    async with slots.slot():
        pass


async def test_slots_queue_until_a_session_is_released():
    slots = SessionSlots(1, timeout=1.0)
    order = []

    async def worker(name, hold):
        async with slots.slot():
            order.append(f"{name}-in")
            await asyncio.sleep(hold)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a", 0.05), worker("b", 0))

    assert order == ["a-in", "a-out", "b-in", "b-out"]


async def test_manager_applies_slots_when_configured(playwright_mocks):
    manager = BrowserSessionManager(replace(Settings(), max_concurrent_sessions=1, session_queue_timeout=0.05))

    async with manager.session():
        with pytest.raises(SessionCapacityError):
            async with manager.session():
                pass

    status = manager.get_status()
    assert status["max_sessions"] == 1
    assert status["slots"]["total_rejected"] == 1
    assert status["active_sessions"] == 0
    assert status["slots"]["in_use"] == 0


def test_slots_built_before_the_event_loop_still_queue_waiters():
    slots = SessionSlots(1, timeout=1.0)
    order = []

    async def worker(name):
        async with slots.slot():
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    async def contend():
        await asyncio.gather(worker("a"), worker("b"))

    asyncio.run(contend())

    assert order == ["a-in", "a-out", "b-in", "b-out"]
    assert slots.in_use == 0


async def test_rejected_waits_do_not_use_up_slots():
    slots = SessionSlots(2, timeout=0.01)

    async with slots.slot(), slots.slot():
        assert slots.in_use == 2
        for _ in range(3):
            with pytest.raises(SessionCapacityError):
                async with slots.slot():
                    pass

    assert slots.in_use == 0
    assert slots.stats["total_rejected"] == 3

    entered = [asyncio.Event(), asyncio.Event()]
    done = asyncio.Event()

    async def hold(flag):
        async with slots.slot():
            flag.set()
            await done.wait()

    slots.timeout = 1.0
    holders = [asyncio.create_task(hold(flag)) for flag in entered]
    await asyncio.wait_for(asyncio.gather(*(flag.wait() for flag in entered)), timeout=1.0)
    assert slots.in_use == 2
    done.set()
    await asyncio.gather(*holders)
    assert slots.in_use == 0
    assert slots.stats["total_rejected"] == 3

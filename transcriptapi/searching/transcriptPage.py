"""Narrow browser capability used by the extractor.

The extractor only ever talks to a ``TranscriptPage``; Playwright lives behind
``PlaywrightTranscriptPage`` so tests can drive the extractor with a fake page.
"""
from typing import Callable, List, Protocol

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..pipeline.config import NETWORK_IDLE_SETTLE_TIMEOUT


class TranscriptPage(Protocol):
    async def open(self, url: str, timeout: float) -> None:
        ...

    async def click_first(self, selector: str, predicate: Callable[[str], bool]) -> bool:
        ...

    async def wait_for(self, selector: str, timeout: float) -> None:
        ...

    async def scroll_to_bottom(self, selector: str) -> bool:
        ...

    async def count(self, selector: str) -> int:
        ...

    async def read_all(self, selector: str) -> List[str]:
        ...


_SCROLL_TO_BOTTOM_JS = """
(selector) => {
    const panel = document.querySelector(selector);
    if (!panel) return false;
    panel.scrollTo(0, panel.scrollHeight);
    return true;
}
"""

_READ_TEXT_JS = "(elements) => elements.map((el) => el.innerText.trim())"


class PlaywrightTranscriptPage:
    def __init__(self, page: Page):
        self.page = page

    async def open(self, url: str, timeout: float) -> None:
        await self.page.goto(url, wait_until="load", timeout=timeout * 1000)
        # Playwright has no "at most 2 connections" state; a short bounded wait
        # for zero connections approximates it without failing on pages that
        # keep long-polling or streaming
        try:
            await self.page.wait_for_load_state("networkidle", timeout=NETWORK_IDLE_SETTLE_TIMEOUT * 1000)
        except PlaywrightTimeoutError:
            logger.debug(f"[PAGE] Network still busy {NETWORK_IDLE_SETTLE_TIMEOUT}s after load, continuing")

    async def click_first(self, selector: str, predicate: Callable[[str], bool]) -> bool:
        handles = await self.page.query_selector_all(selector)
        logger.debug(f"[PAGE] {len(handles)} candidates for {selector!r}")
        for handle in handles:
            try:
                text = (await handle.inner_text()).strip()
            except PlaywrightError as e:
                logger.debug(f"[PAGE] Skipping detached candidate: {e}")
                continue
            if not predicate(text):
                continue
            await handle.scroll_into_view_if_needed()
            await handle.evaluate("(el) => el.click()")
            logger.info(f"[PAGE] Clicked control with text {text!r}")
            return True
        return False

    async def wait_for(self, selector: str, timeout: float) -> None:
        try:
            await self.page.wait_for_selector(selector, state="attached", timeout=timeout * 1000)
        except PlaywrightTimeoutError as e:
            raise TimeoutError(str(e)) from e

    async def scroll_to_bottom(self, selector: str) -> bool:
        return bool(await self.page.evaluate(_SCROLL_TO_BOTTOM_JS, selector))

    async def count(self, selector: str) -> int:
        return await self.page.locator(selector).count()

    async def read_all(self, selector: str) -> List[str]:
        texts = await self.page.eval_on_selector_all(selector, _READ_TEXT_JS)
        return [text.strip() for text in texts]

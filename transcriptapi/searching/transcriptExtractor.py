import asyncio
from typing import Awaitable, Callable, List, Optional

from loguru import logger

from ..pipeline.config import (
    LOG_MESSAGE_URL_TRUNCATE,
    SEGMENT_CONTAINER_SELECTOR,
    SEGMENT_SELECTOR,
    SEGMENT_TEXT_SELECTOR,
    TRANSCRIPT_BUTTON_KEYWORD,
    TRANSCRIPT_BUTTON_SELECTOR,
    Settings,
)
from .errors import (
    NavigationError,
    SegmentContainerTimeoutError,
    TranscriptControlNotFoundError,
)
from .scrollPoller import poll_until_stable
from .transcriptPage import TranscriptPage


def is_transcript_control(text: str) -> bool:
    return TRANSCRIPT_BUTTON_KEYWORD in text.lower()


class TranscriptExtractor:
    def __init__(
        self,
        navigation_timeout: float = 30.0,
        container_timeout: float = 20.0,
        scroll_interval: float = 1.5,
        stable_rounds: int = 3,
        max_scroll_polls: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.navigation_timeout = navigation_timeout
        self.container_timeout = container_timeout
        self.scroll_interval = scroll_interval
        self.stable_rounds = stable_rounds
        self.max_scroll_polls = max_scroll_polls
        self.sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> "TranscriptExtractor":
        return cls(
            navigation_timeout=settings.navigation_timeout,
            container_timeout=settings.container_timeout,
            scroll_interval=settings.scroll_interval,
            stable_rounds=settings.stable_rounds,
            max_scroll_polls=settings.max_scroll_polls or None,
        )

    async def extract(self, page: TranscriptPage, url: str) -> List[str]:
        short_url = url[:LOG_MESSAGE_URL_TRUNCATE]
        logger.info(f"[EXTRACT] Opening {short_url}")

        try:
            await page.open(url, timeout=self.navigation_timeout)
        except Exception as e:
            raise NavigationError(f"Failed to load {short_url}: {e}") from e

        if not await page.click_first(TRANSCRIPT_BUTTON_SELECTOR, is_transcript_control):
            raise TranscriptControlNotFoundError("'Show transcript' not found or disabled for this video.")

        try:
            await page.wait_for(SEGMENT_CONTAINER_SELECTOR, timeout=self.container_timeout)
        except TimeoutError as e:
            raise SegmentContainerTimeoutError(
                f"Transcript panel did not appear within {self.container_timeout:g}s"
            ) from e

        polls = await poll_until_stable(
            page,
            SEGMENT_CONTAINER_SELECTOR,
            SEGMENT_SELECTOR,
            interval=self.scroll_interval,
            stable_rounds=self.stable_rounds,
            max_polls=self.max_scroll_polls,
            sleep=self.sleep,
        )

        segments = [text.strip() for text in await page.read_all(SEGMENT_TEXT_SELECTOR)]
        logger.info(f"[EXTRACT] Read {len(segments)} segments from {short_url} after {polls} polls")
        return segments

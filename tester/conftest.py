from typing import Callable, List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

from transcriptapi.app.main import create_app
from transcriptapi.pipeline.config import Settings
from transcriptapi.searching.browserSession import BrowserSession, BrowserSessionManager
from transcriptapi.searching.transcriptExtractor import TranscriptExtractor


async def no_sleep(_seconds):
    return None


class FakePage:
    """In-memory stand-in for a video page with a transcript panel."""

    def __init__(
        self,
        buttons: Sequence[str] = ("Subscribe", "Show transcript"),
        segments: Sequence[str] = ("Hello", "world"),
        container_appears: bool = True,
        open_error: Optional[Exception] = None,
        growth_per_poll: int = 0,
    ):
        self.buttons = list(buttons)
        self.segments = list(segments)
        self.container_appears = container_appears
        self.open_error = open_error
        self.growth_per_poll = growth_per_poll

        self.opened: List[str] = []
        self.clicked: Optional[int] = None
        self.waited: List[str] = []
        self.scrolls = 0

    async def open(self, url, timeout):
        self.opened.append(url)
        if self.open_error is not None:
            raise self.open_error

    async def click_first(self, selector, predicate):
        for index, text in enumerate(self.buttons):
            if predicate(text.strip()):
                self.clicked = index
                return True
        return False

    async def wait_for(self, selector, timeout):
        self.waited.append(selector)
        if not self.container_appears:
            raise TimeoutError(f"Timeout {timeout * 1000:.0f}ms exceeded waiting for {selector}")

    async def scroll_to_bottom(self, selector):
        self.scrolls += 1
        if self.growth_per_poll:
            self.segments.extend(f"line {len(self.segments) + i}" for i in range(self.growth_per_poll))
        return self.container_appears

    async def count(self, selector):
        return len(self.segments)

    async def read_all(self, selector):
        return [text.strip() for text in self.segments]


class FakeSessionManager(BrowserSessionManager):
    """Session manager that hands out ``FakePage`` sessions instead of launching Chromium."""

    def __init__(self, settings: Settings, page_factory: Callable[[], FakePage] = FakePage):
        super().__init__(settings)
        self.page_factory = page_factory
        self.opened: List[BrowserSession] = []
        self.launch_error: Optional[Exception] = None

    async def acquire(self):
        if self.launch_error is not None:
            raise self.launch_error
        session = BrowserSession(None, None, None, self.page_factory())
        self.active.add(session)
        self.opened.append(session)
        return session


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def extractor():
    return TranscriptExtractor(sleep=no_sleep, max_scroll_polls=50)


@pytest.fixture
def make_client(extractor):
    clients = []

    def _make(settings: Optional[Settings] = None, page_factory: Callable[[], FakePage] = FakePage):
        settings = settings or Settings()
        manager = FakeSessionManager(settings, page_factory)
        api = create_app(settings, session_manager=manager, extractor=extractor)
        client = TestClient(api.app)
        client.__enter__()
        clients.append(client)
        return client, manager

    yield _make

    for client in clients:
        client.__exit__(None, None, None)

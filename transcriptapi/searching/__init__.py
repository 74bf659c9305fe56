from .browserSession import BrowserSession, BrowserSessionManager
from .errors import (
    BrowserLaunchError,
    ExtractionError,
    NavigationError,
    SegmentContainerTimeoutError,
    SessionCapacityError,
    StabilizationTimeoutError,
    TranscriptControlNotFoundError,
)
from .scrollPoller import poll_until_stable
from .transcriptExtractor import TranscriptExtractor

__all__ = [
    "BrowserSession",
    "BrowserSessionManager",
    "TranscriptExtractor",
    "poll_until_stable",
    "ExtractionError",
    "BrowserLaunchError",
    "NavigationError",
    "TranscriptControlNotFoundError",
    "SegmentContainerTimeoutError",
    "StabilizationTimeoutError",
    "SessionCapacityError",
]

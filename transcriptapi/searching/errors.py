class ExtractionError(Exception):
    """Any failure while driving the browser towards a transcript."""


class BrowserLaunchError(ExtractionError):
    pass


class NavigationError(ExtractionError):
    pass


class TranscriptControlNotFoundError(ExtractionError):
    pass


class SegmentContainerTimeoutError(ExtractionError):
    pass


class StabilizationTimeoutError(ExtractionError):
    pass


class SessionCapacityError(Exception):
    """No browser session slot became free in time."""

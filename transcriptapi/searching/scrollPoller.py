import asyncio
from typing import Awaitable, Callable, Optional

from loguru import logger

from .errors import StabilizationTimeoutError
from .transcriptPage import TranscriptPage


async def poll_until_stable(
    page: TranscriptPage,
    container_selector: str,
    item_selector: str,
    interval: float = 1.5,
    stable_rounds: int = 3,
    max_polls: Optional[int] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> int:
    """Scroll ``container_selector`` until the ``item_selector`` count stops growing.

    Returns the number of polls performed. A poll is one scroll, one delay and
    one recount; the loop ends after ``stable_rounds`` consecutive polls with
    no change. With ``max_polls`` set, not converging within that many polls
    raises ``StabilizationTimeoutError``.
    """
    last_count = 0
    same_count = 0
    polls = 0

    while same_count < stable_rounds:
        if max_polls and polls >= max_polls:
            raise StabilizationTimeoutError(
                f"Transcript did not stop loading after {polls} scroll polls "
                f"({last_count} segments so far)"
            )

        if not await page.scroll_to_bottom(container_selector):
            logger.warning(f"[POLL] Container {container_selector!r} is gone, stopping after {polls} polls")
            return polls

        await sleep(interval)
        polls += 1

        count = await page.count(item_selector)
        if count == last_count:
            same_count += 1
        else:
            logger.debug(f"[POLL] Poll {polls}: {last_count} -> {count} segments")
            last_count = count
            same_count = 0

    logger.info(f"[POLL] Stable at {last_count} segments after {polls} polls")
    return polls

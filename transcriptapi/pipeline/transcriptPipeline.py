from typing import List, Optional

from loguru import logger

from ..searching.browserSession import BrowserSessionManager
from ..searching.transcriptExtractor import TranscriptExtractor


async def fetch_transcript(
    url: str,
    session_manager: BrowserSessionManager,
    extractor: TranscriptExtractor,
    request_id: Optional[str] = None,
) -> List[str]:
    """Open one browser session for ``url``, extract, and always close it."""
    tag = f"[{request_id}] " if request_id else ""
    async with session_manager.session() as session:
        logger.info(f"{tag}[PIPELINE] Session {session.session_id} extracting transcript")
        return await extractor.extract(session.page, url)

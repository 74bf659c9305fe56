"""Transcript gateway."""
import logging
from typing import Optional

from fastapi import Request

from ...commons.envelope import error_response, ok_response
from ...pipeline.config import LOG_MESSAGE_URL_TRUNCATE
from ...pipeline.transcriptPipeline import fetch_transcript
from ...searching.errors import SessionCapacityError
from ..utils import validate_url_param

logger = logging.getLogger("transcript-api")


async def get_transcript(request: Request, url: Optional[str] = None):
    request_id = getattr(request.state, "request_id", "-")

    if not validate_url_param(url):
        return error_response(400, "Missing URL parameter")

    logger.info(f"[{request_id}] Transcript: {url[:LOG_MESSAGE_URL_TRUNCATE]}")
    try:
        transcript = await fetch_transcript(
            url,
            request.app.state.session_manager,
            request.app.state.extractor,
            request_id=request_id,
        )
    except SessionCapacityError as e:
        logger.warning(f"[{request_id}] Transcript rejected: {e}")
        return error_response(503, str(e))
    except Exception as e:
        logger.error(f"[{request_id}] Transcript error: {e}", exc_info=True)
        return error_response(500, str(e) or e.__class__.__name__)

    logger.info(f"[{request_id}] Transcript ready: {len(transcript)} segments")
    return ok_response(transcript)

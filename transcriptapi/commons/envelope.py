from typing import Dict, List, Optional

from fastapi.responses import JSONResponse


def ok_response(transcript: List[str]) -> JSONResponse:
    return JSONResponse({"ok": True, "transcript": transcript}, status_code=200)


def error_response(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse({"ok": False, "error": message}, status_code=status_code, headers=headers)

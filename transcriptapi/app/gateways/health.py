"""Health check gateway."""
from datetime import datetime, timezone

from fastapi import Request


async def health_check(request: Request):
    status = request.app.state.session_manager.get_status()
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "active_sessions": status["active_sessions"],
        "sessions": status,
    }

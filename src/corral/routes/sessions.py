"""Session status routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..engine import StatusEngine, get_engine
from ..errors import CommandError, RegistryError
from ..logging_config import get_logger

logger = get_logger(__name__, namespace='api')

router = APIRouter(prefix="/api", tags=["sessions"])


async def _sessions_payload(engine: StatusEngine):
    try:
        sessions = await engine.get_sessions()
    except RegistryError as e:
        logger.warning(f"Registry unreadable: {e}")
        return JSONResponse(status_code=500, content={"error": str(e), "sessions": []})
    except CommandError as e:
        return JSONResponse(status_code=502, content={**e.to_dict(), "sessions": []})

    return {
        "sessions": sessions,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/sessions")
async def api_get_sessions(engine: StatusEngine = Depends(get_engine)):
    """Get live sessions with liveness overlay and token totals.

    Also reconciles the history log; a history failure never fails this call.
    """
    return await _sessions_payload(engine)


@router.get("/agents")
async def api_get_agents(engine: StatusEngine = Depends(get_engine)):
    """Alias of /api/sessions kept for existing dashboards."""
    return await _sessions_payload(engine)

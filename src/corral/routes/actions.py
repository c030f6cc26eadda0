"""Orchestrator action routes."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..engine import StatusEngine, get_engine
from ..errors import CommandError
from ..logging_config import get_logger

logger = get_logger(__name__, namespace='api')

router = APIRouter(prefix="/api", tags=["actions"])


@router.post("/cleanup")
async def cleanup_sessions(engine: StatusEngine = Depends(get_engine)):
    """Run the orchestrator's cleanup command and pass its output through."""
    try:
        result = await engine.cleanup()
    except CommandError as e:
        status = 504 if e.timed_out else 502
        logger.warning(f"Cleanup failed: {e}")
        return JSONResponse(status_code=status, content={"success": False, **e.to_dict()})

    return result.to_dict()

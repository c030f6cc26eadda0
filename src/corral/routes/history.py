"""Session history routes."""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..engine import StatusEngine, get_engine

router = APIRouter(prefix="/api", tags=["history"])


@router.get("/history")
def get_history(
    active: Optional[bool] = None,
    repo: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=0),
    engine: StatusEngine = Depends(get_engine),
):
    """Get the persisted session history, newest first.

    Args:
        active: True for running sessions only, False for completed only
        repo: Optional repository filter
        limit: Maximum number of entries

    Returns:
        History entries with their status transition trails
    """
    history = engine.get_history(active=active, repo=repo, limit=limit)
    return {
        "history": history,
        "count": len(history),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }

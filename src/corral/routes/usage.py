"""Usage quota routes."""

from fastapi import APIRouter, Depends

from ..engine import StatusEngine, get_engine

router = APIRouter(prefix="/api", tags=["usage"])


@router.get("/usage")
async def get_usage(refresh: bool = False, engine: StatusEngine = Depends(get_engine)):
    """Get usage quota providers (external script plus local token estimate).

    Args:
        refresh: Bypass the cache and rerun the usage script
    """
    return await engine.get_usage(force=refresh)

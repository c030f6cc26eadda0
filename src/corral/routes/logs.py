"""Log buffer routes."""

from typing import Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel, field_validator

from ..logging_config import NAMESPACES, get_log_buffer_handler, set_log_level

router = APIRouter(prefix="/api", tags=["logs"])

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class LogLevelRequest(BaseModel):
    level: str

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Accept standard level names in any case."""
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return level


@router.get("/logs")
def get_logs(count: int = Query(default=100, ge=1, le=1000), namespace: Optional[str] = None):
    """Get recent log entries from the in-memory buffer."""
    handler = get_log_buffer_handler()
    return {
        "entries": handler.get_history(count=count, namespace=namespace),
        "namespaces": NAMESPACES,
    }


@router.post("/logs/level")
def update_log_level(request: LogLevelRequest):
    """Change the log level at runtime."""
    set_log_level(request.level)
    return {"level": request.level}

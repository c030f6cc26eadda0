"""Route modules for the Corral API."""

from .sessions import router as sessions_router
from .history import router as history_router
from .usage import router as usage_router
from .actions import router as actions_router
from .logs import router as logs_router

__all__ = [
    'sessions_router',
    'history_router',
    'usage_router',
    'actions_router',
    'logs_router',
]

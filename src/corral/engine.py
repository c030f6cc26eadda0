"""Status engine: the registry -> overlay -> tokens -> history pipeline.

One StatusEngine owns every cache and store for the lifetime of the app
(token cache, liveness memory, usage cache, history file), so tests can build
an engine with temp paths, a fake clock and a fake PID probe.
"""

import asyncio
import time
from pathlib import Path
from typing import Any, Callable, Optional

from .config import (
    CLEANUP_COMMAND,
    CLEANUP_TIMEOUT,
    REGISTRY_COMMAND,
    REGISTRY_COMMAND_TIMEOUT,
    REGISTRY_PATH,
)
from .detection.liveness import LivenessTracker, overlay_liveness
from .detection.processes import pid_exists
from .detection.registry import flatten_registry, load_registry_command, load_registry_file
from .logging_config import get_logger
from .services.commands import CommandResult, run_cleanup
from .services.history import HistoryStore
from .services.tokens import TokenUsageAggregator
from .services.usage import UsageService
from .types import SessionSnapshot, UsageReport

logger = get_logger(__name__, namespace='registry')


class StatusEngine:
    """Produces overlaid session lists and keeps the history log current."""

    def __init__(
        self,
        registry_path: Path = REGISTRY_PATH,
        registry_command: Optional[list[str]] = None,
        registry_timeout: float = REGISTRY_COMMAND_TIMEOUT,
        history: Optional[HistoryStore] = None,
        tokens: Optional[TokenUsageAggregator] = None,
        usage: Optional[UsageService] = None,
        tracker: Optional[LivenessTracker] = None,
        probe: Callable[[int], bool] = pid_exists,
        cleanup_command: Optional[list[str]] = None,
        cleanup_timeout: float = CLEANUP_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        self.registry_path = Path(registry_path)
        self.registry_command = list(REGISTRY_COMMAND if registry_command is None else registry_command)
        self.registry_timeout = registry_timeout
        self.history = history if history is not None else HistoryStore()
        self.tokens = tokens if tokens is not None else TokenUsageAggregator(clock=clock)
        self.usage = usage if usage is not None else UsageService(clock=clock)
        self.tracker = tracker if tracker is not None else LivenessTracker()
        self.probe = probe
        self.cleanup_command = list(CLEANUP_COMMAND if cleanup_command is None else cleanup_command)
        self.cleanup_timeout = cleanup_timeout
        self.clock = clock

    def now_ms(self) -> int:
        return int(self.clock() * 1000)

    async def load_registry(self) -> Any:
        """Raw registry document from the configured command or file."""
        if self.registry_command:
            return await load_registry_command(self.registry_command, self.registry_timeout)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, load_registry_file, self.registry_path)

    def _overlay_sessions(self, doc: Any) -> list[SessionSnapshot]:
        """Flatten, probe PIDs and scan token logs (blocking; run in an executor)."""
        now = self.now_ms()

        sessions = []
        for session in flatten_registry(doc):
            overlaid = overlay_liveness(session, now, probe=self.probe, tracker=self.tracker)
            overlaid['tokensUsed'] = self.tokens.tokens_for(overlaid.get('workspacePath'))
            sessions.append(overlaid)

        self.tracker.prune({s['id'] for s in sessions})
        return sessions

    async def snapshot_sessions(self) -> list[SessionSnapshot]:
        """Normalized, liveness-overlaid, token-annotated sessions (no side effects on history)."""
        doc = await self.load_registry()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._overlay_sessions, doc)

    def record_history(self, sessions: list[dict]) -> bool:
        """Reconcile sessions into the history file; failures are logged, not raised."""
        try:
            self.history.reconcile(sessions, self.now_ms())
            return True
        except Exception:
            logger.exception("History reconciliation failed")
            return False

    async def get_sessions(self) -> list[SessionSnapshot]:
        """Session list for a status poll, updating history as a side effect."""
        sessions = await self.snapshot_sessions()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.record_history, sessions)
        return sessions

    def get_history(
        self,
        active: Optional[bool] = None,
        repo: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        return self.history.list(active=active, repo=repo, limit=limit)

    async def get_usage(self, force: bool = False) -> UsageReport:
        return await self.usage.get_report(self.snapshot_sessions, force=force)

    async def cleanup(self) -> CommandResult:
        """Run the orchestrator cleanup and drop caches it may have invalidated."""
        result = await run_cleanup(self.cleanup_command, timeout=self.cleanup_timeout)
        self.tokens.invalidate()
        self.usage.cache.invalidate()
        return result


# Global engine instance
_engine: Optional[StatusEngine] = None


def get_engine() -> StatusEngine:
    """Get or create the global status engine."""
    global _engine
    if _engine is None:
        _engine = StatusEngine()
    return _engine


def reset_engine() -> None:
    """Drop the global engine so the next get_engine() builds a fresh one."""
    global _engine
    _engine = None

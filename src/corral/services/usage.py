"""Usage-quota report: external script output blended with a local estimate.

The report is cached process-wide. A poll that arrives while a refresh is
already running awaits that same refresh instead of starting the script a
second time.
"""

import asyncio
import shutil
import time
from pathlib import Path
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from ..config import (
    LOCAL_TOKEN_BUDGET,
    USAGE_CACHE_TTL,
    USAGE_PROVIDER_ID,
    USAGE_PROVIDER_NAME,
    USAGE_SCRIPT,
    USAGE_SCRIPT_ARGS,
    USAGE_SCRIPT_TIMEOUT,
)
from ..errors import CommandError, CorralError
from ..logging_config import get_logger
from ..normalize import to_iso
from ..types import ProviderUsage, UsageReport
from .commands import CommandResult, run_command
from .quota import make_metric, make_provider, parse_usage_output

logger = get_logger(__name__, namespace='usage')

LOCAL_PROVIDER_ID = 'local'
LOCAL_PROVIDER_NAME = 'Local estimate'

T = TypeVar('T')


class UsageCache(Generic[T]):
    """Single-value TTL cache that shares one in-flight refresh among callers."""

    def __init__(self, ttl_seconds: float = USAGE_CACHE_TTL, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._value: Optional[T] = None
        self._fetched_at: float = 0.0
        self._pending: Optional[asyncio.Future] = None

    def peek(self) -> Optional[T]:
        """Cached value if still fresh, else None."""
        if self._value is not None and (self.clock() - self._fetched_at) < self.ttl_seconds:
            return self._value
        return None

    async def _refresh(self, fetch: Callable[[], Awaitable[T]]) -> T:
        try:
            value = await fetch()
            self._value = value
            self._fetched_at = self.clock()
            return value
        finally:
            self._pending = None

    async def get(self, fetch: Callable[[], Awaitable[T]], force: bool = False) -> T:
        """Return the cached value, or join/start a refresh through fetch()."""
        if not force:
            cached = self.peek()
            if cached is not None:
                return cached
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._refresh(fetch))
        # Shield so a cancelled waiter does not cancel the shared refresh
        return await asyncio.shield(self._pending)

    def invalidate(self) -> None:
        self._value = None
        self._fetched_at = 0.0


def _script_available(script: str) -> bool:
    return Path(script).expanduser().exists() or shutil.which(script) is not None


class UsageService:
    """Builds the provider list for the usage endpoint."""

    def __init__(
        self,
        script: str = USAGE_SCRIPT,
        script_args: Optional[list[str]] = None,
        timeout: float = USAGE_SCRIPT_TIMEOUT,
        provider_id: str = USAGE_PROVIDER_ID,
        provider_name: str = USAGE_PROVIDER_NAME,
        token_budget: int = LOCAL_TOKEN_BUDGET,
        cache: Optional[UsageCache] = None,
        runner: Callable[[list[str], float], Awaitable[CommandResult]] = run_command,
        clock: Callable[[], float] = time.time,
    ):
        self.script = script
        self.script_args = list(USAGE_SCRIPT_ARGS if script_args is None else script_args)
        self.timeout = timeout
        self.provider_id = provider_id
        self.provider_name = provider_name
        self.token_budget = token_budget
        self.clock = clock
        self.cache: UsageCache[UsageReport] = cache if cache is not None else UsageCache(clock=clock)
        self.runner = runner

    async def fetch_external(self) -> ProviderUsage:
        """Run the usage script and parse its output into a provider entry."""
        if not self.script:
            return make_provider(self.provider_id, self.provider_name, 'unavailable',
                                 error='No usage script configured')
        if not _script_available(self.script):
            return make_provider(self.provider_id, self.provider_name, 'unavailable',
                                 error=f'Usage script not found: {self.script}')

        args = [str(Path(self.script).expanduser()), *self.script_args]
        try:
            result = await self.runner(args, self.timeout)
        except CommandError as e:
            detail = (e.stderr or e.stdout).strip()
            message = f"{e}: {detail[:300]}" if detail else str(e)
            return make_provider(self.provider_id, self.provider_name, 'error', error=message)

        return parse_usage_output(result.stdout, self.provider_id, self.provider_name)

    def estimate_local(self, sessions: list[dict]) -> ProviderUsage:
        """Provider entry derived from aggregated workspace token totals."""
        totals = [s['tokensUsed'] for s in sessions if s.get('tokensUsed') is not None]
        if not totals:
            return make_provider(LOCAL_PROVIDER_ID, LOCAL_PROVIDER_NAME, 'unavailable',
                                 error='No token logs found in any workspace')

        metric = make_metric(
            'tokens', 'Tokens (all sessions)', 'tokens',
            used=sum(totals),
            limit=self.token_budget or None,
        )
        return make_provider(LOCAL_PROVIDER_ID, LOCAL_PROVIDER_NAME, 'ok', [metric])

    async def _build_report(self, load_sessions: Callable[[], Awaitable[list[dict]]]) -> UsageReport:
        external, sessions = await asyncio.gather(
            self.fetch_external(),
            load_sessions(),
            return_exceptions=True,
        )
        if isinstance(external, BaseException):
            logger.error("Usage script handling failed", exc_info=external)
            external = make_provider(self.provider_id, self.provider_name, 'error', error=str(external))

        if isinstance(sessions, CorralError):
            local = make_provider(LOCAL_PROVIDER_ID, LOCAL_PROVIDER_NAME, 'error', error=str(sessions))
        elif isinstance(sessions, BaseException):
            raise sessions
        else:
            local = self.estimate_local(sessions)

        return {
            'fetchedAt': to_iso(int(self.clock() * 1000)),
            'providers': [external, local],
        }

    async def get_report(
        self,
        load_sessions: Callable[[], Awaitable[list[dict]]],
        force: bool = False,
    ) -> UsageReport:
        """Cached usage report; force=True starts (or joins) a refresh."""
        return await self.cache.get(lambda: self._build_report(load_sessions), force=force)

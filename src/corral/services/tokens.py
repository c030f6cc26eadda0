"""Per-workspace token usage aggregation.

Agents append newline-delimited usage records under a couple of fixed log
directories inside their workspace. Totals are cached per workspace for a
short TTL so that frequent dashboard polling does not rescan every log file.
"""

import re
import time
from pathlib import Path
from typing import Any, Callable, Iterable

from ..config import TOKEN_CACHE_TTL, TOKEN_LOG_EXTENSION, TOKEN_LOG_SUBDIRS
from ..logging_config import get_logger
from ..normalize import coerce_number
from ..types import TokenCacheEntry
from ..utils import iter_jsonl_records

logger = get_logger(__name__, namespace='tokens')

TOKEN_KEY_RE = re.compile(r'token', re.IGNORECASE)
AGGREGATE_KEYS = ('total_tokens', 'totalTokens', 'total')


def _sum_numeric(values: Iterable[Any]) -> int | float:
    total = 0
    for value in values:
        number = coerce_number(value)
        if number is not None:
            total += number
    return total


def tokens_from_record(record: dict) -> int | float:
    """Extract a token count from one usage record.

    A 'usage' object contributes only its token-named fields, or its explicit
    aggregate when present. A 'tokens' field is either a number or an object
    whose numeric fields are all token counts.
    """
    usage = record.get('usage')
    if isinstance(usage, dict):
        for key in AGGREGATE_KEYS:
            aggregate = coerce_number(usage.get(key))
            if aggregate is not None:
                return aggregate
        return _sum_numeric(v for k, v in usage.items() if TOKEN_KEY_RE.search(str(k)))

    tokens = record.get('tokens')
    if isinstance(tokens, dict):
        return _sum_numeric(tokens.values())
    number = coerce_number(tokens)
    return number if number is not None else 0


class TokenUsageAggregator:
    """Sums token usage across a workspace's log files, with a TTL cache."""

    def __init__(
        self,
        ttl_seconds: float = TOKEN_CACHE_TTL,
        subdirs: tuple[str, ...] = TOKEN_LOG_SUBDIRS,
        extension: str = TOKEN_LOG_EXTENSION,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.subdirs = subdirs
        self.extension = extension
        self.clock = clock
        self._cache: dict[str, TokenCacheEntry] = {}

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _log_files(self, workspace: Path) -> list[Path]:
        files = []
        for subdir in self.subdirs:
            directory = workspace / subdir
            if not directory.is_dir():
                continue
            try:
                files.extend(
                    p for p in sorted(directory.iterdir())
                    if p.is_file() and p.name.endswith(self.extension)
                )
            except OSError as e:
                logger.debug(f"Cannot list {directory}: {e}")
        return files

    def scan(self, workspace: str) -> int | None:
        """Sum tokens without consulting the cache.

        Returns:
            Total tokens, 0 if logs exist but record nothing, or None if
            no log files were found at all
        """
        files = self._log_files(Path(workspace).expanduser())
        if not files:
            return None

        total = 0
        for log_file in files:
            try:
                for record in iter_jsonl_records(log_file):
                    total += tokens_from_record(record)
            except OSError as e:
                logger.debug(f"Skipping unreadable log {log_file}: {e}")
        return int(total)

    def tokens_for(self, workspace: str | None) -> int | None:
        """Cached token total for a workspace (None = not applicable / no data).

        A cached value younger than the TTL is returned as-is, including a
        cached None.
        """
        if not workspace:
            return None

        now = self._now_ms()
        cached = self._cache.get(workspace)
        if cached is not None and (now - cached['ts']) < self.ttl_seconds * 1000:
            return cached['tokensUsed']

        tokens = self.scan(workspace)
        self._cache[workspace] = {'tokensUsed': tokens, 'ts': now}
        return tokens

    def invalidate(self, workspace: str | None = None) -> None:
        """Drop one workspace from the cache, or all of them."""
        if workspace is None:
            self._cache.clear()
        else:
            self._cache.pop(workspace, None)

    @property
    def cache_size(self) -> int:
        return len(self._cache)

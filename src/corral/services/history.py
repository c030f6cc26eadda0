"""Durable session history and its reconciliation against live snapshots.

Every status poll merges the live session list into a JSON history file:
one entry per session id, with an append-only trail of status/activity
transitions. Entries close (endedAt) when their status turns terminal or
when the registry stops reporting them, and reopen if a closed session shows
up again with a non-terminal status.

Retention keeps the newest completed entries and a global cap on the file.
Active entries are never dropped by either limit, so a registry with more
live sessions than the cap produces a history larger than the cap.

Writes are atomic (temp file + os.replace) but not locked across polls:
concurrent polls are last-writer-wins, which can lose at most one transition.
"""

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

from ..config import (
    HISTORY_MAX_COMPLETED,
    HISTORY_MAX_ENTRIES,
    HISTORY_PATH,
    MAX_STATUS_HISTORY,
)
from ..detection.lifecycle import is_terminal
from ..logging_config import get_logger
from ..normalize import coerce_timestamp, now_ms as current_ms, to_iso
from ..types import HistoryEntry
from ..utils import is_empty

logger = get_logger(__name__, namespace='history')

HISTORY_FORMAT_VERSION = 1

# Snapshot fields copied onto the history entry; empty values never overwrite
MERGE_FIELDS = ('repo', 'issueId', 'issueTitle', 'status', 'activity', 'agentType', 'prNumber')


@dataclass(frozen=True)
class HistoryLimits:
    max_status_history: int = MAX_STATUS_HISTORY
    max_completed: int = HISTORY_MAX_COMPLETED
    max_entries: int = HISTORY_MAX_ENTRIES


def _ms(entry: dict, field: str) -> int:
    return coerce_timestamp(entry.get(field)) or 0


def _new_entry(session_id: str) -> HistoryEntry:
    return {
        'id': session_id,
        'repo': None,
        'issueId': None,
        'issueTitle': None,
        'status': None,
        'activity': None,
        'agentType': None,
        'prNumber': None,
        'createdAt': None,
        'endedAt': None,
        'lastUpdatedAt': None,
        'statusHistory': [],
    }


def _copy_entry(entry: dict) -> HistoryEntry:
    copied = _new_entry(str(entry['id']))
    copied.update(entry)
    copied['id'] = str(entry['id'])
    history = entry.get('statusHistory')
    copied['statusHistory'] = [dict(e) for e in history if isinstance(e, dict)] \
        if isinstance(history, list) else []
    return copied


def _merge_fields(entry: HistoryEntry, session: dict) -> None:
    for field in MERGE_FIELDS:
        value = session.get(field)
        if not is_empty(value):
            entry[field] = value


def _record_transition(
    entry: HistoryEntry,
    updated_ms: int | None,
    now_ms: int,
    max_len: int,
) -> bool:
    """Append a transition if status or activity changed since the last event."""
    history = entry['statusHistory']
    status, activity = entry.get('status'), entry.get('activity')
    last = history[-1] if history else None

    if last is not None and last.get('status') == status and last.get('activity') == activity:
        return False

    if updated_ms is not None:
        at = updated_ms
    elif not history:
        at = coerce_timestamp(entry.get('createdAt')) or now_ms
    else:
        at = now_ms

    if last is not None:
        last_at = coerce_timestamp(last.get('at'))
        if last_at is not None and at < last_at:
            at = last_at

    history.append({'status': status, 'activity': activity, 'at': to_iso(at)})
    if max_len > 0 and len(history) > max_len:
        del history[:len(history) - max_len]
    return True


def _update_completion(entry: HistoryEntry, session: dict, updated_ms: int | None, now_ms: int) -> None:
    if is_terminal(entry.get('status')) or is_terminal(entry.get('activity')):
        if not entry.get('endedAt'):
            ended_ms = coerce_timestamp(session.get('endedAt'))
            if ended_ms is None:
                ended_ms = updated_ms if updated_ms is not None else now_ms
            entry['endedAt'] = to_iso(ended_ms)
    elif entry.get('endedAt'):
        logger.info(f"Session {entry['id']} revived with status {entry.get('status')!r}")
        entry['endedAt'] = None


def apply_retention(entries: list[HistoryEntry], limits: HistoryLimits) -> list[HistoryEntry]:
    """Trim completed entries; the result is sorted by createdAt ascending.

    Keeps the newest `max_completed` completed entries by endedAt, then drops
    the oldest completed entries (by createdAt) until the total fits
    `max_entries`. Active entries are always kept.
    """
    active = [e for e in entries if not e.get('endedAt')]
    completed = [e for e in entries if e.get('endedAt')]

    completed.sort(key=lambda e: _ms(e, 'endedAt'), reverse=True)
    completed = completed[:max(limits.max_completed, 0)]

    combined = sorted(active + completed, key=lambda e: _ms(e, 'createdAt'))

    overflow = len(combined) - limits.max_entries
    if overflow > 0:
        oldest_completed = [e['id'] for e in combined if e.get('endedAt')][:overflow]
        dropped = set(oldest_completed)
        combined = [e for e in combined if e['id'] not in dropped]
        if len(combined) > limits.max_entries:
            logger.warning(
                f"History holds {len(combined)} entries (cap {limits.max_entries}); "
                f"all remaining entries are active"
            )
    return combined


def reconcile_history(
    live: Iterable[dict],
    existing: Iterable[dict],
    now_ms: int,
    limits: HistoryLimits = HistoryLimits(),
) -> list[HistoryEntry]:
    """Merge live session snapshots into the history entries.

    Args:
        live: Overlaid Session Snapshots from the current poll
        existing: Previously persisted History Entries
        now_ms: Current time in epoch milliseconds
        limits: Transition and retention limits

    Returns:
        The updated history, sorted by createdAt ascending
    """
    by_id: dict[str, HistoryEntry] = {}
    for entry in existing:
        if isinstance(entry, dict) and not is_empty(entry.get('id')):
            by_id[str(entry['id'])] = _copy_entry(entry)

    live_ids: set[str] = set()
    for session in live:
        session_id = session.get('id')
        if is_empty(session_id):
            continue
        session_id = str(session_id)
        live_ids.add(session_id)

        entry = by_id.get(session_id)
        if entry is None:
            entry = _new_entry(session_id)
            by_id[session_id] = entry
            logger.debug(f"New history entry for session {session_id}")

        _merge_fields(entry, session)

        created_ms = coerce_timestamp(session.get('createdAt'))
        known_created = coerce_timestamp(entry.get('createdAt'))
        if created_ms is not None and (known_created is None or created_ms < known_created):
            entry['createdAt'] = to_iso(created_ms)
        elif known_created is None:
            entry['createdAt'] = to_iso(now_ms)

        updated_ms = coerce_timestamp(session.get('updatedAt'))
        entry['lastUpdatedAt'] = to_iso(updated_ms if updated_ms is not None else now_ms)

        _record_transition(entry, updated_ms, now_ms, limits.max_status_history)
        _update_completion(entry, session, updated_ms, now_ms)

    for session_id, entry in by_id.items():
        if session_id not in live_ids and not entry.get('endedAt'):
            logger.info(f"Session {session_id} no longer reported; closing")
            entry['endedAt'] = to_iso(now_ms)

    return apply_retention(list(by_id.values()), limits)


def _parse_history_document(doc: Any) -> list[dict]:
    if isinstance(doc, dict):
        doc = doc.get('history')
    if not isinstance(doc, list):
        return []
    return [e for e in doc if isinstance(e, dict) and not is_empty(e.get('id'))]


class HistoryStore:
    """JSON-file backed history with reconciliation and read access."""

    def __init__(self, path: Path = HISTORY_PATH, limits: Optional[HistoryLimits] = None):
        self.path = Path(path)
        self.limits = limits or HistoryLimits()

    def load(self) -> list[dict]:
        """Read persisted entries; a missing or malformed file reads as empty."""
        try:
            text = self.path.read_text(encoding='utf-8')
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.warning(f"Cannot read history {self.path}: {e}")
            return []
        try:
            return _parse_history_document(json.loads(text))
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring malformed history {self.path}: {e}")
            return []

    def save(self, entries: list[HistoryEntry]) -> None:
        """Write entries atomically via temp file + rename."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            'version': HISTORY_FORMAT_VERSION,
            'updatedAt': to_iso(current_ms()),
            'history': entries,
        }
        tmp_fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix='.tmp')
        try:
            with os.fdopen(tmp_fd, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.write('\n')
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def reconcile(self, live: list[dict], now_ms: int) -> list[HistoryEntry]:
        """Load, merge the live snapshots, persist, and return the result."""
        entries = reconcile_history(live, self.load(), now_ms, self.limits)
        self.save(entries)
        return entries

    def list(
        self,
        active: Optional[bool] = None,
        repo: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """Entries for display, most recently created first.

        Args:
            active: True for open entries only, False for completed only
            repo: Only entries for this repository
            limit: Maximum number of entries returned
        """
        entries = sorted(self.load(), key=lambda e: _ms(e, 'createdAt'), reverse=True)
        if active is not None:
            entries = [e for e in entries if (not e.get('endedAt')) == active]
        if repo:
            entries = [e for e in entries if e.get('repo') == repo]
        if limit is not None and limit >= 0:
            entries = entries[:limit]
        return entries

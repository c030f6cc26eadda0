"""Liveness overlay for registry sessions.

The registry's status text can lag behind reality after an agent crashes, so
the PID is treated as ground truth: a session whose process is gone cannot
still be "working", and a dead in-progress session that has not been seen
alive for over an hour is archived.
"""

from typing import Callable, Optional

from ..config import STALE_AFTER_SECONDS
from ..logging_config import get_logger
from ..normalize import coerce_timestamp, to_iso
from ..types import SessionSnapshot
from .lifecycle import SessionState, combined_state, is_busy, is_in_progress
from .processes import pid_exists

logger = get_logger(__name__, namespace='liveness')


class LivenessTracker:
    """Remembers when each session id was last observed with a live PID."""

    def __init__(self):
        self._last_alive: dict[str, int] = {}

    def mark_alive(self, session_id: str, at_ms: int) -> None:
        self._last_alive[session_id] = at_ms

    def last_alive(self, session_id: str) -> int | None:
        return self._last_alive.get(session_id)

    def prune(self, keep_ids: set[str]) -> None:
        """Forget sessions that are no longer in the registry."""
        for session_id in list(self._last_alive):
            if session_id not in keep_ids:
                del self._last_alive[session_id]

    def __len__(self) -> int:
        return len(self._last_alive)


def _best_last_seen(session: dict, tracker: Optional[LivenessTracker]) -> int | None:
    candidates = [coerce_timestamp(session.get('lastSeenAlive'))]
    if tracker is not None:
        candidates.append(tracker.last_alive(session['id']))
    known = [c for c in candidates if c is not None]
    return max(known) if known else None


def overlay_liveness(
    session: SessionSnapshot,
    now_ms: int,
    probe: Callable[[int], bool] = pid_exists,
    tracker: Optional[LivenessTracker] = None,
    stale_after_seconds: float = STALE_AFTER_SECONDS,
) -> SessionSnapshot:
    """Return a copy of a normalized session with corrected liveness fields.

    Args:
        session: Normalized Session Snapshot
        now_ms: Current time in epoch milliseconds
        probe: PID existence check (injectable for tests)
        tracker: Optional memory of when sessions were last alive
        stale_after_seconds: Grace window before dead in-progress sessions are archived

    Returns:
        New snapshot with alive, lastSeenAlive, status, activity and state set
    """
    result = session.copy()
    pid = session.get('pid')
    last_seen = _best_last_seen(session, tracker)

    if not pid:
        result['alive'] = None
        result['lastSeenAlive'] = to_iso(last_seen)
        return result

    if probe(pid):
        if tracker is not None:
            tracker.mark_alive(session['id'], now_ms)
        result['alive'] = True
        result['lastSeenAlive'] = to_iso(now_ms)
        return result

    status = session.get('status')
    activity = session.get('activity')
    in_progress = is_in_progress(status) or is_in_progress(activity)
    stale = last_seen is not None and (now_ms - last_seen) > stale_after_seconds * 1000

    if stale and in_progress:
        result['status'] = result['activity'] = SessionState.ARCHIVED.value
    elif is_busy(status) or is_busy(activity):
        result['status'] = result['activity'] = SessionState.EXITED.value

    if result['status'] != status:
        logger.info(f"Session {session['id']} pid {pid} is gone: {status!r} -> {result['status']!r}")

    result['alive'] = False
    result['lastSeenAlive'] = to_iso(last_seen)
    result['state'] = combined_state(result['status'], result['activity']).value
    return result

"""Canonical lifecycle states for agent sessions.

The registry reports status and activity as free text ("Working on #12",
"pr_closed", "Cloning repo..."). Every component that needs to know whether a
session is in progress or finished goes through normalize_state so that the
liveness overlay, transition detection and completion detection agree.
"""

from enum import Enum


class SessionState(str, Enum):
    PENDING = 'pending'
    CLONING = 'cloning'
    WORKING = 'working'
    WAITING = 'waiting'
    EXITED = 'exited'
    DEAD = 'dead'
    ARCHIVED = 'archived'
    MERGED = 'merged'
    PR_CLOSED = 'pr_closed'
    UNKNOWN = 'unknown'


# Substring markers in match order; terminal markers win over progress words
# so that "working -> merged" style strings count as finished.
_MARKERS: tuple[tuple[str, SessionState], ...] = (
    ('pr_closed', SessionState.PR_CLOSED),
    ('merged', SessionState.MERGED),
    ('archived', SessionState.ARCHIVED),
    ('exited', SessionState.EXITED),
    ('dead', SessionState.DEAD),
    ('cloning', SessionState.CLONING),
    ('working', SessionState.WORKING),
    ('waiting', SessionState.WAITING),
    ('pending', SessionState.PENDING),
)

TERMINAL_STATES = frozenset({
    SessionState.MERGED,
    SessionState.DEAD,
    SessionState.EXITED,
    SessionState.ARCHIVED,
    SessionState.PR_CLOSED,
})

IN_PROGRESS_STATES = frozenset({
    SessionState.PENDING,
    SessionState.CLONING,
    SessionState.WORKING,
})

# A dead process cannot still be doing these
BUSY_STATES = frozenset({SessionState.CLONING, SessionState.WORKING})


def normalize_state(text) -> SessionState:
    """Map raw status/activity text to a canonical state (case-insensitive)."""
    if text is None:
        return SessionState.UNKNOWN
    lowered = str(text).lower()
    for marker, state in _MARKERS:
        if marker in lowered:
            return state
    return SessionState.UNKNOWN


def is_terminal(text) -> bool:
    return normalize_state(text) in TERMINAL_STATES


def is_in_progress(text) -> bool:
    return normalize_state(text) in IN_PROGRESS_STATES


def is_busy(text) -> bool:
    """True if the text mentions cloning or working anywhere.

    Matches markers directly rather than through normalize_state, so
    "working -> merged" still counts as busy.
    """
    if text is None:
        return False
    lowered = str(text).lower()
    return any(marker in lowered for marker, state in _MARKERS if state in BUSY_STATES)


def combined_state(status, activity) -> SessionState:
    """Canonical state of a session from its status, falling back to activity."""
    state = normalize_state(status)
    if state is SessionState.UNKNOWN:
        state = normalize_state(activity)
    return state

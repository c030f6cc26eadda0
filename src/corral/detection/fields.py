"""Alias tables for the registry's unstable session schema.

Each logical attribute has an ordered list of key spellings seen across lasso
versions. normalize_session resolves every attribute through resolve_first, so
adding a new spelling is a one-line change here rather than a new lookup at
some call site.
"""

from typing import Any, Sequence

from ..normalize import coerce_number, coerce_timestamp, to_iso
from ..types import SessionSnapshot
from ..utils import resolve_first
from .lifecycle import combined_state

ID_FIELDS = ('id', 'sessionId', 'session_id', 'sessionID', 'uuid')
REPO_FIELDS = ('repo', 'repository', 'repoName', 'repo_name', 'repository.fullName',
               'repository.name', 'project', 'issue.repo')
ISSUE_ID_FIELDS = ('issueId', 'issue_id', 'issueNumber', 'issue_number', 'issue.number',
                   'issue.id', 'issue', 'ticket')
ISSUE_TITLE_FIELDS = ('issueTitle', 'issue_title', 'issue.title', 'title', 'task')
STATUS_FIELDS = ('status', 'state', 'sessionStatus', 'session_status')
ACTIVITY_FIELDS = ('activity', 'currentActivity', 'current_activity', 'phase', 'step')
AGENT_TYPE_FIELDS = ('agentType', 'agent_type', 'agent.type', 'agent.name', 'agent', 'kind')
PR_NUMBER_FIELDS = ('prNumber', 'pr_number', 'pr.number', 'pullRequest.number',
                    'pull_request.number', 'pr', 'pullRequest')
PID_FIELDS = ('pid', 'PID', 'processId', 'process_id', 'agentPid', 'agent_pid', 'process.pid')
WORKSPACE_FIELDS = ('workspacePath', 'workspace_path', 'workspace', 'worktreePath',
                    'worktree_path', 'worktree', 'workDir', 'workdir', 'cwd', 'path')
CREATED_FIELDS = ('createdAt', 'created_at', 'startedAt', 'started_at', 'startTime',
                  'start_time', 'created', 'spawnedAt')
UPDATED_FIELDS = ('updatedAt', 'updated_at', 'lastUpdatedAt', 'last_updated_at',
                  'lastUpdate', 'last_update', 'lastActivityAt', 'last_activity_at',
                  'lastActivity', 'last_activity', 'timestamp')
ENDED_FIELDS = ('endedAt', 'ended_at', 'completedAt', 'completed_at', 'finishedAt',
                'finished_at', 'closedAt', 'closed_at', 'exitedAt', 'exited_at')
LAST_SEEN_FIELDS = ('lastSeenAlive', 'last_seen_alive', 'lastSeen', 'last_seen',
                    'lastHeartbeat', 'last_heartbeat', 'heartbeatAt') + UPDATED_FIELDS


def resolve_timestamp(record: dict, candidates: Sequence[str]) -> int | None:
    """First candidate field that coerces to a timestamp, in epoch ms."""
    for candidate in candidates:
        ms = coerce_timestamp(resolve_first(record, (candidate,)))
        if ms is not None:
            return ms
    return None


def extract_pid(record: dict) -> int | None:
    """First positive integer PID among the known PID-bearing fields."""
    for candidate in PID_FIELDS:
        number = coerce_number(resolve_first(record, (candidate,)))
        if number is None:
            continue
        if number > 0 and float(number).is_integer():
            return int(number)
    return None


def _text(value: Any) -> str | None:
    return None if value is None else str(value)


def normalize_session(record: dict, key: str | None = None) -> SessionSnapshot | None:
    """Build a Session Snapshot from one raw registry record.

    Args:
        record: Raw session object from the registry
        key: Registry key the record was stored under, used as id fallback

    Returns:
        Normalized snapshot dict, or None when no id can be resolved
    """
    if not isinstance(record, dict):
        return None

    session_id = resolve_first(record, ID_FIELDS)
    if session_id is None:
        session_id = key
    if session_id is None or not str(session_id).strip():
        return None

    status = _text(resolve_first(record, STATUS_FIELDS))
    activity = _text(resolve_first(record, ACTIVITY_FIELDS))

    return {
        'id': str(session_id),
        'repo': _text(resolve_first(record, REPO_FIELDS)),
        'issueId': resolve_first(record, ISSUE_ID_FIELDS),
        'issueTitle': _text(resolve_first(record, ISSUE_TITLE_FIELDS)),
        'status': status,
        'activity': activity,
        'agentType': _text(resolve_first(record, AGENT_TYPE_FIELDS)),
        'prNumber': resolve_first(record, PR_NUMBER_FIELDS),
        'pid': extract_pid(record),
        'workspacePath': _text(resolve_first(record, WORKSPACE_FIELDS)),
        'createdAt': to_iso(resolve_timestamp(record, CREATED_FIELDS)),
        'updatedAt': to_iso(resolve_timestamp(record, UPDATED_FIELDS)),
        'endedAt': to_iso(resolve_timestamp(record, ENDED_FIELDS)),
        'lastSeenAlive': to_iso(resolve_timestamp(record, LAST_SEEN_FIELDS)),
        'state': combined_state(status, activity).value,
    }

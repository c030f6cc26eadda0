"""Type definitions for Corral.

This module provides TypedDict definitions for better type safety and
documentation of the data structures used throughout the application.
"""

from typing import TypedDict
from typing_extensions import NotRequired


class SessionSnapshot(TypedDict):
    """Normalized per-poll view of one registry session."""
    id: str
    repo: str | None
    issueId: str | int | None
    issueTitle: str | None
    status: str | None
    activity: str | None
    agentType: str | None
    prNumber: str | int | None
    pid: int | None
    workspacePath: str | None
    createdAt: str | None
    updatedAt: str | None
    endedAt: str | None
    lastSeenAlive: str | None
    state: str
    alive: NotRequired[bool | None]
    tokensUsed: NotRequired[int | None]


class StatusEvent(TypedDict):
    """A single status/activity transition in a history entry."""
    status: str | None
    activity: str | None
    at: str


class HistoryEntry(TypedDict):
    """Durable record of one session, keyed by session id."""
    id: str
    repo: str | None
    issueId: str | int | None
    issueTitle: str | None
    status: str | None
    activity: str | None
    agentType: str | None
    prNumber: str | int | None
    createdAt: str | None
    endedAt: str | None
    lastUpdatedAt: str | None
    statusHistory: list[StatusEvent]


class TokenCacheEntry(TypedDict):
    """Cached token total for one workspace (None = no usage logs found)."""
    tokensUsed: int | None
    ts: int


class UsageMetric(TypedDict):
    """One quota metric reported by a provider."""
    id: str
    label: str
    unit: str  # 'messages', 'tokens' or 'percent'
    used: float | None
    limit: float | None
    remaining: float | None
    percent: float | None


class ProviderUsage(TypedDict):
    """Quota metrics for a single provider."""
    id: str
    name: str
    status: str  # 'ok', 'error', 'unavailable'
    metrics: list[UsageMetric]
    resetAt: str | None
    error: NotRequired[str]


class UsageReport(TypedDict):
    """Process-wide usage snapshot shared by all pollers."""
    fetchedAt: str
    providers: list[ProviderUsage]

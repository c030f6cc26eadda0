"""Service modules for Corral."""

from .commands import CommandResult, run_command, run_cleanup
from .tokens import TokenUsageAggregator, tokens_from_record
from .history import HistoryLimits, HistoryStore, reconcile_history, apply_retention
from .quota import parse_usage_output
from .usage import UsageCache, UsageService

__all__ = [
    'CommandResult',
    'run_command',
    'run_cleanup',
    'TokenUsageAggregator',
    'tokens_from_record',
    'HistoryLimits',
    'HistoryStore',
    'reconcile_history',
    'apply_retention',
    'parse_usage_output',
    'UsageCache',
    'UsageService',
]

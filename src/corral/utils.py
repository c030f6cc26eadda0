"""Shared utilities for Corral.

This module contains the small dictionary and JSONL helpers used by the
registry loader, the token aggregator and the quota parser.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterator, Sequence

logger = logging.getLogger(__name__)


def parse_jsonl_line(line: str | bytes) -> dict[str, Any] | None:
    """Safely parse a single JSONL line.

    Args:
        line: A line from a JSONL file (string or bytes)

    Returns:
        Parsed JSON dictionary or None if parsing failed or the line
        does not hold an object
    """
    try:
        if isinstance(line, bytes):
            line = line.decode('utf-8')
        data = json.loads(line.strip())
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def iter_jsonl_records(path: Path) -> Iterator[dict[str, Any]]:
    """Yield every well-formed JSON object in a JSONL file, skipping bad lines."""
    with open(path, 'r', encoding='utf-8', errors='replace') as f:
        for line in f:
            if not line.strip():
                continue
            record = parse_jsonl_line(line)
            if record is not None:
                yield record


def safe_get_nested(data: dict, *keys: str, default: Any = None) -> Any:
    """Safely get a nested value from a dictionary.

    Args:
        data: The dictionary to search
        *keys: The nested keys to follow
        default: Default value if key path not found

    Returns:
        The nested value or default

    Example:
        safe_get_nested({'a': {'b': 1}}, 'a', 'b') -> 1
        safe_get_nested({'a': {}}, 'a', 'b', default=0) -> 0
    """
    result = data
    for key in keys:
        if isinstance(result, dict):
            result = result.get(key, default)
        else:
            return default
    return result


def is_empty(value: Any) -> bool:
    """True for None and blank strings."""
    return value is None or (isinstance(value, str) and not value.strip())


def resolve_first(
    record: dict,
    candidates: Sequence[str],
    scalar: bool = True,
) -> Any:
    """Return the first non-empty value among candidate key paths.

    Candidates are tried in priority order; dotted paths ('issue.title')
    descend into nested objects. With scalar=True, dict and list values are
    skipped so that e.g. an 'issue' object never stands in for an issue id.

    Example:
        resolve_first({'session_id': 'a1'}, ('id', 'sessionId', 'session_id')) -> 'a1'
    """
    if not isinstance(record, dict):
        return None
    for candidate in candidates:
        value = safe_get_nested(record, *candidate.split('.'))
        if is_empty(value):
            continue
        if scalar and isinstance(value, (dict, list)):
            continue
        return value
    return None

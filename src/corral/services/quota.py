"""Parsing of external usage-quota script output.

The usage script is not ours and its output format is not stable. Parsing is
attempted in order:

1. The provider's structured format: window objects such as
   {"five_hour": {"utilization": 42.0, "resets_at": "..."}}.
2. Any other JSON object: numeric leaves are flattened to dotted keys and
   matched against {message|token} x {used|limit|remaining} vocabularies.
3. Free text: "N / M" pairs on lines mentioning messages or tokens, plus a
   reset date.

Output nobody can make sense of becomes a provider with status 'error'.
"""

import json
import re
from typing import Any, Optional

from ..logging_config import get_logger
from ..normalize import coerce_number, coerce_timestamp, to_iso
from ..types import ProviderUsage, UsageMetric

logger = get_logger(__name__, namespace='usage')

WINDOW_LABELS = {
    'five_hour': '5-hour window',
    'seven_day': '7-day window',
    'seven_day_opus': '7-day window (Opus)',
    'seven_day_sonnet': '7-day window (Sonnet)',
    'seven_day_oauth_apps': '7-day window (OAuth apps)',
}

KIND_PATTERNS = (
    ('messages', re.compile(r'message|msg', re.IGNORECASE)),
    ('tokens', re.compile(r'token', re.IGNORECASE)),
)

ROLE_PATTERNS = (
    ('remaining', re.compile(r'remaining|left|available', re.IGNORECASE)),
    ('limit', re.compile(r'limit|max|quota|cap|allowance', re.IGNORECASE)),
    ('used', re.compile(r'used|usage|consumed|spent|count|current', re.IGNORECASE)),
    ('limit', re.compile(r'total', re.IGNORECASE)),
)

RESET_KEY_RE = re.compile(r'reset|renew|refresh|rollover|window', re.IGNORECASE)

_NUM = r'(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?'
PAIR_RE = re.compile(rf'({_NUM})\s*(?:/|of|out of)\s*({_NUM})', re.IGNORECASE)
RESET_TEXT_RE = re.compile(r'(?:reset|renew)s?\s*(?:at|on|in)?\s*[:\-]?\s*(.+)$', re.IGNORECASE)
DATE_RE = re.compile(
    r'\d{4}-\d{2}-\d{2}(?:[T ]\d{2}:\d{2}(?::\d{2})?(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?'
)


def make_metric(
    metric_id: str,
    label: str,
    unit: str,
    used: Optional[float] = None,
    limit: Optional[float] = None,
    remaining: Optional[float] = None,
) -> UsageMetric:
    """Build a metric, filling in whichever of used/remaining can be derived."""
    if used is None and limit is not None and remaining is not None:
        used = limit - remaining
    if remaining is None and limit is not None and used is not None:
        remaining = limit - used
    percent = None
    if used is not None and limit:
        percent = round(used / limit * 100, 1)
    return {
        'id': metric_id,
        'label': label,
        'unit': unit,
        'used': used,
        'limit': limit,
        'remaining': remaining,
        'percent': percent,
    }


def make_provider(
    provider_id: str,
    name: str,
    status: str,
    metrics: Optional[list[UsageMetric]] = None,
    reset_ms: Optional[int] = None,
    error: Optional[str] = None,
) -> ProviderUsage:
    provider: ProviderUsage = {
        'id': provider_id,
        'name': name,
        'status': status,
        'metrics': metrics or [],
        'resetAt': to_iso(reset_ms),
    }
    if error:
        provider['error'] = error
    return provider


def _parse_structured(doc: dict) -> Optional[tuple[list[UsageMetric], Optional[int]]]:
    """Window objects carrying both utilization and a reset field."""
    metrics = []
    resets = []
    for key, value in doc.items():
        if not isinstance(value, dict):
            continue
        if 'utilization' not in value:
            continue
        reset_key = 'resets_at' if 'resets_at' in value else 'resetsAt' if 'resetsAt' in value else None
        if reset_key is None:
            continue
        utilization = coerce_number(value['utilization'])
        if utilization is None:
            continue
        label = WINDOW_LABELS.get(key, key.replace('_', ' '))
        metrics.append(make_metric(key, label, 'percent', used=utilization, limit=100))
        reset_ms = coerce_timestamp(value[reset_key])
        if reset_ms is not None:
            resets.append(reset_ms)
    if not metrics:
        return None
    return metrics, (min(resets) if resets else None)


def flatten_json(data: Any, prefix: str = '') -> dict[str, Any]:
    """Flatten nested JSON into dotted keys mapped to scalar leaves."""
    flat: dict[str, Any] = {}
    if isinstance(data, dict):
        items = ((str(k), v) for k, v in data.items())
    elif isinstance(data, list):
        items = ((str(i), v) for i, v in enumerate(data))
    else:
        if prefix:
            flat[prefix] = data
        return flat
    for key, value in items:
        path = f"{prefix}.{key}" if prefix else key
        flat.update(flatten_json(value, path))
    return flat


def _classify(key: str) -> tuple[Optional[str], Optional[str]]:
    kind = next((k for k, pattern in KIND_PATTERNS if pattern.search(key)), None)
    last = key.rsplit('.', 1)[-1]
    role = next((r for r, pattern in ROLE_PATTERNS if pattern.search(last)), None)
    if role is None:
        role = next((r for r, pattern in ROLE_PATTERNS if pattern.search(key)), None)
    return kind, role


def _find_reset(flat: dict[str, Any]) -> Optional[int]:
    for key, value in flat.items():
        if RESET_KEY_RE.search(key):
            reset_ms = coerce_timestamp(value)
            if reset_ms is not None:
                return reset_ms
    return None


def _parse_generic(doc: Any) -> tuple[list[UsageMetric], Optional[int]]:
    flat = flatten_json(doc)
    found: dict[str, dict[str, float]] = {}
    for key, value in flat.items():
        # Only the leaf name marks a reset field; parents like "window" hold metrics
        if RESET_KEY_RE.search(key.rsplit('.', 1)[-1]):
            continue
        number = coerce_number(value)
        if number is None:
            continue
        kind, role = _classify(key)
        if kind is None or role is None:
            continue
        found.setdefault(kind, {}).setdefault(role, number)

    metrics = []
    for kind, _ in KIND_PATTERNS:
        values = found.get(kind)
        if not values:
            continue
        metric = make_metric(kind, kind.capitalize(), kind, **values)
        if metric['used'] is None and metric['limit'] is None:
            continue
        metrics.append(metric)
    return metrics, _find_reset(flat)


def _pair_near(line: str, position: int) -> Optional[re.Match]:
    """First "N / M" pair after the keyword, else the last one before it."""
    match = PAIR_RE.search(line, position)
    if match:
        return match
    before = list(PAIR_RE.finditer(line[:position]))
    return before[-1] if before else None


def _parse_text(text: str) -> tuple[list[UsageMetric], Optional[int]]:
    found: dict[str, tuple[float, float]] = {}
    reset_ms = None
    for line in text.splitlines():
        lowered = line.lower()
        for kind in ('messages', 'tokens'):
            position = lowered.find(kind.rstrip('s'))
            if kind in found or position < 0:
                continue
            match = _pair_near(line, position)
            if match:
                used, limit = coerce_number(match.group(1)), coerce_number(match.group(2))
                if used is not None and limit is not None:
                    found[kind] = (used, limit)
        if reset_ms is None:
            reset_match = RESET_TEXT_RE.search(line)
            if reset_match:
                candidate = reset_match.group(1).strip()
                reset_ms = coerce_timestamp(candidate)
                if reset_ms is None:
                    date_match = DATE_RE.search(candidate)
                    if date_match:
                        reset_ms = coerce_timestamp(date_match.group(0))

    metrics = [
        make_metric(kind, kind.capitalize(), kind, used=used, limit=limit)
        for kind, (used, limit) in found.items()
    ]
    return metrics, reset_ms


def parse_usage_output(text: Optional[str], provider_id: str, provider_name: str) -> ProviderUsage:
    """Turn raw usage-script output into a ProviderUsage. Never raises."""
    if text is None or not text.strip():
        return make_provider(provider_id, provider_name, 'error', error='Usage script produced no output')

    try:
        doc = json.loads(text)
    except json.JSONDecodeError:
        doc = None

    if isinstance(doc, dict):
        structured = _parse_structured(doc)
        if structured is not None:
            metrics, reset_ms = structured
            return make_provider(provider_id, provider_name, 'ok', metrics, reset_ms)

        metrics, reset_ms = _parse_generic(doc)
        if metrics:
            return make_provider(provider_id, provider_name, 'ok', metrics, reset_ms)

        if isinstance(doc.get('error'), str):
            return make_provider(provider_id, provider_name, 'error', error=doc['error'])

    metrics, reset_ms = _parse_text(text)
    if metrics:
        return make_provider(provider_id, provider_name, 'ok', metrics, reset_ms)

    logger.warning(f"Unrecognized usage output from {provider_id}: {text.strip()[:120]!r}")
    return make_provider(provider_id, provider_name, 'error', error='Unrecognized usage output')

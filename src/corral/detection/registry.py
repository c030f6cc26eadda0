"""Session registry loading and flattening.

The lasso orchestrator owns the registry; its top-level shape has changed
between releases ({"sessions": {...}}, a bare id -> record mapping, lists of
records). Everything is flattened to a list of normalized snapshots here.
"""

import json
from pathlib import Path
from typing import Any, Iterator

from ..errors import RegistryError
from ..logging_config import get_logger
from ..services.commands import run_command
from .fields import normalize_session

logger = get_logger(__name__, namespace='registry')

# Top-level keys that wrap the session collection
CONTAINER_KEYS = ('sessions', 'agents', 'data')


def load_registry_file(path: Path) -> Any:
    """Read the registry document from disk.

    Returns:
        Parsed JSON, or an empty dict if the file does not exist

    Raises:
        RegistryError: if the file exists but is not valid JSON
    """
    try:
        text = Path(path).read_text(encoding='utf-8')
    except FileNotFoundError:
        logger.debug(f"Registry {path} not found; no sessions")
        return {}
    except OSError as e:
        raise RegistryError(f"Cannot read registry {path}: {e}", source=str(path))

    if not text.strip():
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise RegistryError(f"Registry {path} is not valid JSON: {e}", source=str(path))


async def load_registry_command(args: list[str], timeout: float) -> Any:
    """Read the registry document from a command's stdout (e.g. `lasso status --json`).

    Raises:
        CommandError: if the command fails or times out
        RegistryError: if its output is not valid JSON
    """
    result = await run_command(args, timeout=timeout)
    if not result.stdout.strip():
        return {}
    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise RegistryError(f"{args[0]} did not print valid JSON: {e}", source=' '.join(args))


def _iter_records(doc: Any) -> Iterator[tuple[str | None, Any]]:
    if isinstance(doc, list):
        for record in doc:
            yield None, record
        return
    if not isinstance(doc, dict):
        return

    for container in CONTAINER_KEYS:
        if container in doc and isinstance(doc[container], (dict, list)):
            yield from _iter_records(doc[container])
            return

    for key, record in doc.items():
        yield str(key), record


def flatten_registry(doc: Any) -> list[dict]:
    """Flatten a registry document into normalized Session Snapshots.

    Records that are not objects, or that have no resolvable id, are dropped.
    When the same id appears twice the later record wins.
    """
    sessions: dict[str, dict] = {}
    for key, record in _iter_records(doc):
        if not isinstance(record, dict):
            continue
        snapshot = normalize_session(record, key)
        if snapshot is None:
            logger.debug(f"Skipping registry record without id (key={key!r})")
            continue
        sessions[snapshot['id']] = snapshot
    return list(sessions.values())

"""Configuration module for Corral.

Centralizes all configuration constants and environment variables
to eliminate scattered magic numbers and duplicated settings.
"""

import os
import shlex
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_command(name: str, default: str) -> list[str]:
    """Split a command line from the environment into an argv list."""
    return shlex.split(os.getenv(name, default))


# ============================================================================
# Path Configuration
# ============================================================================

# Session registry written by the lasso orchestrator
REGISTRY_PATH = Path(os.getenv(
    "CORRAL_REGISTRY_PATH",
    str(Path.home() / ".lasso" / "sessions.json"),
))

# Durable history log maintained by the reconciler
HISTORY_PATH = Path(os.getenv(
    "CORRAL_HISTORY_PATH",
    str(Path.home() / ".lasso" / "corral-history.json"),
))

# Directory holding index.html and other frontend assets
STATIC_DIR = Path(os.getenv(
    "CORRAL_STATIC_DIR",
    str(Path(__file__).parent.parent.parent / "frontend"),
))


# ============================================================================
# External Commands
# ============================================================================

LASSO_BIN = os.getenv("LASSO_BIN", "lasso")

# When set, the registry is read from this command's stdout instead of the file
REGISTRY_COMMAND = _env_command("CORRAL_REGISTRY_COMMAND", "")
REGISTRY_COMMAND_TIMEOUT = _env_float("CORRAL_REGISTRY_COMMAND_TIMEOUT", 5.0)

CLEANUP_COMMAND = _env_command("CORRAL_CLEANUP_COMMAND", f"{shlex.quote(LASSO_BIN)} cleanup")
CLEANUP_TIMEOUT = _env_float("CORRAL_CLEANUP_TIMEOUT", 30.0)

# Usage-quota script; empty disables the external provider
USAGE_SCRIPT = os.getenv("CORRAL_USAGE_SCRIPT", "")
USAGE_SCRIPT_ARGS = _env_command("CORRAL_USAGE_SCRIPT_ARGS", "--json")
USAGE_SCRIPT_TIMEOUT = _env_float("CORRAL_USAGE_SCRIPT_TIMEOUT", 15.0)


# ============================================================================
# Liveness
# ============================================================================

# Dead in-progress sessions older than this are archived instead of exited
STALE_AFTER_SECONDS = 3600


# ============================================================================
# Token Aggregation
# ============================================================================

# Workspace subdirectories scanned for newline-delimited usage records
TOKEN_LOG_SUBDIRS = (".lasso/logs", ".claude/logs")
TOKEN_LOG_EXTENSION = ".jsonl"

# How long to trust a workspace's token total before rescanning (seconds)
TOKEN_CACHE_TTL = _env_float("CORRAL_TOKEN_CACHE_TTL", 30.0)


# ============================================================================
# History Retention
# ============================================================================

MAX_STATUS_HISTORY = 50
HISTORY_MAX_COMPLETED = _env_int("CORRAL_HISTORY_MAX_COMPLETED", 200)
HISTORY_MAX_ENTRIES = _env_int("CORRAL_HISTORY_MAX_ENTRIES", 500)


# ============================================================================
# Usage Report
# ============================================================================

USAGE_CACHE_TTL = _env_float("CORRAL_USAGE_CACHE_TTL", 60.0)

USAGE_PROVIDER_ID = os.getenv("CORRAL_USAGE_PROVIDER_ID", "claude")
USAGE_PROVIDER_NAME = os.getenv("CORRAL_USAGE_PROVIDER_NAME", "Claude")

# Optional token budget for the locally estimated provider (0 = none)
LOCAL_TOKEN_BUDGET = _env_int("CORRAL_LOCAL_TOKEN_BUDGET", 0)


# ============================================================================
# Server Configuration
# ============================================================================

DEFAULT_HOST = os.getenv("CORRAL_HOST", "127.0.0.1")
DEFAULT_PORT = _env_int("PORT", 3377)

"""Detection modules for registry sessions.

This package contains modules for:
- Registry loading and flattening (registry.py)
- Field alias resolution (fields.py)
- Canonical lifecycle states (lifecycle.py)
- PID probing (processes.py)
- Liveness overlay (liveness.py)

Import functions from here for a clean API:
    from corral.detection import flatten_registry, overlay_liveness
"""

# Process probing
from .processes import pid_exists

# Lifecycle states
from .lifecycle import (
    SessionState,
    normalize_state,
    combined_state,
    is_terminal,
    is_in_progress,
    is_busy,
)

# Field resolution
from .fields import (
    normalize_session,
    extract_pid,
    resolve_timestamp,
)

# Liveness overlay
from .liveness import (
    LivenessTracker,
    overlay_liveness,
)

# Registry
from .registry import (
    flatten_registry,
    load_registry_file,
    load_registry_command,
)

__all__ = [
    # Process probing
    'pid_exists',
    # Lifecycle states
    'SessionState',
    'normalize_state',
    'combined_state',
    'is_terminal',
    'is_in_progress',
    'is_busy',
    # Field resolution
    'normalize_session',
    'extract_pid',
    'resolve_timestamp',
    # Liveness overlay
    'LivenessTracker',
    'overlay_liveness',
    # Registry
    'flatten_registry',
    'load_registry_file',
    'load_registry_command',
]

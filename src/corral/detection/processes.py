"""OS process probing for agent sessions.

This module provides functions for:
- Checking whether a PID still exists (signal 0 probe)
"""

import errno
import os

from ..logging_config import get_logger

logger = get_logger(__name__, namespace='liveness')


def pid_exists(pid: int) -> bool:
    """Check whether a process with this PID exists.

    Only an explicit "no such process" answer counts as dead. Permission
    errors and any other failure report the process as alive, so an agent
    owned by another user is never declared dead.
    """
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError as e:
        if e.errno == errno.ESRCH:
            return False
        logger.debug(f"Probe of pid {pid} failed ({e}); treating as alive")
        return True
    return True

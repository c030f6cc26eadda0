"""External command invocation with timeouts.

Used for the registry command, the usage-quota script and the lasso cleanup
action. Failures are raised as CommandError carrying the command's own
diagnostic output so the HTTP layer can report it without a stack trace.
"""

import asyncio
from dataclasses import dataclass

from ..config import CLEANUP_COMMAND, CLEANUP_TIMEOUT
from ..errors import CommandError
from ..logging_config import get_logger

logger = get_logger(__name__, namespace='commands')


@dataclass
class CommandResult:
    """Completed external command."""
    command: list[str]
    returncode: int
    stdout: str
    stderr: str

    def to_dict(self) -> dict:
        return {
            'success': self.returncode == 0,
            'command': self.command,
            'returncode': self.returncode,
            'stdout': self.stdout,
            'stderr': self.stderr,
        }


async def run_command(args: list[str], timeout: float) -> CommandResult:
    """Run a command and collect its output.

    Args:
        args: argv list; args[0] is resolved on PATH
        timeout: Seconds before the process is killed

    Returns:
        CommandResult for a zero exit status

    Raises:
        CommandError: on missing executable, timeout or non-zero exit
    """
    if not args:
        raise CommandError("No command configured", command=[])

    logger.debug(f"Running {' '.join(args)} (timeout={timeout}s)")
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        raise CommandError(f"Command not found: {args[0]}", command=args)
    except PermissionError:
        raise CommandError(f"Command not executable: {args[0]}", command=args)

    try:
        stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        logger.warning(f"{args[0]} timed out after {timeout}s")
        raise CommandError(
            f"{args[0]} timed out after {timeout:g}s",
            command=args,
            timed_out=True,
        )

    stdout = stdout_b.decode('utf-8', errors='replace')
    stderr = stderr_b.decode('utf-8', errors='replace')

    if proc.returncode != 0:
        logger.warning(f"{args[0]} exited with {proc.returncode}: {stderr.strip()[:200]}")
        raise CommandError(
            f"{args[0]} exited with status {proc.returncode}",
            command=args,
            returncode=proc.returncode,
            stdout=stdout,
            stderr=stderr,
        )

    return CommandResult(command=args, returncode=0, stdout=stdout, stderr=stderr)


async def run_cleanup(
    command: list[str] | None = None,
    timeout: float = CLEANUP_TIMEOUT,
) -> CommandResult:
    """Run the orchestrator's cleanup action and pass its output through."""
    args = list(command) if command is not None else list(CLEANUP_COMMAND)
    result = await run_command(args, timeout=timeout)
    logger.info(f"Cleanup finished: {' '.join(args)}")
    return result

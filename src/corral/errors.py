"""Exceptions surfaced to the HTTP layer as request-level errors."""


class CorralError(Exception):
    """Base class for Corral errors."""


class RegistryError(CorralError):
    """The session registry exists but could not be decoded."""

    def __init__(self, message: str, source: str | None = None):
        super().__init__(message)
        self.source = source


class CommandError(CorralError):
    """An external command failed, exited non-zero, or timed out."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
        stdout: str = '',
        stderr: str = '',
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.timed_out = timed_out

    def to_dict(self) -> dict:
        return {
            'error': str(self),
            'command': self.command,
            'returncode': self.returncode,
            'stdout': self.stdout,
            'stderr': self.stderr,
            'timedOut': self.timed_out,
        }

"""Core exceptions: configuration, artifact, command and lifecycle errors."""

from pathlib import Path
from typing import List, Optional, Union


class EmbeddedRabbitMqError(Exception):
    """Base exception for all embedded broker errors."""

    pass


class ConfigurationError(EmbeddedRabbitMqError):
    """Raised when build-time options are invalid, conflicting or unresolvable."""

    pass


class IllegalStateError(EmbeddedRabbitMqError):
    """Raised when a lifecycle method is called in the wrong state."""

    pass


class DependencyMissingError(EmbeddedRabbitMqError):
    """Raised when the Erlang runtime the broker depends on is absent or too old."""

    pass


class DownloadError(EmbeddedRabbitMqError):
    """Raised when the broker artifact cannot be fetched."""

    def __init__(self, url: str, cause: Union[Exception, str]):
        self.url = url
        self.cause = cause
        super().__init__(f"Failed to download {url}: {cause}")


class ExtractionError(EmbeddedRabbitMqError):
    """Raised when the downloaded archive cannot be unpacked."""

    def __init__(self, archive: Union[str, Path], cause: Union[Exception, str]):
        self.archive = Path(archive)
        self.cause = cause
        super().__init__(f"Failed to extract {self.archive}: {cause}")


class CommandError(EmbeddedRabbitMqError):
    """Base for errors raised by broker or runtime command invocations."""

    def __init__(
        self,
        message: str,
        command: Optional[List[str]] = None,
        exit_code: int = -1,
        stdout: str = "",
        stderr: str = "",
    ):
        self.command = list(command or [])
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        if stderr:
            message += f"\nStderr: {stderr[:500]}"
        super().__init__(message)

    @property
    def command_line(self) -> str:
        return " ".join(self.command)


class CommandFailedError(CommandError):
    """Raised when a command exits with a non-zero code or cannot be executed."""

    def __init__(
        self,
        command: List[str],
        exit_code: int,
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(
            f"Command '{' '.join(command)}' failed (exit code {exit_code})",
            command=command,
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
        )


class CommandTimeoutError(CommandError):
    """Raised when a one-shot command does not finish before its timeout."""

    def __init__(
        self,
        command: List[str],
        timeout: float,
        stdout: str = "",
        stderr: str = "",
    ):
        self.timeout = timeout
        super().__init__(
            f"Command '{' '.join(command)}' timed out after {timeout}s",
            command=command,
            stdout=stdout,
            stderr=stderr,
        )


class StartupTimeoutError(CommandError):
    """Raised when the broker does not report itself running within the init timeout."""

    def __init__(
        self,
        command: List[str],
        timeout: float,
        stdout: str = "",
        stderr: str = "",
    ):
        self.timeout = timeout
        super().__init__(
            f"Broker '{' '.join(command)}' not ready after {timeout}s",
            command=command,
            stdout=stdout,
            stderr=stderr,
        )

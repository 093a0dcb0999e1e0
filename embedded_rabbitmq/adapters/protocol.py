"""Adapter protocol and contracts for process execution.

Defines the interface the broker commands and the lifecycle orchestrator depend
on. The default implementation lives in adapters.process; tests inject doubles
that simulate broker startup without a real binary.
"""

from typing import Callable, List, Mapping, Optional, Protocol, Tuple

from embedded_rabbitmq.core.models import CommandResult


# ============================================================================
# Process contracts
# ============================================================================


class ProcessHandle(Protocol):
    """A launched, long-running process."""

    pid: int
    command: List[str]

    def poll(self) -> Optional[int]:
        """Return the exit code if the process has exited, otherwise None."""
        ...

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """Wait up to timeout seconds; return the exit code or None if still running."""
        ...

    def terminate(self) -> None:
        ...

    def kill(self) -> None:
        ...

    def output(self) -> Tuple[str, str]:
        """Return (stdout, stderr) captured so far."""
        ...


class ProcessExecutor(Protocol):
    """Runs commands with a composed environment and bounded timeouts."""

    def run(
        self,
        command: List[str],
        env_overrides: Optional[Mapping[str, str]] = None,
        cwd: Optional[str] = None,
        timeout: Optional[float] = None,
        check: bool = True,
        stream_output: bool = False,
    ) -> CommandResult:
        """Run a one-shot command to completion.

        Raises:
            CommandTimeoutError: If the command outlives timeout.
            CommandFailedError: If check is set and the exit code is non-zero,
                or the executable cannot be started.
        """
        ...

    def start(
        self,
        command: List[str],
        env_overrides: Optional[Mapping[str, str]] = None,
        cwd: Optional[str] = None,
        stream_output: bool = True,
    ) -> ProcessHandle:
        """Launch a long-running command and return immediately.

        Raises:
            CommandFailedError: If the executable cannot be started.
        """
        ...


ProcessExecutorFactory = Callable[[], ProcessExecutor]

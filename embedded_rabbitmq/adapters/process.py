"""
Subprocess execution for broker and runtime commands.

Provides the default ProcessExecutor: one-shot commands with hard timeouts and
long-running launches that return a live handle. Output of every process is
drained by daemon threads so a chatty broker cannot fill a pipe and stall, and
is kept in memory for diagnostics.
"""

import logging
import os
import signal
import subprocess
import threading
from collections import deque
from typing import IO, Deque, List, Mapping, Optional, Tuple

from embedded_rabbitmq.constants import MAX_CAPTURED_OUTPUT_LINES
from embedded_rabbitmq.core.exceptions import CommandFailedError, CommandTimeoutError
from embedded_rabbitmq.core.models import CommandResult
from embedded_rabbitmq.support.env import build_process_env

logger = logging.getLogger(__name__)
broker_logger = logging.getLogger("embedded_rabbitmq.broker")

# Seconds to wait for reader threads after the process has exited
OUTPUT_DRAIN_TIMEOUT = 1.0

# Process groups (start_new_session, killpg) are POSIX only
POSIX = os.name != "nt"


# ============================================================================
# Output capture
# ============================================================================


class OutputCollector:
    """Drains a text stream on a daemon thread into a line buffer."""

    def __init__(
        self,
        stream: IO[str],
        label: str,
        max_lines: Optional[int] = None,
        forward: bool = False,
    ):
        self._stream = stream
        self._label = label
        self._forward = forward
        self._lines: Deque[str] = deque(maxlen=max_lines)
        self._lock = threading.Lock()
        self._thread = threading.Thread(
            target=self._drain, name=f"output-{label}", daemon=True
        )

    def start(self) -> "OutputCollector":
        self._thread.start()
        return self

    def _drain(self) -> None:
        try:
            for line in iter(self._stream.readline, ""):
                with self._lock:
                    self._lines.append(line)
                if self._forward:
                    broker_logger.info(f"[{self._label}] {line.rstrip()}")
        except (OSError, ValueError) as e:
            logger.debug(f"Stopped reading {self._label}: {e}")
        finally:
            self._stream.close()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def text(self) -> str:
        with self._lock:
            return "".join(self._lines)


# ============================================================================
# Process handle
# ============================================================================


class SubprocessHandle:
    """
    Live handle over a subprocess.Popen with captured output.

    On POSIX the process leads its own process group, and terminate()/kill()
    signal the whole group. Broker scripts are shell wrappers around the
    Erlang VM, so signalling only the direct child would orphan the node.
    """

    def __init__(
        self,
        process: subprocess.Popen,
        command: List[str],
        stdout: OutputCollector,
        stderr: OutputCollector,
    ):
        self.process = process
        self.command = command
        self._stdout = stdout
        self._stderr = stderr

    @property
    def pid(self) -> int:
        return self.process.pid

    def poll(self) -> Optional[int]:
        return self.process.poll()

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        try:
            exit_code = self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return None
        self._stdout.join(OUTPUT_DRAIN_TIMEOUT)
        self._stderr.join(OUTPUT_DRAIN_TIMEOUT)
        return exit_code

    def terminate(self) -> None:
        if self.process.poll() is None:
            logger.debug(f"Terminating process {self.pid}")
            if POSIX:
                self._signal_group(signal.SIGTERM)
            else:
                self.process.terminate()

    def kill(self) -> None:
        """Kill the process and, on POSIX, anything left in its process group."""
        if POSIX:
            # Descendants can outlive the group leader
            if self._signal_group(signal.SIGKILL):
                logger.debug(f"Killed process group {self.pid}")
        elif self.process.poll() is None:
            logger.debug(f"Killing process {self.pid}")
            self.process.kill()

    def _signal_group(self, sig: int) -> bool:
        try:
            os.killpg(self.pid, sig)
        except ProcessLookupError:
            return False
        except PermissionError as e:
            logger.warning(f"Cannot signal process group {self.pid}: {e}")
            return False
        return True

    def output(self) -> Tuple[str, str]:
        return self._stdout.text(), self._stderr.text()


# ============================================================================
# Executor
# ============================================================================


class SubprocessExecutor:
    """
    Default ProcessExecutor backed by subprocess.Popen.

    Attributes:
        max_output_lines: Lines kept per stream for long-running processes.
    """

    def __init__(self, max_output_lines: int = MAX_CAPTURED_OUTPUT_LINES):
        self.max_output_lines = max_output_lines

    def _spawn(
        self,
        command: List[str],
        env_overrides: Optional[Mapping[str, str]],
        cwd: Optional[str],
        stream_output: bool,
        max_lines: Optional[int],
    ) -> SubprocessHandle:
        command = [str(part) for part in command]
        logger.debug(f"Executing: {' '.join(command)}")

        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=build_process_env(env_overrides),
                cwd=cwd,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=POSIX,
            )
        except OSError as e:
            raise CommandFailedError(command, exit_code=-1, stderr=str(e)) from e

        name = command[0].replace("\\", "/").rsplit("/", 1)[-1]
        stdout = OutputCollector(
            process.stdout, f"{name}:stdout", max_lines, forward=stream_output
        ).start()
        stderr = OutputCollector(
            process.stderr, f"{name}:stderr", max_lines, forward=stream_output
        ).start()
        return SubprocessHandle(process, command, stdout, stderr)

    def run(
        self,
        command: List[str],
        env_overrides: Optional[Mapping[str, str]] = None,
        cwd: Optional[str] = None,
        timeout: Optional[float] = None,
        check: bool = True,
        stream_output: bool = False,
    ) -> CommandResult:
        """
        Run a one-shot command to completion.

        Args:
            command: Executable followed by its arguments.
            env_overrides: Variables laid over the inherited environment.
            cwd: Working directory.
            timeout: Hard deadline in seconds (None waits forever).
            check: Raise CommandFailedError on a non-zero exit code.
            stream_output: Forward output lines to the broker logger.

        Returns:
            CommandResult with exit code and full output.

        Raises:
            CommandTimeoutError: If the deadline passes; the process is killed.
            CommandFailedError: On non-zero exit (with check) or exec failure.
        """
        handle = self._spawn(command, env_overrides, cwd, stream_output, None)
        exit_code = handle.wait(timeout)

        if exit_code is None:
            handle.kill()
            handle.wait()
            stdout, stderr = handle.output()
            logger.warning(f"Command timed out after {timeout}s: {' '.join(handle.command)}")
            raise CommandTimeoutError(handle.command, timeout, stdout, stderr)

        stdout, stderr = handle.output()
        result = CommandResult(
            command=handle.command, exit_code=exit_code, stdout=stdout, stderr=stderr
        )
        if check and not result.ok:
            raise CommandFailedError(handle.command, exit_code, stdout, stderr)
        return result

    def start(
        self,
        command: List[str],
        env_overrides: Optional[Mapping[str, str]] = None,
        cwd: Optional[str] = None,
        stream_output: bool = True,
    ) -> SubprocessHandle:
        """
        Launch a long-running command and return its handle immediately.

        Raises:
            CommandFailedError: If the executable cannot be started.
        """
        handle = self._spawn(
            command, env_overrides, cwd, stream_output, self.max_output_lines
        )
        logger.info(f"Started process {handle.pid}: {' '.join(handle.command)}")
        return handle

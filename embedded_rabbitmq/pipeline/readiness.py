"""
Broker readiness detection.

After the server process is launched, polls `rabbitmqctl status` on a fixed
interval until the node answers, the server process exits, or the init
deadline passes. On any failure the server process is terminated before the
error is raised.

States: LAUNCHING -> POLLING -> READY | TIMED_OUT | FAILED
"""

import logging
import time
from enum import Enum
from typing import Callable

from embedded_rabbitmq.constants import DEFAULT_READINESS_POLL_INTERVAL
from embedded_rabbitmq.core.exceptions import CommandError, CommandFailedError, StartupTimeoutError
from embedded_rabbitmq.adapters.commands import RabbitMqCtl
from embedded_rabbitmq.adapters.protocol import ProcessHandle

logger = logging.getLogger(__name__)


class ReadinessState(str, Enum):
    LAUNCHING = "launching"
    POLLING = "polling"
    READY = "ready"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


def terminate_process(handle: ProcessHandle, grace_period: float) -> None:
    """Terminate a process, killing it if it outlives grace_period seconds."""
    if handle.poll() is not None:
        return
    handle.terminate()
    if handle.wait(grace_period) is None:
        logger.warning(f"Process {handle.pid} ignored terminate, killing it")
        handle.kill()
        handle.wait(grace_period)


class ReadinessDetector:
    """
    Waits for a launched broker node to report itself running.

    Attributes:
        ctl: rabbitmqctl wrapper used for status polling.
        timeout: Overall deadline in seconds, counted from await_ready().
        poll_interval: Seconds between polls.
        grace_period: Seconds allowed for termination before killing.
        state: Current ReadinessState.
    """

    def __init__(
        self,
        ctl: RabbitMqCtl,
        timeout: float,
        poll_interval: float = DEFAULT_READINESS_POLL_INTERVAL,
        grace_period: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.ctl = ctl
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.grace_period = grace_period
        self.state = ReadinessState.LAUNCHING
        self._clock = clock
        self._sleep = sleep

    def await_ready(self, handle: ProcessHandle) -> None:
        """
        Block until the node is running.

        Args:
            handle: The launched server process.

        Raises:
            CommandFailedError: If the server process exits while starting.
            StartupTimeoutError: If the node is not running before the deadline.
        """
        deadline = self._clock() + self.timeout
        self.state = ReadinessState.POLLING
        logger.info(f"Waiting up to {self.timeout}s for broker process {handle.pid}")

        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                break

            exit_code = handle.poll()
            if exit_code is not None:
                self.state = ReadinessState.FAILED
                stdout, stderr = handle.output()
                logger.error(f"Broker process exited during startup (exit code {exit_code})")
                raise CommandFailedError(handle.command, exit_code, stdout, stderr)

            if self._status_ok(min(self.ctl.config.default_ctl_timeout, remaining)):
                self.state = ReadinessState.READY
                logger.info(f"Broker process {handle.pid} is ready")
                return

            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            self._sleep(min(self.poll_interval, remaining))

        self.state = ReadinessState.TIMED_OUT
        logger.error(f"Broker not ready after {self.timeout}s, terminating process {handle.pid}")
        terminate_process(handle, self.grace_period)
        stdout, stderr = handle.output()
        raise StartupTimeoutError(handle.command, self.timeout, stdout, stderr)

    def _status_ok(self, timeout: float) -> bool:
        try:
            result = self.ctl.run("status", timeout=timeout, check=False)
        except CommandError as e:
            logger.debug(f"Status poll failed: {e}")
            return False
        return result.ok

"""
Lifecycle orchestrator for an embedded RabbitMQ node.

Provides EmbeddedRabbitMq, which owns the broker process from launch until it
is stopped: start() runs the startup stages and returns once the node is
ready, stop() shuts it down gracefully and kills it if needed.

One instance manages at most one broker process. Lifecycle calls on the same
instance are not synchronized; callers must serialize start()/stop().
"""

import logging
from enum import Enum
from typing import Optional, Tuple

from embedded_rabbitmq.config import EmbeddedRabbitMqConfig
from embedded_rabbitmq.core.exceptions import CommandError, IllegalStateError
from embedded_rabbitmq.core.models import CommandResult
from embedded_rabbitmq.adapters.commands import RabbitMqCommand, RabbitMqCtl, RabbitMqPlugins
from embedded_rabbitmq.adapters.protocol import ProcessExecutor, ProcessHandle
from embedded_rabbitmq.pipeline.readiness import terminate_process
from embedded_rabbitmq.pipeline.stages import (
    resolve_stage,
    download_stage,
    extract_stage,
    dependency_check_stage,
    launch_stage,
    readiness_stage,
)

logger = logging.getLogger(__name__)


class BrokerState(str, Enum):
    NEW = "new"
    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"


class EmbeddedRabbitMq:
    """
    Downloads, extracts, launches and stops a RabbitMQ node.

    Attributes:
        config: Immutable broker configuration.
        executor: ProcessExecutor shared by every command of this instance.
        state: Current BrokerState.

    Example:
        with EmbeddedRabbitMq(config) as rabbit:
            rabbit.plugins().enable("rabbitmq_management")
    """

    def __init__(
        self,
        config: EmbeddedRabbitMqConfig,
        executor: Optional[ProcessExecutor] = None,
    ):
        self.config = config
        self.executor = executor or config.create_executor()
        self.state = BrokerState.NEW
        self._process: Optional[ProcessHandle] = None
        self._last_output: Tuple[str, str] = ("", "")

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def start(self) -> None:
        """
        Start the node and block until it is ready.

        Raises:
            IllegalStateError: If this instance is already starting or running.
            DownloadError, ExtractionError, DependencyMissingError,
            CommandFailedError, StartupTimeoutError: From the failing stage.
                No broker process is left running when any of these is raised.
        """
        if self.state in (BrokerState.STARTING, BrokerState.RUNNING):
            raise IllegalStateError(
                f"RabbitMQ node already {self.state.value} (pid {self._pid()})"
            )

        self.state = BrokerState.STARTING
        handle: Optional[ProcessHandle] = None

        try:
            resolve_stage(self.config)
            archive = download_stage(self.config)
            extract_stage(self.config, archive)
            dependency_check_stage(self.config, self.executor)

            handle = launch_stage(self.config, self.executor)
            self._process = handle
            readiness_stage(self.config, self.executor, handle)

        except BaseException as e:
            self.state = BrokerState.FAILED
            logger.error(f"RabbitMQ startup failed: {e}")
            if handle is not None:
                terminate_process(handle, self.config.stop_grace_timeout)
                self._last_output = handle.output()
            self._process = None
            raise

        self.state = BrokerState.RUNNING
        logger.info(f"RabbitMQ node running on port {self.config.port}")

    def stop(self) -> None:
        """
        Stop the node: `rabbitmqctl stop`, then kill after the grace period.

        No-op when the node was never started or is already stopped.
        """
        handle = self._process
        if handle is None:
            logger.debug("RabbitMQ node not running, nothing to stop")
            return

        logger.info(f"Stopping RabbitMQ node (pid {handle.pid})")
        try:
            self.ctl().stop()
        except CommandError as e:
            logger.warning(f"Graceful stop failed, will terminate process: {e}")

        if handle.wait(self.config.stop_grace_timeout) is None:
            logger.warning(
                f"RabbitMQ process {handle.pid} still alive after "
                f"{self.config.stop_grace_timeout}s, killing it"
            )
            handle.kill()
            handle.wait(self.config.stop_grace_timeout)

        self._last_output = handle.output()
        self._process = None
        self.state = BrokerState.STOPPED
        logger.info("RabbitMQ node stopped")

    def __enter__(self) -> "EmbeddedRabbitMq":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # ========================================================================
    # Accessors
    # ========================================================================

    @property
    def port(self) -> int:
        return self.config.port

    @property
    def is_running(self) -> bool:
        return (
            self.state == BrokerState.RUNNING
            and self._process is not None
            and self._process.poll() is None
        )

    def process_output(self) -> Tuple[str, str]:
        """Broker (stdout, stderr): live while running, last captured after."""
        if self._process is not None:
            return self._process.output()
        return self._last_output

    def ctl(self) -> RabbitMqCtl:
        return RabbitMqCtl(self.config, self.executor)

    def plugins(self) -> RabbitMqPlugins:
        return RabbitMqPlugins(self.config, self.executor)

    def status(self, timeout: Optional[float] = None) -> CommandResult:
        """
        Run `rabbitmqctl status` against this node.

        Raises:
            IllegalStateError: If start() was never called.
            CommandFailedError: If the node does not answer (e.g., after stop()).
            CommandTimeoutError: If the command outlives the timeout.
        """
        if self.state == BrokerState.NEW:
            raise IllegalStateError("RabbitMQ node has not been started")
        return self.ctl().status(timeout=timeout)

    def run_command(
        self, name: str, *args: str, timeout: Optional[float] = None
    ) -> CommandResult:
        """Run any bundled script (e.g., "rabbitmq-diagnostics") with args."""
        return RabbitMqCommand(self.config, name, self.executor).run(*args, timeout=timeout)

    def _pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

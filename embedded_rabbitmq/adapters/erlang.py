"""
Erlang runtime pre-flight check.

The broker scripts need an Erlang runtime. Checking it up front, with its own
short timeout, fails fast instead of waiting out the full server init timeout
on a machine where the broker can never start.
"""

import logging
import re
from pathlib import Path
from typing import Optional

from embedded_rabbitmq.config import EmbeddedRabbitMqConfig
from embedded_rabbitmq.constants import ERLANG_EXECUTABLE
from embedded_rabbitmq.core.exceptions import CommandError, DependencyMissingError
from embedded_rabbitmq.core.models import OperatingSystem
from embedded_rabbitmq.adapters.protocol import ProcessExecutor

logger = logging.getLogger(__name__)

OTP_RELEASE_RE = re.compile(r'"?R?(\d+)')
ERLANG_HOME = "ERLANG_HOME"


class ErlangVersionChecker:
    """Verifies that a suitable Erlang runtime can be executed."""

    def __init__(self, config: EmbeddedRabbitMqConfig, executor: Optional[ProcessExecutor] = None):
        self.config = config
        self.executor = executor or config.create_executor()

    @property
    def executable(self) -> str:
        """`erl` from $ERLANG_HOME/bin when configured, else from PATH."""
        name = ERLANG_EXECUTABLE
        if self.config.os_family == OperatingSystem.WINDOWS:
            name += ".exe"
        erlang_home = self.config.env_vars.get(ERLANG_HOME)
        if erlang_home:
            return str(Path(erlang_home) / "bin" / name)
        return name

    def check(self) -> int:
        """
        Run the runtime and read its OTP release.

        Returns:
            OTP major release number.

        Raises:
            DependencyMissingError: If the runtime cannot run within the
                erlang check timeout, prints no release, or is older than the
                configured broker version requires.
        """
        command = [
            self.executable,
            "-noshell",
            "-eval",
            "erlang:display(erlang:system_info(otp_release)), halt().",
        ]
        timeout = self.config.erlang_check_timeout

        try:
            result = self.executor.run(
                command,
                env_overrides=self.config.env_vars,
                timeout=timeout,
            )
        except CommandError as e:
            raise DependencyMissingError(
                f"Erlang runtime not available ('{' '.join(command)}', timeout {timeout}s): {e}"
            ) from e

        match = OTP_RELEASE_RE.search(result.stdout.strip())
        if not match:
            raise DependencyMissingError(
                f"Could not read Erlang/OTP release from output: {result.stdout.strip()!r}"
            )
        release = int(match.group(1))

        required = self.config.version.minimum_erlang_release
        if required is not None and release < required:
            raise DependencyMissingError(
                f"RabbitMQ {self.config.version} requires Erlang/OTP {required} or newer, "
                f"found {release}"
            )

        logger.info(f"Found Erlang/OTP {release}")
        return release

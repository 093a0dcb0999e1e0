"""
Broker command wrappers.

Every interaction with the broker goes through its bundled scripts
(rabbitmq-server, rabbitmqctl, rabbitmq-plugins), run with the configured
environment variables and the installed app folder as working directory.
"""

import logging
from typing import Dict, List, Optional

from embedded_rabbitmq.config import EmbeddedRabbitMqConfig
from embedded_rabbitmq.constants import RABBITMQ_CTL, RABBITMQ_PLUGINS, RABBITMQ_SERVER
from embedded_rabbitmq.core.exceptions import CommandError
from embedded_rabbitmq.core.models import CommandResult, Plugin, PluginState
from embedded_rabbitmq.adapters.protocol import ProcessExecutor, ProcessHandle
from embedded_rabbitmq.support.paths import get_script_path

logger = logging.getLogger(__name__)


class RabbitMqCommand:
    """
    Runs one bundled broker script.

    Attributes:
        config: Broker configuration.
        name: Script name (e.g., "rabbitmqctl").
        executor: ProcessExecutor (default: one from the config's factory).
    """

    def __init__(
        self,
        config: EmbeddedRabbitMqConfig,
        name: str,
        executor: Optional[ProcessExecutor] = None,
    ):
        self.config = config
        self.name = name
        self.executor = executor or config.create_executor()

    @property
    def executable(self) -> str:
        return str(get_script_path(self.config.app_folder, self.name, self.config.os_family))

    def command_line(self, *args: str) -> List[str]:
        return [self.executable, *[str(arg) for arg in args]]

    def run(
        self,
        *args: str,
        timeout: Optional[float] = None,
        check: bool = True,
    ) -> CommandResult:
        """
        Run the script with args and wait for it to finish.

        Args:
            args: Script arguments.
            timeout: Seconds (default: config.default_ctl_timeout).
            check: Raise CommandFailedError on a non-zero exit code.

        Raises:
            CommandTimeoutError: If the script outlives the timeout.
            CommandFailedError: On non-zero exit (with check) or exec failure.
        """
        if timeout is None:
            timeout = self.config.default_ctl_timeout
        return self.executor.run(
            self.command_line(*args),
            env_overrides=self.config.env_vars,
            cwd=str(self.config.app_folder),
            timeout=timeout,
            check=check,
        )

    def start(self, *args: str) -> ProcessHandle:
        """Launch the script without waiting for it."""
        return self.executor.start(
            self.command_line(*args),
            env_overrides=self.config.env_vars,
            cwd=str(self.config.app_folder),
            stream_output=self.config.stream_output,
        )


class RabbitMqServer(RabbitMqCommand):
    """The broker server launcher."""

    def __init__(self, config: EmbeddedRabbitMqConfig, executor: Optional[ProcessExecutor] = None):
        super().__init__(config, RABBITMQ_SERVER, executor)


class RabbitMqCtl(RabbitMqCommand):
    """Node administration via rabbitmqctl."""

    def __init__(self, config: EmbeddedRabbitMqConfig, executor: Optional[ProcessExecutor] = None):
        super().__init__(config, RABBITMQ_CTL, executor)

    def status(self, timeout: Optional[float] = None) -> CommandResult:
        return self.run("status", timeout=timeout)

    def is_running(self, timeout: Optional[float] = None) -> bool:
        """True when `rabbitmqctl status` succeeds."""
        try:
            result = self.run("status", timeout=timeout, check=False)
        except CommandError as e:
            logger.debug(f"Status check failed: {e}")
            return False
        return result.ok

    def stop(self, timeout: Optional[float] = None) -> CommandResult:
        """Ask the node to shut down."""
        return self.run("stop", timeout=timeout)


class RabbitMqPlugins(RabbitMqCommand):
    """Plugin management via rabbitmq-plugins."""

    def __init__(self, config: EmbeddedRabbitMqConfig, executor: Optional[ProcessExecutor] = None):
        super().__init__(config, RABBITMQ_PLUGINS, executor)

    def list_plugins(self, timeout: Optional[float] = None) -> Dict[str, Plugin]:
        """
        List plugins known to the installation.

        Returns:
            Plugins keyed by name, in reported order.
        """
        result = self.run("list", timeout=timeout)
        plugins = {}
        for line in result.stdout.splitlines():
            plugin = Plugin.from_line(line)
            if plugin:
                plugins[plugin.name] = plugin
        return plugins

    def grouped_list(self, timeout: Optional[float] = None) -> Dict[PluginState, List[Plugin]]:
        """List plugins grouped by each state they are in."""
        grouped: Dict[PluginState, List[Plugin]] = {state: [] for state in PluginState}
        for plugin in self.list_plugins(timeout=timeout).values():
            for state in plugin.states:
                grouped[state].append(plugin)
        return grouped

    def enable(self, plugin_name: str, timeout: Optional[float] = None) -> CommandResult:
        logger.info(f"Enabling plugin {plugin_name}")
        return self.run("enable", plugin_name, timeout=timeout)

    def disable(self, plugin_name: str, timeout: Optional[float] = None) -> CommandResult:
        logger.info(f"Disabling plugin {plugin_name}")
        return self.run("disable", plugin_name, timeout=timeout)

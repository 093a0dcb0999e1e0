"""
Broker configuration: an immutable config value and the builder that creates it.

The builder applies defaults and resolves the derived fields (download URL,
download target, app folder) exactly once, in build(). Conflicting or
unresolvable options fail there, before any network or process activity.

Example:
    config = (
        ConfigBuilder()
        .version(Version.predefined("3.8.9"))
        .random_port()
        .server_init_timeout(20)
        .build()
    )
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

import httpx
import yaml

from embedded_rabbitmq.constants import (
    DEFAULT_CTL_TIMEOUT,
    DEFAULT_DOWNLOAD_CONNECT_TIMEOUT,
    DEFAULT_DOWNLOAD_READ_TIMEOUT,
    DEFAULT_ERLANG_CHECK_TIMEOUT,
    DEFAULT_NODE_PORT,
    DEFAULT_READINESS_POLL_INTERVAL,
    DEFAULT_SERVER_INIT_TIMEOUT,
    DEFAULT_STOP_GRACE_TIMEOUT,
)
from embedded_rabbitmq.core.exceptions import ConfigurationError
from embedded_rabbitmq.core.models import OperatingSystem, RabbitMqEnvVar, Version
from embedded_rabbitmq.adapters.process import SubprocessExecutor
from embedded_rabbitmq.adapters.protocol import ProcessExecutor, ProcessExecutorFactory
from embedded_rabbitmq.adapters.repository import (
    ArtifactRepository,
    OfficialArtifactRepository,
    SingleArtifactRepository,
    resolve_artifact,
)
from embedded_rabbitmq.support.paths import (
    get_default_download_folder,
    get_default_extraction_folder,
)
from embedded_rabbitmq.support.ports import find_available_port

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class EmbeddedRabbitMqConfig:
    """Immutable configuration for every interaction with the broker.

    Timeouts are in seconds. Build instances with ConfigBuilder.
    """

    version: Version
    os_family: OperatingSystem
    download_source: str
    download_target: Path
    extraction_folder: Path
    app_folder: Path
    download_connect_timeout: float
    download_read_timeout: float
    default_ctl_timeout: float
    server_init_timeout: float
    erlang_check_timeout: float
    stop_grace_timeout: float
    readiness_poll_interval: float
    use_cached_download: bool
    delete_downloaded_file_on_errors: bool
    env_vars: Mapping[str, str]
    process_executor_factory: ProcessExecutorFactory
    download_proxy: Optional[str] = None
    check_erlang: bool = True
    stream_output: bool = True

    @property
    def port(self) -> int:
        """Node port from the env vars, or the broker default when unset."""
        value = self.env_vars.get(RabbitMqEnvVar.NODE_PORT.value)
        if value is None:
            return DEFAULT_NODE_PORT
        return int(value)

    @property
    def node_name(self) -> Optional[str]:
        return self.env_vars.get(RabbitMqEnvVar.NODENAME.value)

    def create_executor(self) -> ProcessExecutor:
        return self.process_executor_factory()

    @staticmethod
    def builder() -> "ConfigBuilder":
        return ConfigBuilder()


class ConfigBuilder:
    """Fluent builder for EmbeddedRabbitMqConfig."""

    def __init__(self):
        self._version: Optional[Version] = None
        self._repository: ArtifactRepository = OfficialArtifactRepository.GITHUB
        self._os_family: Optional[OperatingSystem] = None
        self._download_folder: Optional[Path] = None
        self._download_target: Optional[Path] = None
        self._extraction_folder: Optional[Path] = None
        self._download_connect_timeout = DEFAULT_DOWNLOAD_CONNECT_TIMEOUT
        self._download_read_timeout = DEFAULT_DOWNLOAD_READ_TIMEOUT
        self._default_ctl_timeout = DEFAULT_CTL_TIMEOUT
        self._server_init_timeout = DEFAULT_SERVER_INIT_TIMEOUT
        self._erlang_check_timeout = DEFAULT_ERLANG_CHECK_TIMEOUT
        self._stop_grace_timeout = DEFAULT_STOP_GRACE_TIMEOUT
        self._readiness_poll_interval = DEFAULT_READINESS_POLL_INTERVAL
        self._use_cached_download = True
        self._delete_downloaded_file_on_errors = True
        self._port: Optional[int] = None
        self._env_vars: Dict[str, str] = {}
        self._process_executor_factory: ProcessExecutorFactory = SubprocessExecutor
        self._download_proxy: Optional[str] = None
        self._check_erlang = True
        self._stream_output = True

    # ========================================================================
    # Artifact selection
    # ========================================================================

    def version(self, version: Union[Version, str]) -> "ConfigBuilder":
        """Use a specific release (default: newest predefined release)."""
        self._version = Version.parse(version) if isinstance(version, str) else version
        return self

    def download_from(self, repository: ArtifactRepository) -> "ConfigBuilder":
        """Choose where artifacts are downloaded from (default: GitHub releases)."""
        self._repository = repository
        return self

    def download_from_url(self, url: str, app_folder_name: str) -> "ConfigBuilder":
        """
        Download one specific artifact.

        Args:
            url: Artifact URL.
            app_folder_name: Folder the artifact unpacks into, e.g.
                "rabbitmq_server-3.8.9" for rabbitmq-server-generic-unix-3.8.9.tar.xz.
        """
        self._repository = SingleArtifactRepository(url)
        self._version = Version.unknown(app_folder_name)
        return self

    def operating_system(self, os_family: OperatingSystem) -> "ConfigBuilder":
        """Override the detected operating system family."""
        self._os_family = os_family
        return self

    # ========================================================================
    # Filesystem layout
    # ========================================================================

    def download_folder(self, folder: PathLike) -> "ConfigBuilder":
        """
        Folder the artifact is downloaded into, keeping the remote file name.

        Cannot be combined with download_target().
        """
        if self._download_target is not None:
            raise ConfigurationError("Download target has already been set")
        self._download_folder = Path(folder).expanduser()
        return self

    def download_target(self, target: PathLike) -> "ConfigBuilder":
        """
        Exact file the artifact is downloaded to.

        Cannot be combined with download_folder().
        """
        if self._download_folder is not None:
            raise ConfigurationError("Download folder has already been set")
        self._download_target = Path(target).expanduser()
        return self

    def extraction_folder(self, folder: PathLike) -> "ConfigBuilder":
        """Folder the artifact is extracted into (default: system temp dir)."""
        self._extraction_folder = Path(folder).expanduser()
        return self

    def use_cached_download(self, enabled: bool) -> "ConfigBuilder":
        self._use_cached_download = bool(enabled)
        return self

    def delete_downloaded_file_on_errors(self, enabled: bool) -> "ConfigBuilder":
        self._delete_downloaded_file_on_errors = bool(enabled)
        return self

    # ========================================================================
    # Timeouts
    # ========================================================================

    def download_connect_timeout(self, seconds: float) -> "ConfigBuilder":
        self._download_connect_timeout = _validate_timeout("download_connect_timeout", seconds)
        return self

    def download_read_timeout(self, seconds: float) -> "ConfigBuilder":
        self._download_read_timeout = _validate_timeout("download_read_timeout", seconds)
        return self

    def default_ctl_timeout(self, seconds: float) -> "ConfigBuilder":
        self._default_ctl_timeout = _validate_timeout("default_ctl_timeout", seconds)
        return self

    def server_init_timeout(self, seconds: float) -> "ConfigBuilder":
        self._server_init_timeout = _validate_timeout("server_init_timeout", seconds)
        return self

    def erlang_check_timeout(self, seconds: float) -> "ConfigBuilder":
        self._erlang_check_timeout = _validate_timeout("erlang_check_timeout", seconds)
        return self

    def stop_grace_timeout(self, seconds: float) -> "ConfigBuilder":
        self._stop_grace_timeout = _validate_timeout("stop_grace_timeout", seconds)
        return self

    def readiness_poll_interval(self, seconds: float) -> "ConfigBuilder":
        value = _validate_timeout("readiness_poll_interval", seconds)
        if value == 0:
            raise ConfigurationError("readiness_poll_interval must be greater than 0")
        self._readiness_poll_interval = value
        return self

    # ========================================================================
    # Process environment
    # ========================================================================

    def env_var(self, key: Union[str, RabbitMqEnvVar], value: Any) -> "ConfigBuilder":
        """Set an environment variable for every broker command.

        Explicit variables win over values derived from port()/random_port().
        """
        name = key.value if isinstance(key, RabbitMqEnvVar) else str(key)
        if not name:
            raise ConfigurationError("Environment variable name cannot be empty")
        self._env_vars[name] = str(value)
        return self

    def env_vars(self, variables: Mapping[Any, Any]) -> "ConfigBuilder":
        for key, value in variables.items():
            self.env_var(key, value)
        return self

    def port(self, port: int) -> "ConfigBuilder":
        """Node port; -1 picks a random free port."""
        if port == -1:
            return self.random_port()
        if not isinstance(port, int) or port < 1 or port > 65535:
            raise ConfigurationError(f"Invalid port: {port}")
        self._port = port
        return self

    def random_port(self) -> "ConfigBuilder":
        self._port = find_available_port()
        logger.debug(f"Selected random node port {self._port}")
        return self

    def node_name(self, name: str) -> "ConfigBuilder":
        return self.env_var(RabbitMqEnvVar.NODENAME, name)

    def process_executor_factory(self, factory: ProcessExecutorFactory) -> "ConfigBuilder":
        self._process_executor_factory = factory
        return self

    def check_erlang(self, enabled: bool) -> "ConfigBuilder":
        """Verify the Erlang runtime before launching (default: True)."""
        self._check_erlang = bool(enabled)
        return self

    def stream_output(self, enabled: bool) -> "ConfigBuilder":
        """Forward broker output to the embedded_rabbitmq.broker logger."""
        self._stream_output = bool(enabled)
        return self

    def download_proxy(self, hostname: str, port: int) -> "ConfigBuilder":
        return self.download_proxy_url(f"http://{hostname}:{port}")

    def download_proxy_url(self, url: Optional[str]) -> "ConfigBuilder":
        """Proxy for artifact downloads, e.g. "http://proxy:3128" (None disables it).

        Raises:
            ConfigurationError: If the URL has no supported proxy scheme.
        """
        if url:
            try:
                httpx.Proxy(url)
            except (ValueError, httpx.InvalidURL) as e:
                raise ConfigurationError(f"Invalid download proxy '{url}': {e}") from e
        self._download_proxy = url or None
        return self

    # ========================================================================
    # Build
    # ========================================================================

    def build(self) -> EmbeddedRabbitMqConfig:
        """
        Resolve defaults and derived fields into an immutable config.

        Raises:
            ConfigurationError: If the artifact cannot be resolved.
        """
        version = self._version or Version.latest()
        os_family = self._os_family or OperatingSystem.detect()
        artifact = resolve_artifact(self._repository, version, os_family)

        download_target = self._download_target
        if download_target is None:
            folder = self._download_folder or get_default_download_folder()
            download_target = folder / artifact.file_name

        extraction_folder = self._extraction_folder or get_default_extraction_folder()

        env_vars: Dict[str, str] = {}
        if self._port is not None:
            env_vars[RabbitMqEnvVar.NODE_PORT.value] = str(self._port)
        env_vars.update(self._env_vars)

        return EmbeddedRabbitMqConfig(
            version=version,
            os_family=os_family,
            download_source=artifact.url,
            download_target=download_target,
            extraction_folder=extraction_folder,
            app_folder=extraction_folder / artifact.extraction_folder,
            download_connect_timeout=self._download_connect_timeout,
            download_read_timeout=self._download_read_timeout,
            default_ctl_timeout=self._default_ctl_timeout,
            server_init_timeout=self._server_init_timeout,
            erlang_check_timeout=self._erlang_check_timeout,
            stop_grace_timeout=self._stop_grace_timeout,
            readiness_poll_interval=self._readiness_poll_interval,
            use_cached_download=self._use_cached_download,
            delete_downloaded_file_on_errors=self._delete_downloaded_file_on_errors,
            env_vars=MappingProxyType(env_vars),
            process_executor_factory=self._process_executor_factory,
            download_proxy=self._download_proxy,
            check_erlang=self._check_erlang,
            stream_output=self._stream_output,
        )

    # ========================================================================
    # Mapping / YAML input
    # ========================================================================

    TIMEOUT_KEYS = {
        "download_connect": "download_connect_timeout",
        "download_read": "download_read_timeout",
        "ctl": "default_ctl_timeout",
        "server_init": "server_init_timeout",
        "erlang_check": "erlang_check_timeout",
        "stop_grace": "stop_grace_timeout",
        "readiness_poll_interval": "readiness_poll_interval",
    }
    FLAG_KEYS = {
        "use_cached_download",
        "delete_downloaded_file_on_errors",
        "check_erlang",
        "stream_output",
    }
    PATH_KEYS = {"download_folder", "download_target", "extraction_folder"}
    KNOWN_KEYS = (
        {"version", "repository", "download_url", "app_folder_name", "port"}
        | {"env_vars", "download_proxy", "node_name", "timeouts"}
        | FLAG_KEYS
        | PATH_KEYS
    )

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, Any], builder: Optional["ConfigBuilder"] = None
    ) -> "ConfigBuilder":
        """
        Apply settings from a plain mapping (e.g., parsed YAML).

        Example:
            version: "3.8.9"
            port: random
            extraction_folder: /tmp/rabbit
            timeouts:
              server_init: 20
            env_vars:
              RABBITMQ_NODENAME: rabbit@localhost

        Raises:
            ConfigurationError: On unknown keys or invalid values. Versions must
                be strings: YAML reads an unquoted 3.10 as the float 3.1.
        """
        builder = builder or cls()
        unknown = set(data) - cls.KNOWN_KEYS
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        if "download_url" in data:
            if "app_folder_name" not in data:
                raise ConfigurationError("download_url requires app_folder_name")
            builder.download_from_url(data["download_url"], data["app_folder_name"])
        elif "version" in data:
            version = data["version"]
            if not isinstance(version, str):
                raise ConfigurationError(
                    f"version must be a quoted string, e.g. \"3.10.25\", got {version!r}"
                )
            builder.version(version)

        if "repository" in data:
            try:
                builder.download_from(OfficialArtifactRepository(str(data["repository"]).lower()))
            except ValueError as e:
                raise ConfigurationError(f"Unknown repository: {data['repository']}") from e

        for key in sorted(cls.PATH_KEYS & set(data)):
            getattr(builder, key)(data[key])

        for key in sorted(cls.FLAG_KEYS & set(data)):
            getattr(builder, key)(data[key])

        timeouts = data.get("timeouts") or {}
        if not isinstance(timeouts, Mapping):
            raise ConfigurationError("timeouts must be a mapping")
        for key, value in timeouts.items():
            if key not in cls.TIMEOUT_KEYS:
                raise ConfigurationError(f"Unknown timeout: {key}")
            getattr(builder, cls.TIMEOUT_KEYS[key])(value)

        if "port" in data:
            port = data["port"]
            if str(port).lower() == "random":
                builder.random_port()
            else:
                try:
                    builder.port(int(port))
                except (TypeError, ValueError) as e:
                    raise ConfigurationError(f"Invalid port: {port}") from e

        if "node_name" in data:
            builder.node_name(str(data["node_name"]))

        env_vars = data.get("env_vars") or {}
        if not isinstance(env_vars, Mapping):
            raise ConfigurationError("env_vars must be a mapping")
        builder.env_vars(env_vars)

        if data.get("download_proxy"):
            builder.download_proxy_url(str(data["download_proxy"]))

        return builder


def load_config_file(path: PathLike) -> ConfigBuilder:
    """
    Load a YAML configuration file into a builder.

    Args:
        path: YAML file with a top-level mapping (see ConfigBuilder.from_mapping).

    Returns:
        ConfigBuilder that callers can refine before build().

    Raises:
        ConfigurationError: If the file is unreadable, not YAML, or invalid.
    """
    path = Path(path).expanduser()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file {path}: {e}") from e

    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    logger.debug(f"Loaded config file {path}")
    return ConfigBuilder.from_mapping(data)


def _validate_timeout(name: str, seconds: Any) -> float:
    if isinstance(seconds, bool):
        raise ConfigurationError(f"Invalid {name}: {seconds}")
    try:
        value = float(seconds)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid {name}: {seconds}") from e
    if value < 0:
        raise ConfigurationError(f"{name} cannot be negative: {seconds}")
    return value

"""Core domain model: broker versions, platforms, env vars, command results and plugins."""

import platform
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple

from embedded_rabbitmq.constants import (
    EXTRACTION_FOLDER_PREFIX,
    MINIMUM_ERLANG_RELEASES,
    MODERN_RELEASE_SERIES,
    PREDEFINED_VERSIONS,
)
from embedded_rabbitmq.core.exceptions import ConfigurationError

VERSION_NUMBER_RE = re.compile(r"^\d+(\.\d+)+$")
PLUGIN_LINE_RE = re.compile(r"^\s*\[([Ee ])([* ])\]\s+(\S+)(?:\s+(\S+))?")


# ============================================================================
# Platform
# ============================================================================


class OperatingSystem(str, Enum):
    """Operating system families with distinct broker artifacts."""

    WINDOWS = "windows"
    MAC_OS = "mac_os"
    UNIX = "unix"

    @classmethod
    def detect(cls) -> "OperatingSystem":
        """Detect the family of the running interpreter's platform."""
        system = platform.system().lower()
        if system.startswith("win"):
            return cls.WINDOWS
        if system == "darwin":
            return cls.MAC_OS
        return cls.UNIX


# ============================================================================
# Versions
# ============================================================================


class VersionKind(str, Enum):
    PREDEFINED = "predefined"
    BASE = "base"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Version:
    """
    A broker release.

    Exactly one of three shapes:
    - PREDEFINED: a known release, `number` is one of PREDEFINED_VERSIONS.
    - BASE: any release following the official naming conventions.
    - UNKNOWN: an artifact with an explicit `app_folder_name` and no number.

    Use the `predefined`, `base`, `unknown`, `latest` and `parse` constructors.
    """

    kind: VersionKind
    number: str = ""
    app_folder_name: str = ""

    def __post_init__(self):
        if self.kind == VersionKind.UNKNOWN:
            if not self.app_folder_name or not self.app_folder_name.strip():
                raise ConfigurationError(
                    "An app folder name is required for versions outside the naming convention"
                )
            return

        if not VERSION_NUMBER_RE.match(self.number or ""):
            raise ConfigurationError(f"Invalid version number: '{self.number}'")
        if self.kind == VersionKind.PREDEFINED and self.number not in PREDEFINED_VERSIONS:
            raise ConfigurationError(
                f"Version {self.number} is not predefined; use Version.base() instead"
            )

    @classmethod
    def predefined(cls, number: str) -> "Version":
        return cls(VersionKind.PREDEFINED, number=number)

    @classmethod
    def base(cls, number: str) -> "Version":
        return cls(VersionKind.BASE, number=number)

    @classmethod
    def unknown(cls, app_folder_name: str) -> "Version":
        return cls(VersionKind.UNKNOWN, app_folder_name=app_folder_name)

    @classmethod
    def latest(cls) -> "Version":
        return cls.predefined(PREDEFINED_VERSIONS[-1])

    @classmethod
    def parse(cls, value: str) -> "Version":
        """
        Build a version from user input.

        "latest" maps to the newest predefined release, known releases map to
        PREDEFINED and anything else that looks like a version number to BASE.

        Raises:
            ConfigurationError: If value is not a version number.
        """
        value = (value or "").strip()
        if value.lower() == "latest":
            return cls.latest()
        if value.startswith("v"):
            value = value[1:]
        if value in PREDEFINED_VERSIONS:
            return cls.predefined(value)
        return cls.base(value)

    @property
    def extraction_folder(self) -> str:
        """Name of the folder the artifact unpacks into."""
        if self.kind == VersionKind.UNKNOWN:
            return self.app_folder_name
        return f"{EXTRACTION_FOLDER_PREFIX}{self.number}"

    @property
    def number_tuple(self) -> Tuple[int, ...]:
        if not self.number:
            return ()
        return tuple(int(part) for part in self.number.split("."))

    @property
    def is_modern_release(self) -> bool:
        """True from the 3.7 series onwards (GitHub-only, new tag scheme)."""
        return self.number_tuple[:2] >= MODERN_RELEASE_SERIES

    @property
    def minimum_erlang_release(self) -> Optional[int]:
        """Oldest Erlang/OTP major release this broker series runs on, if known."""
        return MINIMUM_ERLANG_RELEASES.get(self.number_tuple[:2])

    def __str__(self) -> str:
        return self.number or self.app_folder_name


class ArtifactType(Enum):
    """Distribution flavours published for each release."""

    GENERIC_UNIX = ("generic-unix", "tar.xz")
    MAC_STANDALONE = ("mac-standalone", "tar.xz")
    WINDOWS = ("windows", "zip")

    @property
    def classifier(self) -> str:
        return self.value[0]

    @property
    def extension(self) -> str:
        return self.value[1]

    @classmethod
    def for_os(cls, os_family: OperatingSystem, version: Version) -> "ArtifactType":
        if os_family == OperatingSystem.WINDOWS:
            return cls.WINDOWS
        if os_family == OperatingSystem.MAC_OS and not version.is_modern_release:
            return cls.MAC_STANDALONE
        return cls.GENERIC_UNIX


# ============================================================================
# Environment variables
# ============================================================================


class RabbitMqEnvVar(str, Enum):
    """Environment variables read by the broker scripts."""

    NODE_IP_ADDRESS = "RABBITMQ_NODE_IP_ADDRESS"
    NODE_PORT = "RABBITMQ_NODE_PORT"
    DIST_PORT = "RABBITMQ_DIST_PORT"
    NODENAME = "RABBITMQ_NODENAME"
    CONF_ENV_FILE = "RABBITMQ_CONF_ENV_FILE"
    USE_LONGNAME = "RABBITMQ_USE_LONGNAME"
    SERVICENAME = "RABBITMQ_SERVICENAME"
    CONSOLE_LOG = "RABBITMQ_CONSOLE_LOG"
    CTL_ERL_ARGS = "RABBITMQ_CTL_ERL_ARGS"
    SERVER_ERL_ARGS = "RABBITMQ_SERVER_ERL_ARGS"
    SERVER_ADDITIONAL_ERL_ARGS = "RABBITMQ_SERVER_ADDITIONAL_ERL_ARGS"
    SERVER_START_ARGS = "RABBITMQ_SERVER_START_ARGS"
    CONFIG_FILE = "RABBITMQ_CONFIG_FILE"
    LOG_BASE = "RABBITMQ_LOG_BASE"
    MNESIA_BASE = "RABBITMQ_MNESIA_BASE"
    MNESIA_DIR = "RABBITMQ_MNESIA_DIR"
    PLUGINS_DIR = "RABBITMQ_PLUGINS_DIR"
    PLUGINS_EXPAND_DIR = "RABBITMQ_PLUGINS_EXPAND_DIR"
    ENABLED_PLUGINS_FILE = "RABBITMQ_ENABLED_PLUGINS_FILE"
    PID_FILE = "RABBITMQ_PID_FILE"
    LOGS = "RABBITMQ_LOGS"
    SASL_LOGS = "RABBITMQ_SASL_LOGS"


# ============================================================================
# Command results
# ============================================================================


@dataclass
class CommandResult:
    """Outcome of a one-shot command."""

    command: List[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


# ============================================================================
# Plugins
# ============================================================================


class PluginState(str, Enum):
    ENABLED_EXPLICITLY = "enabled_explicitly"
    ENABLED_IMPLICITLY = "enabled_implicitly"
    NOT_ENABLED = "not_enabled"
    RUNNING = "running"
    NOT_RUNNING = "not_running"


@dataclass(frozen=True)
class Plugin:
    """A plugin entry as reported by `rabbitmq-plugins list`."""

    name: str
    version: str = ""
    states: FrozenSet[PluginState] = field(default_factory=frozenset)

    @property
    def enabled(self) -> bool:
        return PluginState.NOT_ENABLED not in self.states

    @property
    def running(self) -> bool:
        return PluginState.RUNNING in self.states

    @classmethod
    def from_line(cls, line: str) -> Optional["Plugin"]:
        """
        Parse one line of `rabbitmq-plugins list` output.

        Example: "[E*] rabbitmq_management 3.8.9"

        Returns:
            Plugin, or None when the line is a header or legend.
        """
        match = PLUGIN_LINE_RE.match(line)
        if not match:
            return None

        enabled_flag, running_flag, name, version = match.groups()
        states = set()
        if enabled_flag == "E":
            states.add(PluginState.ENABLED_EXPLICITLY)
        elif enabled_flag == "e":
            states.add(PluginState.ENABLED_IMPLICITLY)
        else:
            states.add(PluginState.NOT_ENABLED)
        states.add(PluginState.RUNNING if running_flag == "*" else PluginState.NOT_RUNNING)

        return cls(name=name, version=version or "", states=frozenset(states))

"""Core package: domain model, exceptions and naming helpers."""

from embedded_rabbitmq.core.exceptions import (
    EmbeddedRabbitMqError,
    ConfigurationError,
    IllegalStateError,
    DependencyMissingError,
    DownloadError,
    ExtractionError,
    CommandError,
    CommandFailedError,
    CommandTimeoutError,
    StartupTimeoutError,
)
from embedded_rabbitmq.core.models import (
    OperatingSystem,
    ArtifactType,
    VersionKind,
    Version,
    RabbitMqEnvVar,
    CommandResult,
    Plugin,
    PluginState,
)
from embedded_rabbitmq.core.naming import (
    artifact_file_name,
    github_release_tag,
    file_name_from_url,
)

__all__ = [
    "EmbeddedRabbitMqError",
    "ConfigurationError",
    "IllegalStateError",
    "DependencyMissingError",
    "DownloadError",
    "ExtractionError",
    "CommandError",
    "CommandFailedError",
    "CommandTimeoutError",
    "StartupTimeoutError",
    "OperatingSystem",
    "ArtifactType",
    "VersionKind",
    "Version",
    "RabbitMqEnvVar",
    "CommandResult",
    "Plugin",
    "PluginState",
    "artifact_file_name",
    "github_release_tag",
    "file_name_from_url",
]

"""Embedded RabbitMQ: run a real broker node as a child process for integration tests."""

from embedded_rabbitmq.config import ConfigBuilder, EmbeddedRabbitMqConfig, load_config_file
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
from embedded_rabbitmq.core.models import OperatingSystem, RabbitMqEnvVar, Version
from embedded_rabbitmq.adapters.repository import (
    OfficialArtifactRepository,
    SingleArtifactRepository,
)
from embedded_rabbitmq.pipeline import EmbeddedRabbitMq, BrokerState

__all__ = [
    "ConfigBuilder",
    "EmbeddedRabbitMqConfig",
    "load_config_file",
    "EmbeddedRabbitMq",
    "BrokerState",
    "Version",
    "OperatingSystem",
    "RabbitMqEnvVar",
    "OfficialArtifactRepository",
    "SingleArtifactRepository",
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
]

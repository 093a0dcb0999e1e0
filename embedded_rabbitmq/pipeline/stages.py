"""
Broker startup pipeline stages.

Runs the stages of EmbeddedRabbitMq.start() in order:
1. resolve: report the artifact resolved at config build time
2. download: fetch the artifact, or reuse the cached copy
3. extract: unpack into the extraction folder, unless already there
4. dependency check: verify the Erlang runtime, bounded by its own timeout
5. launch: start rabbitmq-server with the configured environment
6. readiness: poll until the node reports itself running
"""

import logging
from pathlib import Path
from typing import Optional

from embedded_rabbitmq.config import EmbeddedRabbitMqConfig
from embedded_rabbitmq.core.exceptions import ExtractionError
from embedded_rabbitmq.adapters.commands import RabbitMqCtl, RabbitMqServer
from embedded_rabbitmq.adapters.download import delete_cached_artifact, fetch_artifact
from embedded_rabbitmq.adapters.erlang import ErlangVersionChecker
from embedded_rabbitmq.adapters.extract import extract_archive
from embedded_rabbitmq.adapters.protocol import ProcessExecutor, ProcessHandle
from embedded_rabbitmq.pipeline.readiness import ReadinessDetector
from embedded_rabbitmq.support.ports import is_port_available

logger = logging.getLogger(__name__)


def resolve_stage(config: EmbeddedRabbitMqConfig) -> str:
    """Log and return the download URL resolved for this config."""
    logger.info(
        f"Using RabbitMQ {config.version} ({config.os_family.value}) from {config.download_source}"
    )
    return config.download_source


def download_stage(config: EmbeddedRabbitMqConfig) -> Path:
    """
    Fetch the artifact according to the config's cache policy.

    Raises:
        DownloadError: If the artifact cannot be fetched.
    """
    return fetch_artifact(
        config.download_source,
        config.download_target,
        connect_timeout=config.download_connect_timeout,
        read_timeout=config.download_read_timeout,
        proxy=config.download_proxy,
        use_cache=config.use_cached_download,
        delete_on_error=config.delete_downloaded_file_on_errors,
    )


def extract_stage(config: EmbeddedRabbitMqConfig, archive: Path) -> Path:
    """
    Extract the artifact into the configured folder.

    A corrupt archive is deleted when delete_downloaded_file_on_errors is set,
    so the next run downloads a fresh copy.

    Raises:
        ExtractionError: If the archive cannot be extracted.
    """
    try:
        return extract_archive(
            archive, config.extraction_folder, config.version.extraction_folder
        )
    except ExtractionError:
        if config.delete_downloaded_file_on_errors:
            delete_cached_artifact(archive)
        raise


def dependency_check_stage(
    config: EmbeddedRabbitMqConfig, executor: ProcessExecutor
) -> Optional[int]:
    """
    Verify the Erlang runtime when enabled.

    Returns:
        OTP release number, or None when the check is disabled.

    Raises:
        DependencyMissingError: If the runtime is missing or too old.
    """
    if not config.check_erlang:
        logger.debug("Erlang check disabled")
        return None
    return ErlangVersionChecker(config, executor).check()


def launch_stage(config: EmbeddedRabbitMqConfig, executor: ProcessExecutor) -> ProcessHandle:
    """
    Start rabbitmq-server and return immediately.

    Raises:
        CommandFailedError: If the server script cannot be executed.
    """
    if not is_port_available(config.port):
        logger.warning(
            f"Port {config.port} is already in use, the node will likely fail to start"
        )
    logger.info(f"Starting RabbitMQ node on port {config.port}")
    return RabbitMqServer(config, executor).start()


def readiness_stage(
    config: EmbeddedRabbitMqConfig,
    executor: ProcessExecutor,
    handle: ProcessHandle,
    detector: Optional[ReadinessDetector] = None,
) -> None:
    """
    Block until the node is running.

    Raises:
        CommandFailedError: If the server exits during startup.
        StartupTimeoutError: If the server init timeout passes first.
    """
    detector = detector or ReadinessDetector(
        RabbitMqCtl(config, executor),
        timeout=config.server_init_timeout,
        poll_interval=config.readiness_poll_interval,
        grace_period=config.stop_grace_timeout,
    )
    detector.await_ready(handle)

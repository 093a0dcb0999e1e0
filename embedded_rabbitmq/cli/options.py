"""
Shared CLI options: turn parsed arguments into a broker config.
"""

import argparse

from embedded_rabbitmq.config import ConfigBuilder, EmbeddedRabbitMqConfig, load_config_file


def add_config_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the options every subcommand accepts."""
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument(
        "--rabbitmq-version",
        dest="rabbitmq_version",
        help="RabbitMQ version, e.g. 3.8.9 (default: latest predefined)",
    )
    parser.add_argument(
        "--port", help="Node port, or 'random' for any free port (default: 5672)"
    )
    parser.add_argument("--download-folder", help="Folder for cached downloads")
    parser.add_argument("--extraction-folder", help="Folder to extract the broker into")
    parser.add_argument(
        "--server-init-timeout",
        type=float,
        help="Seconds to wait for the node to start",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Download even if a cached artifact exists",
    )
    parser.add_argument(
        "--skip-erlang-check",
        action="store_true",
        help="Do not verify the Erlang runtime before launching",
    )


def build_config(args: argparse.Namespace) -> EmbeddedRabbitMqConfig:
    """Build a config from --config plus command-line overrides.

    Raises:
        ConfigurationError: If the options are invalid or conflicting.
    """
    config_file = getattr(args, "config", None)
    builder = load_config_file(config_file) if config_file else ConfigBuilder()

    overrides = {}
    if getattr(args, "rabbitmq_version", None):
        overrides["version"] = args.rabbitmq_version
    if getattr(args, "port", None):
        overrides["port"] = args.port
    if getattr(args, "download_folder", None):
        overrides["download_folder"] = args.download_folder
    if getattr(args, "extraction_folder", None):
        overrides["extraction_folder"] = args.extraction_folder
    if getattr(args, "server_init_timeout", None) is not None:
        overrides["timeouts"] = {"server_init": args.server_init_timeout}
    if getattr(args, "no_cache", False):
        overrides["use_cached_download"] = False
    if getattr(args, "skip_erlang_check", False):
        overrides["check_erlang"] = False

    ConfigBuilder.from_mapping(overrides, builder=builder)
    return builder.build()

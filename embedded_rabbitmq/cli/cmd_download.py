"""
embedded-rabbitmq download command implementation.

Downloads and extracts the broker without starting it.
"""

import argparse
import sys

from embedded_rabbitmq.cli.options import build_config
from embedded_rabbitmq.core.exceptions import EmbeddedRabbitMqError
from embedded_rabbitmq.pipeline.stages import download_stage, extract_stage, resolve_stage


def cmd_download(args: argparse.Namespace) -> int:
    """Download and extract the configured broker version.

    Args:
        args: Parsed command-line arguments (see options.add_config_arguments)

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        config = build_config(args)
        resolve_stage(config)
        archive = download_stage(config)
        app_folder = extract_stage(config, archive)
    except EmbeddedRabbitMqError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Artifact: {archive}")
    print(f"Installed: {app_folder}")
    return 0

"""
embedded-rabbitmq run command implementation.

Starts a broker node and keeps it running until interrupted.
"""

import argparse
import sys
import time

from embedded_rabbitmq.cli.options import build_config
from embedded_rabbitmq.core.exceptions import EmbeddedRabbitMqError
from embedded_rabbitmq.pipeline import EmbeddedRabbitMq

LIVENESS_CHECK_INTERVAL = 1.0


def cmd_run(args: argparse.Namespace) -> int:
    """Start the broker and block until Ctrl-C or the node exits.

    Args:
        args: Parsed command-line arguments (see options.add_config_arguments)

    Returns:
        Exit code (0 on clean shutdown, 1 on error or unexpected exit)
    """
    try:
        config = build_config(args)
        rabbit = EmbeddedRabbitMq(config)
        rabbit.start()
    except EmbeddedRabbitMqError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"RabbitMQ {config.version} running on port {config.port}")
    print("Press Ctrl-C to stop.")

    exit_code = 0
    try:
        while rabbit.is_running:
            time.sleep(LIVENESS_CHECK_INTERVAL)
        print("Error: RabbitMQ node exited unexpectedly", file=sys.stderr)
        exit_code = 1
    except KeyboardInterrupt:
        print("\nStopping RabbitMQ...")
    finally:
        rabbit.stop()

    return exit_code

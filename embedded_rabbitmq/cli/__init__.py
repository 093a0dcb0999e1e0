"""
embedded-rabbitmq CLI.

Commands are organized into separate modules:
- download: fetch and extract the broker
- run: start a node and keep it running until Ctrl-C
- plugins: list/enable/disable plugins
"""

import argparse
import logging
import sys
from typing import List, Optional

from embedded_rabbitmq.cli.cmd_download import cmd_download
from embedded_rabbitmq.cli.cmd_plugins import cmd_plugins
from embedded_rabbitmq.cli.cmd_run import cmd_run
from embedded_rabbitmq.cli.options import add_config_arguments


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="embedded-rabbitmq",
        description="Download, run and control an embedded RabbitMQ node",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug output and broker output"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # 'download' command
    download_parser = subparsers.add_parser(
        "download", help="Download and extract RabbitMQ without starting it"
    )
    add_config_arguments(download_parser)

    # 'run' command
    run_parser = subparsers.add_parser(
        "run", help="Start a RabbitMQ node and keep it running until Ctrl-C"
    )
    add_config_arguments(run_parser)

    # 'plugins' command
    plugins_parser = subparsers.add_parser(
        "plugins", help="List, enable or disable plugins"
    )
    plugins_parser.add_argument("action", choices=["list", "enable", "disable"])
    plugins_parser.add_argument("name", nargs="?", help="Plugin name (enable/disable)")
    add_config_arguments(plugins_parser)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the embedded-rabbitmq CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "download":
        return cmd_download(args)
    elif args.command == "run":
        return cmd_run(args)
    elif args.command == "plugins":
        if args.action != "list" and not args.name:
            print(f"Error: plugins {args.action} requires a plugin name", file=sys.stderr)
            return 1
        return cmd_plugins(args)
    else:
        parser.print_help()
        return 1


__all__ = [
    "main",
    "build_parser",
]

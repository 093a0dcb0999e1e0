"""
embedded-rabbitmq plugins command implementation.

Lists, enables or disables plugins of an extracted installation.
"""

import argparse
import sys

from embedded_rabbitmq.cli.options import build_config
from embedded_rabbitmq.core.exceptions import EmbeddedRabbitMqError
from embedded_rabbitmq.adapters.commands import RabbitMqPlugins


def cmd_plugins(args: argparse.Namespace) -> int:
    """Run a plugin action.

    Args:
        args: Parsed command-line arguments with: action, name (for enable/disable)

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        config = build_config(args)
        plugins = RabbitMqPlugins(config)

        if args.action == "list":
            for plugin in plugins.list_plugins().values():
                marker = "E" if plugin.enabled else " "
                running = "*" if plugin.running else " "
                print(f"[{marker}{running}] {plugin.name} {plugin.version}".rstrip())
        elif args.action == "enable":
            plugins.enable(args.name)
            print(f"Enabled {args.name}")
        else:
            plugins.disable(args.name)
            print(f"Disabled {args.name}")
    except EmbeddedRabbitMqError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0

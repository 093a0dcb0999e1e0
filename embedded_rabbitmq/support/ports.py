"""
Port selection helpers for broker nodes.
"""

import logging
import socket

logger = logging.getLogger(__name__)


def find_available_port(host: str = "127.0.0.1") -> int:
    """
    Ask the OS for a free TCP port.

    The socket is closed before returning, so another process could grab the
    port in between; callers launching right away rarely hit that.

    Returns:
        An available port number.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, 0))
        port = sock.getsockname()[1]
    logger.debug(f"Port {port} is available")
    return port


def is_port_available(port: int, host: str = "127.0.0.1") -> bool:
    """
    Try to bind port on host, the way a starting node would.

    A False result usually means another broker (or anything else) already
    listens there and the new node will fail to start.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
        return True
    except OSError:
        return False

"""
Internet reachability probe.
"""

import logging
import socket
from typing import Callable, Optional, Sequence

logger = logging.getLogger(__name__)


def host_reachable(host: str, port: int = 53, timeout: float = 5.0,
                   connect: Optional[Callable] = None) -> bool:
    """True if a TCP connection to host:port opens within timeout."""
    connect = connect or socket.create_connection
    try:
        conn = connect((host, port), timeout=timeout)
    except OSError as e:
        logger.debug(f"{host}:{port} unreachable: {e}")
        return False
    conn.close()
    return True


def check_network(
    hosts: Sequence[str] = ("8.8.8.8", "1.1.1.1"),
    port: int = 53,
    timeout: float = 5.0,
    connect: Optional[Callable] = None,
) -> bool:
    """Try each host in turn; connected if any answers."""
    for host in hosts:
        if host_reachable(host, port, timeout, connect):
            logger.info("Network connection established")
            return True
    logger.error("No internet connection detected")
    return False

"""
Privilege and timing decorators shared by the toolbox commands.
"""

from __future__ import annotations

import functools
import logging
import os
import time
from typing import Callable

from .exceptions import PrivilegeError

logger = logging.getLogger(__name__)


def is_root() -> bool:
    """True when running with effective uid 0."""
    return os.geteuid() == 0


def require_root(func: Callable) -> Callable:
    """
    Decorator that requires root/sudo privileges.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if not is_root():
            raise PrivilegeError("This script must be run with sudo privileges")
        return func(*args, **kwargs)
    return wrapper


def forbid_root(func: Callable) -> Callable:
    """
    Decorator for commands that escalate per step and must not run as root.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if is_root():
            raise PrivilegeError("Don't run this script as root/sudo directly")
        return func(*args, **kwargs)
    return wrapper


def timed(func: Callable) -> Callable:
    """
    Decorator to log function execution time.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed = time.perf_counter() - start
            logger.debug(f"{func.__name__} completed in {elapsed:.3f}s")
    return wrapper

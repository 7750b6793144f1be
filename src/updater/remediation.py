"""
Update failure classification and remediation.

A failed update command is classified from its output into one of four
kinds. Each kind has exactly one remediation action; it is attempted
once and the failed command is never retried.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, List, Optional, Tuple

from common import commands
from common.commands import CommandResult

logger = logging.getLogger(__name__)

PACMAN_LOCK = "/var/lib/pacman/db.lck"


class ErrorKind(Enum):
    """Category of an update failure."""
    LOCK = "lock"
    NETWORK = "network"
    FILESYSTEM = "filesystem"
    GENERIC = "generic"


# Checked in order; the first kind with a matching phrase wins
ERROR_PATTERNS: Tuple[Tuple[ErrorKind, Tuple[str, ...]], ...] = (
    (ErrorKind.LOCK, (
        "unable to lock database",
        "db.lck",
    )),
    (ErrorKind.NETWORK, (
        "failed retrieving file",
        "could not resolve host",
        "failed to synchronize",
        "connection timed out",
        "network is unreachable",
    )),
    (ErrorKind.FILESYSTEM, (
        "exists in filesystem",
        "corrupted",
        "input/output error",
        "read-only file system",
    )),
)


def classify_error(output: str) -> ErrorKind:
    """Classify failure output by case-insensitive phrase match."""
    text = (output or "").lower()
    for kind, phrases in ERROR_PATTERNS:
        if any(phrase in text for phrase in phrases):
            return kind
    return ErrorKind.GENERIC


class Remediator:
    """
    Runs the single corrective action for an error kind.

    Every call is recorded in `history`, so callers (and tests) can see
    that each failure was remediated exactly once.
    """

    def __init__(
        self,
        runner: Optional[Callable[..., CommandResult]] = None,
        sleep: Callable[[float], None] = time.sleep,
        settle_seconds: float = 2.0,
    ):
        self._run = runner or commands.run
        self._sleep = sleep
        self.settle_seconds = settle_seconds
        self.history: List[ErrorKind] = []

    def remediate(self, kind: ErrorKind) -> bool:
        """
        Attempt the remediation for kind.

        Returns:
            True if the corrective commands succeeded. GENERIC has no
            automatic fix and always returns False.
        """
        self.history.append(kind)
        handler = {
            ErrorKind.LOCK: self._fix_lock,
            ErrorKind.NETWORK: self._fix_network,
            ErrorKind.FILESYSTEM: self._fix_filesystem,
        }.get(kind)

        if handler is None:
            logger.warning("Unknown error occurred, manual intervention required")
            return False
        return handler()

    def _fix_lock(self) -> bool:
        logger.warning("Attempting to fix pacman database...")
        self._run(["rm", "-f", PACMAN_LOCK], sudo=True)
        result = self._run(["pacman", "-Syy"], sudo=True)
        if not result.ok:
            logger.error("Could not resynchronize package databases")
        return result.ok

    def _fix_network(self) -> bool:
        logger.warning("Restarting NetworkManager...")
        result = self._run(["systemctl", "restart", "NetworkManager"], sudo=True)
        self._sleep(self.settle_seconds)
        if not result.ok:
            logger.error("Could not restart NetworkManager")
        return result.ok

    def _fix_filesystem(self) -> bool:
        logger.warning("Checking package database consistency...")
        result = self._run(["pacman", "-Dk"], sudo=True)
        if result.ok:
            logger.info("Package database is consistent")
        else:
            logger.error(f"Package database check reported problems: {result.output.strip()}")
        return result.ok

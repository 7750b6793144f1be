"""
Post-update cleanup: package cache, orphaned packages, journal.

Each step is best-effort. A failure is logged and reported, and the
remaining steps still run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from common import commands
from common.commands import CommandResult
from common.decorators import timed
from common.logging_config import LogContext
from common.packages import Pacman

logger = logging.getLogger(__name__)

PACKAGE_CACHE = "/var/cache/pacman/pkg"
JOURNAL_DIR = "/var/log/journal"


@dataclass
class CleanupResult:
    """Outcome of one cleanup step."""
    name: str
    ok: bool
    message: str = ""
    size_before: str = ""
    size_after: str = ""


def parse_du_size(output: str) -> str:
    """First column of `du -sh` output ("1.2G\t/var/cache/pacman/pkg")."""
    parts = output.split()
    return parts[0] if parts else "?"


class SystemCleaner:
    """Runs the cleanup steps after updating."""

    def __init__(
        self,
        runner: Optional[Callable[..., CommandResult]] = None,
        pacman: Optional[Pacman] = None,
        journal_retention: str = "7d",
    ):
        self._run = runner or commands.run
        self.pacman = pacman or Pacman(runner=self._run)
        self.journal_retention = journal_retention

    @timed
    def run_all(self) -> List[CleanupResult]:
        logger.info("Performing system cleanup...")
        return [
            self.clean_package_cache(),
            self.remove_orphans(),
            self.vacuum_journal(),
        ]

    def _size(self, path: str) -> str:
        return parse_du_size(self._run(["du", "-sh", path], timeout=60).stdout)

    def clean_package_cache(self) -> CleanupResult:
        with LogContext(component="cleanup"):
            before = self._size(PACKAGE_CACHE)
            result = self._run(["pacman", "-Sc", "--noconfirm"], sudo=True)
            if not result.ok:
                logger.warning(f"Package cache cleanup failed: {result.output.strip()}")
                return CleanupResult("package_cache", False, "pacman -Sc failed", before)

            after = self._size(PACKAGE_CACHE)
            logger.info(f"Package cache cleaned (Before: {before}, After: {after})")
            return CleanupResult("package_cache", True, "cache trimmed", before, after)

    def remove_orphans(self) -> CleanupResult:
        with LogContext(component="cleanup"):
            orphans = self.pacman.orphans()
            if not orphans:
                logger.info("No orphaned packages found")
                return CleanupResult("orphans", True, "no orphans")

            logger.info(f"Found {len(orphans)} orphaned packages")
            result = self._run(["pacman", "-Rns", *orphans, "--noconfirm"],
                               sudo=True)
            if not result.ok:
                logger.warning(f"Orphan removal failed: {result.output.strip()}")
                return CleanupResult("orphans", False, "pacman -Rns failed")

            logger.info(f"{len(orphans)} orphaned packages removed")
            return CleanupResult("orphans", True, f"{len(orphans)} removed")

    def vacuum_journal(self) -> CleanupResult:
        with LogContext(component="cleanup"):
            before = self._size(JOURNAL_DIR)
            result = self._run(
                ["journalctl", f"--vacuum-time={self.journal_retention}"], sudo=True,
            )
            if not result.ok:
                logger.warning(f"Journal cleanup failed: {result.output.strip()}")
                return CleanupResult("journal", False, "journalctl --vacuum-time failed", before)

            after = self._size(JOURNAL_DIR)
            logger.info(f"Journal logs cleaned (Before: {before}, After: {after})")
            return CleanupResult("journal", True, "journal vacuumed", before, after)

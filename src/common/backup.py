"""
Configuration snapshots.

A backup is a timestamped directory holding verbatim copies of the
source paths. It is created in one go and never pruned.
"""

from __future__ import annotations

import glob
import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class BackupReport:
    """Result of one backup run."""
    destination: Path
    copied: List[Path] = field(default_factory=list)
    failed: List[Path] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.copied)


def timestamped_dir(parent: Path, prefix: str = "", fmt: str = "%Y%m%d-%H%M%S",
                    now: Optional[datetime] = None) -> Path:
    """Return parent/<prefix><timestamp> without creating it."""
    stamp = (now or datetime.now()).strftime(fmt)
    return Path(parent) / f"{prefix}{stamp}"


class ConfigBackup:
    """
    Copies configuration paths into a snapshot directory.

    Patterns may contain shell wildcards. Relative patterns are resolved
    against base (the user's home by default). Patterns with no match are
    skipped silently.
    """

    def __init__(self, destination: Path, base: Optional[Path] = None):
        self.destination = Path(destination)
        self.base = Path(base) if base else Path.home()

    def _expand(self, pattern: str) -> List[Path]:
        path = Path(pattern).expanduser()
        if not path.is_absolute():
            path = self.base / path
        return [Path(p) for p in sorted(glob.glob(str(path)))]

    def backup(self, patterns: Iterable[str]) -> BackupReport:
        """
        Copy every existing match of patterns into the destination.

        Returns:
            BackupReport listing copied and failed paths.
        """
        report = BackupReport(destination=self.destination)
        self.destination.mkdir(parents=True, exist_ok=True)

        for pattern in patterns:
            for source in self._expand(pattern):
                target = self.destination / source.name
                try:
                    if source.is_dir():
                        shutil.copytree(source, target, symlinks=True, dirs_exist_ok=True)
                    else:
                        shutil.copy2(source, target)
                except OSError as e:
                    logger.warning(f"Could not back up {source}: {e}")
                    report.failed.append(source)
                    continue

                report.copied.append(source)
                logger.info(f"Backed up: {source}")

        return report

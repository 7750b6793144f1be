"""
Package database queries.

A narrow interface over pacman's query commands. Parsing lives in plain
functions so it can be tested against captured output; the Pacman class
only decides which command to run and how to treat its exit status.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from . import commands
from .commands import CommandResult

logger = logging.getLogger(__name__)

Runner = Callable[..., CommandResult]


def parse_package_list(text: str) -> List[str]:
    """Parse one-package-per-line output (`-Qqu`, `-Qtdq`)."""
    names = []
    for line in text.splitlines():
        line = line.strip()
        if line:
            names.append(line.split()[0])
    return names


def parse_package_version(text: str) -> Optional[str]:
    """Parse `pacman -Q NAME` output ("name version") into the version."""
    parts = text.strip().split()
    if len(parts) < 2:
        return None
    return parts[1]


class Pacman:
    """Read-only queries against the local package database."""

    def __init__(self, runner: Optional[Runner] = None):
        self._run = runner or commands.run

    def installed_version(self, name: str) -> Optional[str]:
        """Version of an installed package, None if not installed."""
        result = self._run(["pacman", "-Q", name])
        if not result.ok:
            return None
        return parse_package_version(result.stdout)

    def is_installed(self, name: str) -> bool:
        return self._run(["pacman", "-Qi", name]).ok

    def pending_updates(self) -> List[str]:
        """Names of packages with an update available in the synced databases."""
        # pacman -Qu exits 1 when nothing is pending
        result = self._run(["pacman", "-Qqu"])
        return parse_package_list(result.stdout) if result.ok else []

    def orphans(self) -> List[str]:
        """Installed dependencies no longer required by anything."""
        result = self._run(["pacman", "-Qtdq"])
        return parse_package_list(result.stdout) if result.ok else []


def any_startswith(names: Sequence[str], prefixes: Sequence[str]) -> bool:
    """True if any package name starts with one of the prefixes."""
    return any(name.startswith(prefix) for name in names for prefix in prefixes)

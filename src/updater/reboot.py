"""
Reboot recommendation.

Three independent signals; a reboot is recommended when any is set.
"""

from __future__ import annotations

import logging
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from common.packages import Pacman, any_startswith
from desktop_env.environment import EnvironmentInfo

logger = logging.getLogger(__name__)

MODULES_ROOT = Path("/usr/lib/modules")


def reboot_recommended(kernel_mismatch: bool, compositor_pending: bool,
                       gpu_driver_pending: bool) -> bool:
    return kernel_mismatch or compositor_pending or gpu_driver_pending


@dataclass(frozen=True)
class RebootSignals:
    kernel_mismatch: bool = False
    compositor_pending: bool = False
    gpu_driver_pending: bool = False

    @property
    def recommended(self) -> bool:
        return reboot_recommended(
            self.kernel_mismatch, self.compositor_pending, self.gpu_driver_pending,
        )

    def reasons(self) -> List[str]:
        reasons = []
        if self.kernel_mismatch:
            reasons.append("Kernel update")
        if self.compositor_pending:
            reasons.append("Hyprland update")
        if self.gpu_driver_pending:
            reasons.append("Graphics driver update")
        return reasons


def _normalize_release(release: str) -> str:
    return release.replace("-", ".")


def kernel_mismatch(
    running_release: str,
    installed_version: Optional[str],
    modules_root: Path = MODULES_ROOT,
) -> bool:
    """
    True when the running kernel is no longer the installed one.

    The running kernel's modules directory disappears when its package is
    upgraded; otherwise the running release (6.6.8-arch1-1) is compared
    with the installed package version (6.6.8.arch1-1) with dashes and
    dots treated alike.
    """
    if not (Path(modules_root) / running_release).is_dir():
        return True
    if installed_version is None:
        return False
    return not _normalize_release(running_release).startswith(
        _normalize_release(installed_version)
    )


def compute_reboot_signals(
    pacman: Pacman,
    environment: EnvironmentInfo,
    kernel_package: str = "linux",
    compositor_prefixes: Sequence[str] = ("hyprland",),
    gpu_driver_prefixes: Sequence[str] = ("nvidia", "mesa"),
    running_release: Optional[str] = None,
    modules_root: Path = MODULES_ROOT,
) -> RebootSignals:
    """Gather the reboot signals from the package database."""
    release = running_release or platform.release()
    pending = pacman.pending_updates()

    signals = RebootSignals(
        kernel_mismatch=kernel_mismatch(
            release, pacman.installed_version(kernel_package), modules_root,
        ),
        compositor_pending=environment.is_hyprland and any_startswith(
            pending, compositor_prefixes,
        ),
        gpu_driver_pending=any_startswith(pending, gpu_driver_prefixes),
    )

    if signals.kernel_mismatch:
        logger.info("Kernel update detected")
    if signals.compositor_pending:
        logger.info("Hyprland update detected")
    if signals.gpu_driver_pending:
        logger.info("Graphics driver update detected")
    return signals

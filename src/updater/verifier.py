"""
Update Verifier

Verifies system health after updates: failed units, the desktop
session's processes, compositor diagnostics and the GPU driver.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from common import commands
from common.commands import CommandResult
from common.packages import Pacman
from desktop_env.environment import EnvironmentInfo
from desktop_env.gpu import GPUScanner, GPUVendor
from desktop_env.processes import is_running, process_stats
from .checks import CheckLevel, CheckResult, run_check, run_checks
from .health import parse_unit_names

logger = logging.getLogger(__name__)

# (process, friendly name, optional)
HYPRLAND_PROCESSES: Sequence[Tuple[str, str, bool]] = (
    ("Hyprland", "Hyprland Compositor", False),
    ("waybar", "Waybar", False),
    ("dunst", "Dunst", True),
    ("polkit-gnome-authentication-agent-1", "Polkit", True),
)
KDE_PROCESSES: Sequence[Tuple[str, str, bool]] = (
    ("plasmashell", "Plasma Shell", False),
    ("kwin_x11", "KWin", True),
    ("kwin_wayland", "KWin Wayland", True),
)

HYPRLAND_PACKAGES = ("xdg-desktop-portal-hyprland", "qt6-wayland", "xdg-utils", "polkit-gnome")
PORTAL_SERVICES = ("xdg-desktop-portal.service", "xdg-desktop-portal-hyprland.service")
MEMORY_COMPONENTS = ("Hyprland", "waybar", "dunst", "polkit-gnome-authentication-agent-1",
                     "xdg-desktop-portal", "pipewire")

_COMPOSITOR_LINE = re.compile(r"compositor|wayland|hyprland", re.IGNORECASE)
_ERROR_WORD = re.compile(r"error|fail", re.IGNORECASE)


def compositor_errors(journal: str, limit: int = 5) -> List[str]:
    """Last journal lines that mention the compositor and an error."""
    lines = [line for line in journal.splitlines()
             if _COMPOSITOR_LINE.search(line) and _ERROR_WORD.search(line)]
    return lines[-limit:]


def process_check(process: str, friendly: str, optional: bool) -> CheckResult:
    name = f"process:{process}"
    if is_running(process):
        return CheckResult(name, CheckLevel.OK, f"{friendly} is running")
    if optional:
        return CheckResult(name, CheckLevel.WARNING, f"Optional: {friendly} is not running")
    return CheckResult(name, CheckLevel.ERROR, f"Required: {friendly} is not running")


class UpdateVerifier:
    """
    Verifies system health after updates.

    Every check produces a CheckResult; a check that cannot run is
    reported, never raised.
    """

    def __init__(
        self,
        environment: EnvironmentInfo,
        runner: Optional[Callable[..., CommandResult]] = None,
        pacman: Optional[Pacman] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.environment = environment
        self._run = runner or commands.run
        self.pacman = pacman or Pacman(runner=self._run)
        self.environ = environ if environ is not None else os.environ

    def verify(self, diagnostics: bool = True) -> List[CheckResult]:
        """
        Run post-update verification.

        Args:
            diagnostics: Include the detailed compositor diagnostics
        """
        logger.info("Performing final system verification...")
        results = run_checks([self.check_failed_units, self.check_gpu_driver])
        results.extend(self.desktop_checks())
        if diagnostics and self.environment.is_hyprland:
            results.extend(self.hyprland_diagnostics())
        return results

    def check_failed_units(self) -> CheckResult:
        result = self._run(["systemctl", "--failed", "--no-legend"], timeout=10)
        failed = parse_unit_names(result.stdout)
        if failed:
            return CheckResult("failed_units", CheckLevel.ERROR,
                               f"Failed system services: {', '.join(failed)}")
        return CheckResult("failed_units", CheckLevel.OK,
                           "All system services are running normally")

    def check_gpu_driver(self) -> CheckResult:
        if not GPUScanner(runner=self._run, pacman=self.pacman).has_vendor(GPUVendor.NVIDIA):
            return CheckResult("gpu_driver", CheckLevel.SKIPPED, "No NVIDIA GPU")
        if self._run(["nvidia-smi"], timeout=15).ok:
            return CheckResult("gpu_driver", CheckLevel.OK, "NVIDIA drivers working properly")
        return CheckResult("gpu_driver", CheckLevel.WARNING, "NVIDIA driver not responding properly")

    def desktop_checks(self) -> List[CheckResult]:
        """Required and optional processes of the detected desktop."""
        if self.environment.is_hyprland:
            expected = HYPRLAND_PROCESSES
        elif self.environment.is_kde:
            expected = KDE_PROCESSES
        else:
            result = CheckResult("desktop", CheckLevel.WARNING,
                                 "Unknown or unsupported desktop environment")
            return [run_check("desktop", lambda: result)]

        return [
            run_check(f"process:{process}", lambda p=process, f=friendly, o=optional:
                      process_check(p, f, o))
            for process, friendly, optional in expected
        ]

    # ------------------------------------------------------------------
    # Hyprland diagnostics
    # ------------------------------------------------------------------

    def hyprland_diagnostics(self) -> List[CheckResult]:
        logger.info("Checking Hyprland status...")
        return run_checks([
            self.check_hyprland_packages,
            self.check_portals,
            self.check_dbus,
            self.check_component_memory,
            self.check_compositor_journal,
        ])

    def check_hyprland_packages(self) -> CheckResult:
        missing = [pkg for pkg in HYPRLAND_PACKAGES if not self.pacman.is_installed(pkg)]
        if missing:
            return CheckResult("hyprland_packages", CheckLevel.WARNING,
                               f"Missing packages: {', '.join(missing)}")
        return CheckResult("hyprland_packages", CheckLevel.OK, "Required packages installed")

    def check_portals(self) -> CheckResult:
        portal, hyprland_portal = PORTAL_SERVICES
        if not self._run(["systemctl", "--user", "is-active", portal], timeout=10).ok:
            return CheckResult("portals", CheckLevel.ERROR, "XDG Desktop Portal is not running")
        if not self._run(["systemctl", "--user", "is-active", hyprland_portal], timeout=10).ok:
            return CheckResult("portals", CheckLevel.WARNING,
                               "Hyprland Portal implementation not running")
        return CheckResult("portals", CheckLevel.OK, "XDG Desktop Portal and Hyprland Portal active")

    def check_dbus(self) -> CheckResult:
        if not self.environ.get("DBUS_SESSION_BUS_ADDRESS"):
            return CheckResult("dbus", CheckLevel.ERROR, "No DBus session found")
        result = self._run([
            "dbus-send", "--session", "--dest=org.freedesktop.DBus", "--type=method_call",
            "--print-reply", "/org/freedesktop/DBus", "org.freedesktop.DBus.ListNames",
        ], timeout=10)
        if not result.ok:
            return CheckResult("dbus", CheckLevel.ERROR, "DBus communication test failed")
        return CheckResult("dbus", CheckLevel.OK, "DBus communication working")

    def check_component_memory(self) -> CheckResult:
        usage = []
        stopped = []
        for component in MEMORY_COMPONENTS:
            stats = process_stats(component)
            if stats.running:
                usage.append(f"{component} {stats.rss_mb:.1f} MB")
            else:
                stopped.append(component)
        message = ", ".join(usage) or "no components running"
        if stopped:
            return CheckResult("component_memory", CheckLevel.WARNING,
                               f"{message}; not running: {', '.join(stopped)}")
        return CheckResult("component_memory", CheckLevel.OK, message)

    def check_compositor_journal(self) -> CheckResult:
        result = self._run(["journalctl", "-b", "--no-pager"], timeout=60)
        errors = compositor_errors(result.stdout)
        if errors:
            return CheckResult("compositor_journal", CheckLevel.WARNING,
                               "Recent compositor errors:\n  " + "\n  ".join(errors))
        return CheckResult("compositor_journal", CheckLevel.OK, "No recent compositor errors found")

#!/usr/bin/env python3
"""
Desktop Environment Inspector

Read-only reports about the running desktop (plus a configuration
backup) used by the de-manager command.
"""

from __future__ import annotations

import logging
import os
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from common import commands
from common.backup import BackupReport, ConfigBackup, timestamped_dir
from common.commands import CommandResult
from common.config import DesktopConfig
from .environment import detect_desktop_process, detect_session_type
from .gpu import GPUScanner, GPUStatus
from .processes import is_running, rss_matching, running_process_names
from .sessions import SessionEntry, list_sessions

logger = logging.getLogger(__name__)

# Process name patterns per desktop, keyed by a substring of its name
MEMORY_PATTERNS: Tuple[Tuple[str, str], ...] = (
    ("gnome", "gnome-shell|gdm|gnome-session"),
    ("plasma", "plasma|kwin|plasmashell"),
    ("kde", "plasma|kwin|plasmashell"),
    ("xfce", "xfce4|xfwm4"),
    ("i3", "i3|i3bar"),
)


@dataclass
class SystemInfo:
    """Summary printed by de-manager --info."""
    os_name: str
    kernel: str
    session_type: str
    display: str
    opengl_vendor: str = ""
    gpus: List[GPUStatus] = field(default_factory=list)


@dataclass
class IssueReport:
    """Findings of de-manager --check."""
    processes: Dict[str, bool] = field(default_factory=dict)
    config_files: Dict[str, bool] = field(default_factory=dict)
    broken_symlinks: List[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return (
            all(self.processes.values())
            and all(self.config_files.values())
            and not self.broken_symlinks
        )


def read_os_name(os_release: Path = Path("/etc/os-release")) -> str:
    """PRETTY_NAME from os-release."""
    try:
        for line in os_release.read_text().splitlines():
            if line.startswith("PRETTY_NAME="):
                return line.split("=", 1)[1].strip().strip('"')
    except OSError:
        pass
    return "Unknown"


def parse_opengl_vendor(glxinfo_output: str) -> str:
    for line in glxinfo_output.splitlines():
        if line.strip().startswith("OpenGL vendor"):
            return line.split(":", 1)[1].strip()
    return ""


def parse_wmctrl_name(output: str) -> str:
    for line in output.splitlines():
        if line.startswith("Name:"):
            return line.split(":", 1)[1].strip()
    return ""


def memory_pattern(desktop: str) -> str:
    """Process name pattern for a desktop name (e.g. "KDE", "GNOME")."""
    lowered = desktop.lower()
    for key, pattern in MEMORY_PATTERNS:
        if key in lowered:
            return pattern
    return lowered


def find_broken_symlinks(root: Path) -> List[Path]:
    """Symlinks under root whose target does not exist."""
    broken = []
    if not root.is_dir():
        return broken
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            path = Path(dirpath) / name
            if path.is_symlink() and not path.exists():
                broken.append(path)
    return sorted(broken)


class DesktopInspector:
    """
    Answers the de-manager questions.

    Example:
        inspector = DesktopInspector()
        print(inspector.current_desktop())
    """

    def __init__(
        self,
        config: Optional[DesktopConfig] = None,
        runner: Optional[Callable[..., CommandResult]] = None,
        environ: Optional[Mapping[str, str]] = None,
        home: Optional[Path] = None,
    ):
        self.config = config or DesktopConfig()
        self._run = runner or commands.run
        self.environ = environ if environ is not None else os.environ
        self.home = Path(home) if home else Path.home()

    def list_sessions(self) -> List[SessionEntry]:
        return list_sessions(self.config.session_dirs)

    def current_desktop(self) -> Optional[Tuple[str, str]]:
        """
        Find the current desktop, trying in order the XDG_CURRENT_DESKTOP,
        DESKTOP_SESSION and GDMSESSION variables, then `wmctrl -m`, then
        the process table.

        Returns:
            (source, name) or None if nothing identified it.
        """
        for var in ("XDG_CURRENT_DESKTOP", "DESKTOP_SESSION", "GDMSESSION"):
            value = self.environ.get(var)
            if value:
                return var, value

        if commands.command_exists("wmctrl"):
            name = parse_wmctrl_name(self._run(["wmctrl", "-m"], timeout=5).stdout)
            if name:
                return "Window Manager", name

        match = detect_desktop_process(running_process_names())
        if match:
            return "Process", match[1]

        logger.warning("Could not detect current desktop environment")
        return None

    def backup_configs(self) -> BackupReport:
        """Copy desktop configuration into ~/de-configs-backup-<timestamp>."""
        destination = timestamped_dir(self.home, prefix="de-configs-backup-")
        logger.info(f"Backing up configurations to: {destination}")
        report = ConfigBackup(destination, base=self.home).backup(self.config.backup_patterns)
        logger.info(f"Backup completed ({report.count} item(s))")
        return report

    def system_info(self) -> SystemInfo:
        opengl_vendor = ""
        if commands.command_exists("glxinfo"):
            opengl_vendor = parse_opengl_vendor(self._run(["glxinfo"], timeout=10).stdout)

        return SystemInfo(
            os_name=read_os_name(),
            kernel=platform.release(),
            session_type=detect_session_type(self.environ).value,
            display=self.environ.get("WAYLAND_DISPLAY") or self.environ.get("DISPLAY", ""),
            opengl_vendor=opengl_vendor,
            gpus=GPUScanner(runner=self._run).scan(),
        )

    def memory_usage(self) -> Optional[float]:
        """Total RSS in MB of the current desktop's processes."""
        desktop = (self.environ.get("XDG_CURRENT_DESKTOP")
                   or self.environ.get("DESKTOP_SESSION", ""))
        if not desktop:
            logger.warning("Could not detect current desktop environment")
            return None
        return rss_matching(memory_pattern(desktop))

    def check_issues(self) -> IssueReport:
        report = IssueReport()

        names = running_process_names()
        for process in self.config.critical_processes:
            report.processes[process] = is_running(process, names)

        for name in self.config.session_files:
            report.config_files[name] = (self.home / name).is_file()

        report.broken_symlinks = find_broken_symlinks(self.home / ".config")
        return report

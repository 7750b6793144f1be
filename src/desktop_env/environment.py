#!/usr/bin/env python3
"""
Desktop Environment Detection

Works out the session type and which desktop or window manager is
running. Detection only reads the environment and the process table.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Optional, Tuple

from .processes import is_running, running_process_names

logger = logging.getLogger(__name__)


class SessionType(Enum):
    """Display server of the current session."""
    WAYLAND = "wayland"
    X11 = "x11"
    TTY = "tty"


# First match wins; compositors come before the shells they can host
DESKTOP_PRIORITY: Tuple[Tuple[str, str], ...] = (
    ("Hyprland", "Hyprland"),
    ("sway", "Sway"),
    ("plasmashell", "KDE Plasma"),
    ("gnome-shell", "GNOME"),
    ("xfce4-session", "Xfce"),
    ("cinnamon", "Cinnamon"),
    ("mate-session", "MATE"),
    ("i3", "i3"),
    ("bspwm", "bspwm"),
    ("awesome", "awesome"),
    ("qtile", "Qtile"),
    ("herbstluftwm", "herbstluftwm"),
)

COMPOSITORS = {
    "Hyprland": "Hyprland",
    "sway": "sway",
    "plasmashell": "kwin",
}


@dataclass(frozen=True)
class EnvironmentInfo:
    """Snapshot of the graphical environment."""
    session_type: SessionType
    desktop: Optional[str] = None          # friendly name, e.g. "KDE Plasma"
    desktop_process: Optional[str] = None  # process that matched
    compositor: Optional[str] = None
    desktop_env_var: str = ""              # XDG_CURRENT_DESKTOP
    desktop_session_var: str = ""          # DESKTOP_SESSION
    display: str = ""

    @property
    def is_hyprland(self) -> bool:
        return self.desktop_process == "Hyprland"

    @property
    def is_kde(self) -> bool:
        return self.desktop_process == "plasmashell"


def detect_session_type(environ: Mapping[str, str]) -> SessionType:
    session = environ.get("XDG_SESSION_TYPE", "").lower()
    if session == "wayland":
        return SessionType.WAYLAND
    if session == "x11":
        return SessionType.X11
    if environ.get("WAYLAND_DISPLAY"):
        return SessionType.WAYLAND
    if environ.get("DISPLAY"):
        return SessionType.X11
    return SessionType.TTY


def detect_desktop_process(process_names: Iterable[str]) -> Optional[Tuple[str, str]]:
    """Return (process, friendly name) of the highest-priority match."""
    names = list(process_names)
    for process, friendly in DESKTOP_PRIORITY:
        if is_running(process, names):
            return process, friendly
    return None


def detect_environment(
    environ: Optional[Mapping[str, str]] = None,
    process_names: Optional[Iterable[str]] = None,
) -> EnvironmentInfo:
    """
    Detect the running desktop environment.

    Args:
        environ: Environment variables (default: os.environ)
        process_names: Names of running processes (default: from psutil)

    Returns:
        EnvironmentInfo; calling it twice on the same system gives the
        same answer.
    """
    if environ is None:
        environ = os.environ
    if process_names is None:
        process_names = running_process_names()

    match = detect_desktop_process(process_names)
    process, friendly = match if match else (None, None)

    info = EnvironmentInfo(
        session_type=detect_session_type(environ),
        desktop=friendly,
        desktop_process=process,
        compositor=COMPOSITORS.get(process) if process else None,
        desktop_env_var=environ.get("XDG_CURRENT_DESKTOP", ""),
        desktop_session_var=environ.get("DESKTOP_SESSION", ""),
        display=environ.get("WAYLAND_DISPLAY") or environ.get("DISPLAY", ""),
    )
    logger.debug(f"Detected environment: {info}")
    return info

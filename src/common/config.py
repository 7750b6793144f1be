"""
Toolbox configuration.

Defaults reproduce the behaviour of the stock scripts. A JSON file at
$XDG_CONFIG_HOME/linux-toolbox/config.json may override any field:

    {
        "updater": {"journal_retention": "14d", "aur_helpers": ["paru"]},
        "mount": {"base_dir": "/mnt"}
    }
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from .exceptions import InvalidConfigError

logger = logging.getLogger(__name__)

CONFIG_NAME = "linux-toolbox"


@dataclass
class MountConfig:
    """NTFS mount manager settings."""
    base_dir: Optional[str] = None  # default /run/media/<user>
    log_file: str = "/var/log/ntfs-mounter.log"
    backup_dir: str = "/var/backups/ntfs-mounter"
    fstab_path: str = "/etc/fstab"
    mount_options: List[str] = field(default_factory=lambda: [
        "rw", "big_writes", "windows_names", "noatime", "x-gvfs-show",
    ])
    kernel_mount_options: List[str] = field(default_factory=lambda: [
        "rw", "noatime", "iocharset=utf8", "x-gvfs-show",
    ])


@dataclass
class UpdaterConfig:
    """Update orchestrator settings."""
    log_dir: Optional[str] = None  # default $HOME
    json_log: str = "~/.local/share/update_logs/updates.json"
    backup_root: str = "~/.config/system_backups"
    backup_paths: List[str] = field(default_factory=lambda: [
        "~/.config/hypr",
        "~/.config/kde",
        "~/.config/environment.d",
        "~/.config/plasma-workspace",
        "~/.config/kwinrc",
        "~/.config/waybar",
        "~/.config/wlogout",
        "/etc/X11/xorg.conf.d",
    ])
    aur_helpers: List[str] = field(default_factory=lambda: ["yay", "paru"])
    network_hosts: List[str] = field(default_factory=lambda: ["8.8.8.8", "1.1.1.1"])
    network_port: int = 53
    network_timeout: float = 5.0
    monitor_interval: float = 1.0
    journal_retention: str = "7d"
    disk_warning_percent: int = 90
    temperature_warning: float = 80.0
    kernel_package: str = "linux"
    compositor_prefixes: List[str] = field(default_factory=lambda: ["hyprland"])
    gpu_driver_prefixes: List[str] = field(default_factory=lambda: ["nvidia", "mesa"])
    health_checks: bool = True
    cleanup: bool = True
    backup: bool = True
    diagnostics: bool = True


@dataclass
class DesktopConfig:
    """Desktop environment inspector settings."""
    session_dirs: List[str] = field(default_factory=lambda: [
        "/usr/share/xsessions",
        "/usr/share/wayland-sessions",
    ])
    backup_patterns: List[str] = field(default_factory=lambda: [
        ".config/plasma*",
        ".config/gnome*",
        ".config/xfce4",
        ".config/cinnamon",
        ".config/mate",
        ".config/sway",
        ".config/hypr",
        ".config/i3",
        ".config/awesome",
        ".config/qtile",
        ".config/bspwm",
        ".config/herbstluftwm",
    ])
    critical_processes: List[str] = field(default_factory=lambda: [
        "dbus-daemon", "pulseaudio", "systemd-logind",
    ])
    session_files: List[str] = field(default_factory=lambda: [
        ".xinitrc", ".xsession", ".Xresources",
    ])


@dataclass
class ZoomConfig:
    """Cursor zoom settings."""
    option: str = "cursor:zoom_factor"


@dataclass
class ToolboxConfig:
    """Complete toolbox configuration."""
    mount: MountConfig = field(default_factory=MountConfig)
    updater: UpdaterConfig = field(default_factory=UpdaterConfig)
    desktop: DesktopConfig = field(default_factory=DesktopConfig)
    zoom: ZoomConfig = field(default_factory=ZoomConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolboxConfig":
        config = cls()
        for section_field in fields(cls):
            section_data = data.get(section_field.name)
            if section_data is None:
                continue
            if not isinstance(section_data, dict):
                raise InvalidConfigError(section_field.name, section_data, "expected an object")
            _apply(getattr(config, section_field.name), section_field.name, section_data)

        for key in data:
            if key not in {f.name for f in fields(cls)}:
                logger.warning(f"Ignoring unknown config section: {key}")
        return config


def _apply(section: Any, section_name: str, data: Dict[str, Any]) -> None:
    """Copy values from data onto a section dataclass, checking types."""
    known = {f.name: f for f in fields(section)}
    for key, value in data.items():
        if key not in known:
            logger.warning(f"Ignoring unknown config key: {section_name}.{key}")
            continue

        current = getattr(section, key)
        name = f"{section_name}.{key}"
        if isinstance(current, bool):
            if not isinstance(value, bool):
                raise InvalidConfigError(name, value, "expected true or false")
        elif isinstance(current, (int, float)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidConfigError(name, value, "expected a number")
        elif isinstance(current, list):
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise InvalidConfigError(name, value, "expected a list of strings")
        elif value is not None and not isinstance(value, str):
            raise InvalidConfigError(name, value, "expected a string")

        setattr(section, key, value)


def default_config_path() -> Path:
    """Config file location, honouring XDG_CONFIG_HOME."""
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / CONFIG_NAME / "config.json"


def load_config(path: Optional[Path] = None) -> ToolboxConfig:
    """
    Load configuration, falling back to defaults.

    Args:
        path: Config file (default: default_config_path())

    Raises:
        InvalidConfigError: if the file is not valid JSON or has bad values.
    """
    path = Path(path) if path else default_config_path()
    if not path.exists():
        return ToolboxConfig()

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfigError(str(path), "<file>", f"not valid JSON: {e}")

    if not isinstance(data, dict):
        raise InvalidConfigError(str(path), "<file>", "expected a JSON object")

    logger.debug(f"Loaded config from {path}")
    return ToolboxConfig.from_dict(data)

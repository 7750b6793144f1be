"""
Installed session discovery from .desktop files.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_SESSION_DIRS = ("/usr/share/xsessions", "/usr/share/wayland-sessions")


@dataclass
class SessionEntry:
    """An installed desktop session."""
    name: str
    file: Path


def parse_desktop_entry_name(text: str) -> Optional[str]:
    """Value of the first unlocalised Name= key."""
    for line in text.splitlines():
        if line.startswith("Name="):
            return line.split("=", 1)[1].strip()
    return None


def list_sessions(dirs: Iterable[str] = DEFAULT_SESSION_DIRS) -> List[SessionEntry]:
    """List installed X11 and Wayland sessions."""
    sessions = []
    for directory in dirs:
        path = Path(directory)
        if not path.is_dir():
            continue
        for desktop_file in sorted(path.glob("*.desktop")):
            try:
                text = desktop_file.read_text(errors="ignore")
            except OSError as e:
                logger.warning(f"Could not read {desktop_file}: {e}")
                continue
            name = parse_desktop_entry_name(text) or desktop_file.stem
            sessions.append(SessionEntry(name=name, file=desktop_file))
    return sessions

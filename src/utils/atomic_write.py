"""
Atomic file operations for system tables.

Edits to files such as /etc/fstab either complete or leave the file
untouched. Uses the write-to-temp-then-rename pattern.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional, Union


def atomic_write_text(path: Union[str, Path], content: str, mode: int = 0o644) -> None:
    """
    Write text content to file atomically.

    On POSIX systems, rename() is atomic within the same filesystem, so the
    temp file is created next to the destination.

    Args:
        path: Destination file path
        content: Text content to write
        mode: File permissions (default 0o644)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp"
    )

    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        os.chmod(temp_path, mode)
        os.replace(temp_path, path)

        # Sync parent directory so the rename survives a crash
        try:
            dir_fd = os.open(str(path.parent), os.O_RDONLY | os.O_DIRECTORY)
            try:
                os.fsync(dir_fd)
            finally:
                os.close(dir_fd)
        except (OSError, AttributeError):
            pass

    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def atomic_append_line(path: Union[str, Path], line: str) -> None:
    """
    Append one line to a text file atomically, keeping its permissions.

    A missing trailing newline on the existing content is added first.
    """
    path = Path(path)
    existing = path.read_text(encoding="utf-8") if path.exists() else ""
    if existing and not existing.endswith("\n"):
        existing += "\n"

    mode = path.stat().st_mode & 0o777 if path.exists() else 0o644
    atomic_write_text(path, existing + line.rstrip("\n") + "\n", mode)


def timestamped_backup(
    path: Union[str, Path],
    backup_dir: Union[str, Path],
    now: Optional[datetime] = None,
) -> Optional[Path]:
    """
    Copy a file to backup_dir/<name>.<YYYYmmdd-HHMMSS>.

    Returns:
        Path to backup file, or None if the source does not exist.
    """
    path = Path(path)
    if not path.exists():
        return None

    backup_dir = Path(backup_dir)
    backup_dir.mkdir(parents=True, exist_ok=True)
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    backup_path = backup_dir / f"{path.name}.{stamp}"
    shutil.copy2(path, backup_path)
    return backup_path

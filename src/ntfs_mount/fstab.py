"""
Persistent mount table entries for NTFS volumes.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

from common.exceptions import MountError
from utils.atomic_write import atomic_append_line, timestamped_backup
from .devices import BlockDeviceProbe
from .mounter import TargetUser

logger = logging.getLogger(__name__)


def fstab_escape(path: str) -> str:
    """Escape whitespace the way fstab expects (space -> \\040)."""
    return path.replace("\\", "\\134").replace(" ", "\\040").replace("\t", "\\011")


def build_fstab_entry(uuid: str, mount_point: Path, options: Sequence[str],
                      user: TargetUser) -> str:
    """
    One fstab line: identifier, path, type, options, dump, pass.
    """
    opts = ",".join(list(options) + [f"uid={user.uid}", f"gid={user.gid}"])
    return f"UUID={uuid} {fstab_escape(str(mount_point))} ntfs-3g {opts} 0 0"


class FstabManager:
    """Appends UUID-keyed entries to the system mount table."""

    def __init__(
        self,
        probe: BlockDeviceProbe,
        options: Sequence[str],
        fstab_path: Path = Path("/etc/fstab"),
        backup_dir: Path = Path("/var/backups/ntfs-mounter"),
    ):
        self.probe = probe
        self.options = list(options)
        self.fstab_path = Path(fstab_path)
        self.backup_dir = Path(backup_dir)

    def contains(self, mount_point: Path) -> bool:
        """True if the mount path appears anywhere in the table."""
        if not self.fstab_path.exists():
            return False
        text = self.fstab_path.read_text()
        return str(mount_point) in text or fstab_escape(str(mount_point)) in text

    def add(self, device: str, mount_point: Path, user: TargetUser) -> Optional[str]:
        """
        Add a mount point to fstab, once.

        Returns:
            The line written, or None if the mount point was already listed.

        Raises:
            MountError: if the device has no UUID.
        """
        uuid = self.probe.uuid(device)
        if not uuid:
            raise MountError(
                f"Could not get UUID for device {device}",
                code="NO_UUID",
                details={"device": device},
            )

        if self.contains(mount_point):
            logger.warning(f"Mount point {mount_point} already exists in fstab")
            return None

        backup = timestamped_backup(self.fstab_path, self.backup_dir)
        if backup:
            logger.info(f"Created backup: {backup}")

        line = build_fstab_entry(uuid, mount_point, self.options, user)
        atomic_append_line(self.fstab_path, line)
        logger.info(f"Added entry to fstab for {device}")
        return line

#!/usr/bin/env python3
"""
Block device discovery.

Reads blkid output and the kernel mount table. Parsing is kept in plain
functions; BlockDeviceProbe only runs the commands.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from common import commands
from common.commands import CommandResult

logger = logging.getLogger(__name__)

NTFS_MOUNT_TYPES = {"ntfs", "ntfs3", "fuseblk"}

_BLKID_ATTR = re.compile(r'(\w+)="((?:[^"\\]|\\.)*)"')
_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


@dataclass
class BlockDevice:
    """A block device as reported by blkid."""
    device: str            # e.g., /dev/sdb1
    fstype: str = ""
    uuid: str = ""
    label: str = ""

    @property
    def is_ntfs(self) -> bool:
        return self.fstype.lower() == "ntfs"


@dataclass
class MountEntry:
    """One line of /proc/mounts."""
    device: str
    mount_point: Path
    fstype: str
    options: str = ""

    @property
    def is_ntfs(self) -> bool:
        return self.fstype.lower() in NTFS_MOUNT_TYPES


def parse_blkid_output(text: str) -> List[BlockDevice]:
    """
    Parse plain `blkid` output.

    Format:
        /dev/sdb1: LABEL="Data" UUID="0123ABCD" TYPE="ntfs" PARTUUID="..."
    """
    devices = []
    for line in text.splitlines():
        device, sep, rest = line.partition(":")
        if not sep or not device.startswith("/"):
            continue
        attrs = dict(_BLKID_ATTR.findall(rest))
        devices.append(BlockDevice(
            device=device.strip(),
            fstype=attrs.get("TYPE", ""),
            uuid=attrs.get("UUID", ""),
            label=attrs.get("LABEL", ""),
        ))
    return devices


def _unescape_mount_field(value: str) -> str:
    """Decode the octal escapes (\\040 for space) used in /proc/mounts."""
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), value)


def parse_proc_mounts(text: str) -> List[MountEntry]:
    """Parse /proc/mounts (or /etc/mtab) content."""
    entries = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 3:
            continue
        entries.append(MountEntry(
            device=_unescape_mount_field(parts[0]),
            mount_point=Path(_unescape_mount_field(parts[1])),
            fstype=parts[2],
            options=parts[3] if len(parts) > 3 else "",
        ))
    return entries


class BlockDeviceProbe:
    """Runs blkid and reads the mount table."""

    def __init__(
        self,
        runner: Optional[Callable[..., CommandResult]] = None,
        mounts_path: Path = Path("/proc/mounts"),
    ):
        self._run = runner or commands.run
        self.mounts_path = Path(mounts_path)

    def list_devices(self) -> List[BlockDevice]:
        """All block devices blkid knows about."""
        result = self._run(["blkid"], timeout=30)
        # blkid exits 2 when it finds nothing
        if not result.ok:
            if result.returncode != 2:
                logger.warning(f"blkid failed: {result.stderr.strip()}")
            return []
        return parse_blkid_output(result.stdout)

    def ntfs_devices(self) -> List[BlockDevice]:
        """Block devices with an NTFS filesystem."""
        return [d for d in self.list_devices() if d.is_ntfs]

    def _value(self, device: str, tag: str) -> str:
        result = self._run(["blkid", "-o", "value", "-s", tag, device], timeout=10)
        return result.stdout.strip() if result.ok else ""

    def label(self, device: str) -> str:
        return self._value(device, "LABEL")

    def uuid(self, device: str) -> str:
        return self._value(device, "UUID")

    def mounts(self) -> List[MountEntry]:
        try:
            return parse_proc_mounts(self.mounts_path.read_text())
        except OSError as e:
            logger.error(f"Failed to read {self.mounts_path}: {e}")
            return []

    def mount_point_of(self, device: str) -> Optional[Path]:
        """Where device is mounted, if anywhere."""
        real = os.path.realpath(device)
        for entry in self.mounts():
            if entry.device in (device, real):
                return entry.mount_point
        return None

    def is_mount_point(self, path: Path) -> bool:
        """True if something is mounted at path."""
        path = Path(path)
        if any(entry.mount_point == path for entry in self.mounts()):
            return True
        return os.path.ismount(path)

    def ntfs_mounts(self) -> List[MountEntry]:
        return [entry for entry in self.mounts() if entry.is_ntfs]

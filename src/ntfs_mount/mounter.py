#!/usr/bin/env python3
"""
NTFS Mounter

Mounts NTFS partitions under a per-user base directory with the kernel
ntfs3 driver, falling back to ntfs-3g. Volumes left hibernated by
Windows (Fast Startup) are never mounted read-write unless forced.
"""

from __future__ import annotations

import logging
import os
import pwd
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from common import commands
from common.commands import CommandResult
from common.exceptions import InvalidArgumentError, MountError
from common.providers import ProviderChain, binary_provider
from .devices import BlockDevice, BlockDeviceProbe, MountEntry

logger = logging.getLogger(__name__)

# ntfs-3g.probe exit status for a hibernated volume (NTFS_VOLUME_HIBERNATED)
PROBE_HIBERNATED = 14

DEFAULT_FUSE_OPTIONS = ["rw", "big_writes", "windows_names", "noatime", "x-gvfs-show"]
DEFAULT_KERNEL_OPTIONS = ["rw", "noatime", "iocharset=utf8", "x-gvfs-show"]


class MountStatus(Enum):
    """Outcome of a mount or unmount attempt."""
    MOUNTED = "mounted"
    ALREADY_MOUNTED = "already_mounted"
    HIBERNATED = "hibernated"
    FAILED = "failed"
    UNMOUNTED = "unmounted"
    NOT_MOUNTED = "not_mounted"

    @property
    def code(self) -> int:
        """Numeric status; hibernation refusal is distinct from failure."""
        if self is MountStatus.FAILED:
            return 1
        if self is MountStatus.HIBERNATED:
            return 2
        return 0

    @property
    def ok(self) -> bool:
        return self.code == 0


@dataclass
class TargetUser:
    """User that will own the mounted files."""
    name: str
    uid: int
    gid: int

    @classmethod
    def lookup(cls, name: str) -> "TargetUser":
        try:
            entry = pwd.getpwnam(name)
        except KeyError:
            raise InvalidArgumentError("user", name, "no such user")
        return cls(name=name, uid=entry.pw_uid, gid=entry.pw_gid)


@dataclass
class MountRecord:
    """A device and the mount point computed for it."""
    device: str
    mount_point: Path
    label: str = ""


@dataclass
class MountResult:
    """Result of a mount operation on one device."""
    record: MountRecord
    status: MountStatus
    driver: Optional[str] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status.ok


def mount_point_name(label: str, device: str) -> str:
    """
    Directory name for a device: its label, else the device basename,
    with everything outside [A-Za-z0-9_] replaced by underscores.
    """
    name = label.strip() or Path(device).name
    return re.sub(r"[^A-Za-z0-9_]", "_", name)


def parse_ntfsinfo_hibernated(text: str) -> bool:
    """True if ntfsinfo output reports the volume as hibernated."""
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if sep and "hibernat" in key.lower():
            return value.strip().lower().startswith("yes")
    return False


class NTFSMounter:
    """
    Mounts, unmounts and checks NTFS partitions.

    Example:
        mounter = NTFSMounter(Path("/run/media/alice"), TargetUser.lookup("alice"))
        for device in mounter.probe.ntfs_devices():
            mounter.mount(device.device)
    """

    def __init__(
        self,
        base_dir: Path,
        user: TargetUser,
        probe: Optional[BlockDeviceProbe] = None,
        runner: Optional[Callable[..., CommandResult]] = None,
        fuse_options: Optional[Sequence[str]] = None,
        kernel_options: Optional[Sequence[str]] = None,
    ):
        self.base_dir = Path(base_dir)
        self.user = user
        self._run = runner or commands.run
        self.probe = probe or BlockDeviceProbe(runner=self._run)
        self.fuse_options = list(fuse_options or DEFAULT_FUSE_OPTIONS)
        self.kernel_options = list(kernel_options or DEFAULT_KERNEL_OPTIONS)
        self._hibernation_probes = ProviderChain("hibernation", [
            binary_provider("ntfs-3g.probe", self._probe_with_ntfs3g),
            binary_provider("ntfsinfo", self._probe_with_ntfsinfo),
        ])

    # ------------------------------------------------------------------
    # Mount points
    # ------------------------------------------------------------------

    def record_for(self, device: str) -> MountRecord:
        """Compute the mount point for a device."""
        label = self.probe.label(device)
        return MountRecord(
            device=device,
            mount_point=self.base_dir / mount_point_name(label, device),
            label=label,
        )

    def prepare_mount_point(self, mount_point: Path) -> None:
        """Create the mount point if needed and hand it to the user."""
        if not mount_point.is_dir():
            mount_point.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created mount point: {mount_point}")

        try:
            os.chown(mount_point, self.user.uid, self.user.gid)
            os.chmod(mount_point, 0o755)
        except OSError as e:
            logger.warning(f"Could not set ownership of {mount_point}: {e}")

    # ------------------------------------------------------------------
    # Hibernation
    # ------------------------------------------------------------------

    def _probe_with_ntfs3g(self, device: str) -> bool:
        result = self._run(["ntfs-3g.probe", "--readwrite", device], timeout=30)
        return result.returncode == PROBE_HIBERNATED

    def _probe_with_ntfsinfo(self, device: str) -> bool:
        result = self._run(["ntfsinfo", "-m", device], timeout=30)
        return parse_ntfsinfo_hibernated(result.output)

    def is_hibernated(self, device: str) -> bool:
        """Check the Windows hibernation flag in the volume metadata."""
        hibernated = self._hibernation_probes.run(device)
        if hibernated is None:
            logger.warning(f"No tool available to check hibernation state of {device}")
            return False
        return hibernated

    # ------------------------------------------------------------------
    # Mount / unmount
    # ------------------------------------------------------------------

    def _options(self, base: Sequence[str], force: bool) -> str:
        options = [f"uid={self.user.uid}", f"gid={self.user.gid}"] + list(base)
        if force:
            options.append("force")
        return ",".join(options)

    def _drivers(self, force: bool) -> List[Tuple[str, str]]:
        """Drivers to try, in order: kernel first, then FUSE."""
        return [
            ("ntfs3", self._options(self.kernel_options, force)),
            ("ntfs-3g", self._options(self.fuse_options, force)),
        ]

    def mount(self, device: str, force: bool = False) -> MountResult:
        """
        Mount one NTFS device.

        Already-mounted devices are left alone and reported as success.

        Args:
            device: Device path (e.g., /dev/sdb1)
            force: Mount even if Windows left the volume hibernated or dirty

        Returns:
            MountResult describing what happened.
        """
        record = self.record_for(device)

        existing = self.probe.mount_point_of(device)
        if existing is not None:
            record.mount_point = existing
            logger.warning(f"{device} is already mounted at {existing}")
            return MountResult(record, MountStatus.ALREADY_MOUNTED,
                               message=f"already mounted at {existing}")

        self.prepare_mount_point(record.mount_point)

        if self.probe.is_mount_point(record.mount_point):
            logger.warning(f"{record.mount_point} is already mounted")
            return MountResult(record, MountStatus.ALREADY_MOUNTED,
                               message="mount point already in use")

        if not force and self.is_hibernated(device):
            logger.warning(f"Windows hibernation detected on {device}")
            logger.warning("Refusing to mount read-write to prevent data corruption "
                           "(disable Fast Startup in Windows or use --force)")
            return MountResult(record, MountStatus.HIBERNATED,
                               message="volume is hibernated")

        last_error = ""
        for driver, options in self._drivers(force):
            result = self._run(
                ["mount", "-t", driver, "-o", options, device, str(record.mount_point)],
                timeout=60,
            )
            if result.ok:
                logger.info(f"Successfully mounted {device} at {record.mount_point} "
                            f"using {driver} driver")
                return MountResult(record, MountStatus.MOUNTED, driver=driver)
            last_error = result.stderr.strip()
            logger.debug(f"{driver} mount failed: {last_error}")

        logger.error(f"Failed to mount {device} at {record.mount_point}: {last_error}")
        return MountResult(record, MountStatus.FAILED, message=last_error)

    def unmount(self, device: str) -> MountResult:
        """Unmount one device; not being mounted is not an error."""
        existing = self.probe.mount_point_of(device)
        if existing is not None:
            record = MountRecord(device=device, mount_point=existing)
        else:
            record = self.record_for(device)

        if existing is None and not self.probe.is_mount_point(record.mount_point):
            logger.warning(f"{record.mount_point} is not mounted")
            return MountResult(record, MountStatus.NOT_MOUNTED)

        result = self._run(["umount", str(record.mount_point)], timeout=60)
        if result.ok:
            logger.info(f"Successfully unmounted {record.mount_point}")
            return MountResult(record, MountStatus.UNMOUNTED)

        logger.error(f"Failed to unmount {record.mount_point}: {result.stderr.strip()}")
        return MountResult(record, MountStatus.FAILED, message=result.stderr.strip())

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    def _ensure_unmounted(self, device: str) -> None:
        mount_point = self.probe.mount_point_of(device)
        if mount_point is not None:
            raise MountError(
                f"{device} is mounted at {mount_point}; unmount it first",
                code="DEVICE_BUSY",
                details={"device": device},
            )

    def verify(self, device: str) -> bool:
        """Check filesystem consistency without changing anything."""
        self._ensure_unmounted(device)
        logger.info(f"Verifying filesystem on {device}")
        result = self._run(["ntfsfix", "-n", device])
        if result.ok:
            logger.info("Filesystem verification completed successfully")
            return True
        logger.error(f"Filesystem verification failed: {result.output.strip()}")
        return False

    def recover(self, device: str) -> bool:
        """Repair common inconsistencies and clear the dirty flag."""
        self._ensure_unmounted(device)
        logger.info(f"Attempting to recover filesystem on {device}")
        result = self._run(["ntfsfix", "-d", device])
        if result.ok:
            logger.info(f"Recovery of {device} completed")
            return True
        logger.error(f"Recovery of {device} failed: {result.output.strip()}")
        return False

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def status(self) -> List[MountEntry]:
        """Currently mounted NTFS volumes."""
        return self.probe.ntfs_mounts()

    def list_partitions(self) -> List[Tuple[BlockDevice, Optional[Path]]]:
        """NTFS partitions with their current mount point, if any."""
        return [
            (device, self.probe.mount_point_of(device.device))
            for device in self.probe.ntfs_devices()
        ]

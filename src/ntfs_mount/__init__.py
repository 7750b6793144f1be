"""
NTFS Mount Manager

Discovers NTFS partitions and mounts them for a desktop user, refusing
volumes that Windows left hibernated.
"""

from .devices import (
    BlockDevice,
    BlockDeviceProbe,
    MountEntry,
    parse_blkid_output,
    parse_proc_mounts,
)
from .mounter import (
    MountStatus,
    MountRecord,
    MountResult,
    NTFSMounter,
    TargetUser,
    mount_point_name,
)
from .fstab import FstabManager, build_fstab_entry

__all__ = [
    "BlockDevice",
    "BlockDeviceProbe",
    "MountEntry",
    "parse_blkid_output",
    "parse_proc_mounts",
    "MountStatus",
    "MountRecord",
    "MountResult",
    "NTFSMounter",
    "TargetUser",
    "mount_point_name",
    "FstabManager",
    "build_fstab_entry",
]

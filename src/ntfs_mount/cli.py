#!/usr/bin/env python3
"""
NTFS Mounter CLI

Mounts every NTFS partition (or one given device) for a desktop user.
"""

import argparse
import getpass
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from common.arguments import ToolboxArgumentParser
from common.commands import require_commands
from common.config import ToolboxConfig, load_config
from common.decorators import require_root
from common.exceptions import (
    HibernatedVolumeError, InvalidArgumentError, MountError, ToolboxError,
)
from common.logging_config import setup_logging
from .devices import BlockDeviceProbe
from .fstab import FstabManager
from .mounter import MountStatus, NTFSMounter, TargetUser

logger = logging.getLogger(__name__)

REQUIRED_COMMANDS = ["blkid", "mount", "umount", "ntfs-3g", "ntfsfix", "ntfsinfo"]

EPILOG = """
Examples:
  ntfs-mounter                          Mount all NTFS drives
  ntfs-mounter /dev/sdb1                Mount a specific NTFS drive
  ntfs-mounter -f                       Mount and add to fstab
  ntfs-mounter --user john              Mount for a specific user
  ntfs-mounter --unmount /dev/sdb1      Unmount a specific NTFS drive
  ntfs-mounter --verify /dev/sdb1       Check filesystem integrity
  ntfs-mounter --recover /dev/sdb1      Repair and clear the dirty flag
"""


def build_parser() -> argparse.ArgumentParser:
    parser = ToolboxArgumentParser(
        prog="ntfs-mounter",
        description="Mount NTFS drives with the right ownership and safety checks",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("device", nargs="?", help="Device to operate on (default: all NTFS)")
    parser.add_argument("-f", "--fstab", action="store_true",
                        help="Add mounted drives to /etc/fstab")
    parser.add_argument("--force", action="store_true",
                        help="Mount even if Windows left the drive hibernated")
    parser.add_argument("--user", help="User that will own the files")
    parser.add_argument("--mountdir", help="Base directory (default: /run/media/USER)")
    parser.add_argument("--unmount", nargs="?", const="", metavar="DEVICE",
                        help="Unmount NTFS drives")
    parser.add_argument("--status", action="store_true", help="Show mounted NTFS drives")
    parser.add_argument("--list", action="store_true", help="List NTFS partitions")
    parser.add_argument("--verify", nargs="?", const="", metavar="DEVICE",
                        help="Check filesystem integrity (no changes)")
    parser.add_argument("--recover", nargs="?", const="", metavar="DEVICE",
                        help="Repair the filesystem and clear the dirty flag")
    parser.add_argument("--debug", action="store_true", help="Verbose output")
    parser.add_argument("--config", type=Path, help="Configuration file")
    return parser


def resolve_user(requested: Optional[str]) -> TargetUser:
    """--user, else the sudo caller, else whoever is running."""
    name = requested or os.environ.get("SUDO_USER") or getpass.getuser()
    return TargetUser.lookup(name)


def init_log_file(path: Path, user: TargetUser) -> None:
    """Create the log file and hand it to the target user."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch(exist_ok=True)
    try:
        os.chown(path, user.uid, user.gid)
        os.chmod(path, 0o644)
    except OSError as e:
        logger.warning(f"Could not set ownership of {path}: {e}")


def cmd_status(mounter: NTFSMounter, args) -> int:
    mounts = mounter.status()
    if not mounts:
        print("No NTFS drives are mounted.")
        return 0

    print("Current NTFS mounts:\n")
    for entry in mounts:
        print(f"  {entry.device} on {entry.mount_point} type {entry.fstype} ({entry.options})")
    return 0


def cmd_list(mounter: NTFSMounter, args) -> int:
    partitions = mounter.list_partitions()
    if not partitions:
        print("No NTFS partitions found.")
        return 0

    print(f"{'DEVICE':<16} {'LABEL':<20} {'UUID':<20} MOUNTPOINT")
    for device, mount_point in partitions:
        print(f"{device.device:<16} {device.label or '-':<20} {device.uuid or '-':<20} "
              f"{mount_point or '-'}")
    return 0


def cmd_verify(mounter: NTFSMounter, args) -> int:
    if not args.verify:
        raise InvalidArgumentError("--verify", "", "please specify a device to verify")
    return 0 if mounter.verify(args.verify) else 1


def cmd_recover(mounter: NTFSMounter, args) -> int:
    if not args.recover:
        raise InvalidArgumentError("--recover", "", "please specify a device to recover")
    return 0 if mounter.recover(args.recover) else 1


def target_devices(mounter: NTFSMounter, device: Optional[str]) -> List[str]:
    if device:
        return [device]
    devices = [d.device for d in mounter.probe.ntfs_devices()]
    if not devices:
        raise MountError("No NTFS partitions found", code="NO_DEVICES")
    logger.info(f"Found {len(devices)} NTFS partition(s)")
    return devices


def cmd_unmount(mounter: NTFSMounter, args) -> int:
    failed = 0
    for device in target_devices(mounter, args.unmount or args.device):
        result = mounter.unmount(device)
        if not result.ok:
            failed += 1
    return 1 if failed else 0


def cmd_mount(mounter: NTFSMounter, args, fstab: Optional[FstabManager] = None) -> int:
    failed = 0
    for device in target_devices(mounter, args.device):
        result = mounter.mount(device, force=args.force)

        if result.status is MountStatus.HIBERNATED:
            logger.error(HibernatedVolumeError(device).message)
        if not result.ok:
            failed += 1
            continue

        if fstab is not None and result.status is MountStatus.MOUNTED:
            try:
                fstab.add(device, result.record.mount_point, mounter.user)
            except MountError as e:
                logger.error(e.message)
                failed += 1
    return 1 if failed else 0


@require_root
def run(args) -> int:
    config = load_config(args.config) if args.config else _load_default_config()
    mount_config = config.mount

    user = resolve_user(args.user)
    log_file = Path(mount_config.log_file)
    init_log_file(log_file, user)
    setup_logging(
        level=logging.DEBUG if args.debug else logging.INFO,
        log_file=log_file,
    )

    require_commands(REQUIRED_COMMANDS)

    base_dir = Path(args.mountdir or mount_config.base_dir or f"/run/media/{user.name}")
    probe = BlockDeviceProbe()
    mounter = NTFSMounter(
        base_dir,
        user,
        probe=probe,
        fuse_options=mount_config.mount_options,
        kernel_options=mount_config.kernel_mount_options,
    )

    if args.status:
        return cmd_status(mounter, args)
    if args.list:
        return cmd_list(mounter, args)
    if args.verify is not None:
        return cmd_verify(mounter, args)
    if args.recover is not None:
        return cmd_recover(mounter, args)
    if args.unmount is not None:
        return cmd_unmount(mounter, args)

    fstab = None
    if args.fstab:
        fstab = FstabManager(
            probe,
            mount_config.mount_options,
            fstab_path=Path(mount_config.fstab_path),
            backup_dir=Path(mount_config.backup_dir),
        )
    return cmd_mount(mounter, args, fstab)


def _load_default_config() -> ToolboxConfig:
    # Running under sudo, the caller's config lives in their home
    sudo_user = os.environ.get("SUDO_USER")
    if sudo_user and not os.environ.get("XDG_CONFIG_HOME"):
        return load_config(Path(os.path.expanduser(f"~{sudo_user}"))
                           / ".config" / "linux-toolbox" / "config.json")
    return load_config()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=logging.DEBUG if args.debug else logging.INFO)

    try:
        return run(args)
    except ToolboxError as e:
        logger.error(e.message)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Desktop Environment Manager CLI

Lists, identifies, backs up and checks desktop environments.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from common.arguments import ToolboxArgumentParser
from common.config import load_config
from common.exceptions import ToolboxError
from common.logging_config import setup_logging
from .inspector import DesktopInspector

logger = logging.getLogger(__name__)


def cmd_list(inspector: DesktopInspector, args) -> int:
    """List installed sessions."""
    print("Installed Desktop Environments:")
    sessions = inspector.list_sessions()
    if not sessions:
        print("  (none found)")
    for session in sessions:
        print(f"  → {session.name} ({session.file.name})")
    return 0


def cmd_current(inspector: DesktopInspector, args) -> int:
    """Show the current desktop."""
    print("Current Desktop Environment/Window Manager:")
    current = inspector.current_desktop()
    if current is None:
        return 1
    source, name = current
    print(f"  → {source}: {name}")
    return 0


def cmd_backup(inspector: DesktopInspector, args) -> int:
    report = inspector.backup_configs()
    print(f"Backup written to {report.destination} ({report.count} item(s))")
    return 1 if report.failed else 0


def cmd_info(inspector: DesktopInspector, args) -> int:
    """Show system information."""
    info = inspector.system_info()
    print("System Information:")
    print(f"  → OS: {info.os_name}")
    print(f"  → Kernel: {info.kernel}")
    print(f"  → Session Type: {info.session_type}")
    print(f"  → Display: {info.display or '-'}")
    print(f"  → OpenGL Vendor: {info.opengl_vendor or 'unknown'}")
    for gpu in info.gpus:
        driver = f"{gpu.driver_package} {gpu.driver_version}" if gpu.driver_installed \
            else f"{gpu.driver_package} not installed"
        print(f"  → GPU: {gpu.vendor.display_name} {gpu.device} ({driver})")
    return 0


def cmd_memory(inspector: DesktopInspector, args) -> int:
    """Show desktop memory usage."""
    total = inspector.memory_usage()
    if total is None:
        return 1
    print(f"Total Memory Usage: {total:.2f} MB")
    return 0


def cmd_check(inspector: DesktopInspector, args) -> int:
    """Check for common configuration issues."""
    report = inspector.check_issues()

    print("Checking Critical Processes:")
    for process, running in report.processes.items():
        mark = "✓" if running else "✗"
        print(f"  {mark} {process} is {'running' if running else 'not running'}")

    print("\nChecking Configuration Files:")
    for name, exists in report.config_files.items():
        mark = "✓" if exists else "✗"
        print(f"  {mark} {name} {'exists' if exists else 'is missing'}")

    print("\nChecking for Broken Symlinks in .config:")
    if not report.broken_symlinks:
        print("  ✓ none")
    for link in report.broken_symlinks:
        print(f"  ✗ Broken symlink found: {link}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = ToolboxArgumentParser(
        prog="de-manager",
        description="Desktop Environment Manager",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument("-l", "--list", dest="func", action="store_const", const=cmd_list,
                       help="List installed desktop environments and window managers")
    group.add_argument("-c", "--current", dest="func", action="store_const", const=cmd_current,
                       help="Show the running desktop environment/window manager")
    group.add_argument("-b", "--backup", dest="func", action="store_const", const=cmd_backup,
                       help="Back up configurations for all environments")
    group.add_argument("-i", "--info", dest="func", action="store_const", const=cmd_info,
                       help="Show system information about the current environment")
    group.add_argument("-m", "--memory", dest="func", action="store_const", const=cmd_memory,
                       help="Show memory usage of the current DE/WM")
    group.add_argument("-k", "--check", dest="func", action="store_const", const=cmd_check,
                       help="Check for common configuration issues")
    parser.add_argument("--config", type=Path, help="Configuration file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.func is None:
        parser.print_help()
        return 1

    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = load_config(args.config)
        inspector = DesktopInspector(config=config.desktop)
        return args.func(inspector, args)
    except ToolboxError as e:
        logger.error(e.message)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())

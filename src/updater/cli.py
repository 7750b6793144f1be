#!/usr/bin/env python3
"""
System Update CLI

Updates pacman, AUR, Flatpak and Snap packages with health checks,
configuration backup, cleanup and a reboot recommendation.
"""

import argparse
import logging
import platform
import socket
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from common.arguments import ToolboxArgumentParser
from common.commands import require_commands
from common.config import UpdaterConfig, load_config
from common.decorators import forbid_root
from common.exceptions import ToolboxError, UserAbort
from common.logging_config import setup_logging
from .checks import CheckLevel
from .pipeline import UpdatePipeline, UpdateReport, null_monitor

logger = logging.getLogger(__name__)

REQUIRED_COMMANDS = ["pacman", "sudo", "journalctl", "systemctl"]


def log_paths(log_dir: Path, now: Optional[datetime] = None):
    """Main and error log file names for this run."""
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return log_dir / f"update_log_{stamp}.log", log_dir / f"update_errors_{stamp}.log"


def apply_flags(config: UpdaterConfig, args) -> UpdaterConfig:
    """Command line flags override the config file."""
    if args.no_health:
        config.health_checks = False
    if args.no_cleanup:
        config.cleanup = False
    if args.no_backup:
        config.backup = False
    if args.no_diagnostics:
        config.diagnostics = False
    if args.log_dir:
        config.log_dir = str(args.log_dir)
    return config


def print_header() -> None:
    print("System-Wide Update Manager")
    print("=" * 40)
    print(f"• Kernel: {platform.release()}")
    print(f"• Architecture: {platform.machine()}")
    print(f"• Hostname: {socket.gethostname()}")


def print_summary(report: UpdateReport, main_log: Path, error_log: Path) -> None:
    """Display the final summary."""
    print("\nUpdate Summary:")
    print("=" * 40)
    for stage in report.stages:
        detail = f" ({stage.error_kind.value})" if stage.error_kind else ""
        print(f"• {stage.name}: {stage.outcome.value}{detail}")

    problems = [r for r in report.health + report.verification
                if r.level in (CheckLevel.WARNING, CheckLevel.ERROR)]
    if problems:
        print(f"\n{len(problems)} check(s) need attention:")
        for result in problems:
            print(f"  [{result.level.value}] {result.name}: {result.message}")

    if report.backup is not None:
        print(f"\n• Backup: {report.backup.destination} ({report.backup.count} item(s))")
    print(f"• Main Log: {main_log}")
    print(f"• Error Log: {error_log}")

    if report.reboot and report.reboot.recommended:
        print("\nSystem reboot is recommended to apply the following updates:")
        for reason in report.reboot.reasons():
            print(f"  • {reason}")
    else:
        print("\nNo reboot required")


def build_parser() -> argparse.ArgumentParser:
    parser = ToolboxArgumentParser(
        prog="update-all",
        description="Update all package sources with safety checks",
    )
    parser.add_argument("-y", "--yes", action="store_true",
                        help="Do not ask for confirmation")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--no-health", action="store_true",
                        help="Skip pre-update health checks")
    parser.add_argument("--no-cleanup", action="store_true",
                        help="Skip package cache, orphan and journal cleanup")
    parser.add_argument("--no-backup", action="store_true",
                        help="Skip configuration backup")
    parser.add_argument("--no-diagnostics", action="store_true",
                        help="Skip compositor diagnostics and the system report")
    parser.add_argument("--json-log", action="store_true",
                        help="Also write JSON-lines log entries")
    parser.add_argument("--log-dir", type=Path, help="Directory for log files (default: $HOME)")
    parser.add_argument("--config", type=Path, help="Configuration file")
    return parser


@forbid_root
def run(args) -> int:
    config = apply_flags(load_config(args.config).updater, args)

    log_dir = Path(config.log_dir).expanduser() if config.log_dir else Path.home()
    main_log, error_log = log_paths(log_dir)
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_file=main_log,
        error_log_file=error_log,
        json_log_file=Path(config.json_log).expanduser() if args.json_log else None,
    )

    require_commands(REQUIRED_COMMANDS)

    print_header()
    pipeline = UpdatePipeline(
        config,
        assume_yes=args.yes,
        monitor_factory=None if sys.stdout.isatty() else null_monitor,
    )
    report = pipeline.run()
    print_summary(report, main_log, error_log)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        return run(args)
    except UserAbort as e:
        logger.warning(e.message)
        return 1
    except ToolboxError as e:
        logger.error(e.message)
        return 1
    except KeyboardInterrupt:
        print("\nUpdate cancelled.")
        return 1


if __name__ == "__main__":
    sys.exit(main())

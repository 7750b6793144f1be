#!/usr/bin/env python3
"""
System Update Pipeline

Updates every package source in a fixed order:

1. Network probe (failure: NETWORK remediation, continue)
2. Confirmation prompt
3. Pre-update health checks
4. Disk space gate
5. Configuration backup
6. pacman (mandatory), AUR helper, Flatpak, Snap
7. Cleanup
8. Post-update verification
9. Reboot recommendation

A failed update command is classified, remediated once, and never
retried. Only the pacman stage is fatal.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, ContextManager, List, Optional, Sequence

import psutil

from common import commands
from common.backup import BackupReport, ConfigBackup, timestamped_dir
from common.commands import CommandResult
from common.config import UpdaterConfig
from common.exceptions import UpdateStageError, UserAbort
from common.logging_config import LogContext
from common.packages import Pacman
from common.providers import Provider, ProviderChain
from desktop_env.environment import EnvironmentInfo, detect_environment
from .checks import CheckResult
from .cleanup import CleanupResult, SystemCleaner
from .health import HealthChecker
from .monitor import ResourceMonitor
from .network import check_network
from .reboot import RebootSignals, compute_reboot_signals
from .remediation import ErrorKind, Remediator, classify_error
from .verifier import UpdateVerifier

logger = logging.getLogger(__name__)


class StageOutcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StageResult:
    """Outcome of one update stage."""
    name: str
    outcome: StageOutcome
    error_kind: Optional[ErrorKind] = None
    message: str = ""

    @property
    def failed(self) -> bool:
        return self.outcome is StageOutcome.FAILED


@dataclass
class UpdateReport:
    """Everything the pipeline did, for the summary."""
    started: datetime = field(default_factory=datetime.now)
    finished: Optional[datetime] = None
    network_ok: bool = True
    stages: List[StageResult] = field(default_factory=list)
    health: List[CheckResult] = field(default_factory=list)
    verification: List[CheckResult] = field(default_factory=list)
    cleanup: List[CleanupResult] = field(default_factory=list)
    backup: Optional[BackupReport] = None
    reboot: Optional[RebootSignals] = None

    @property
    def failed_stages(self) -> List[StageResult]:
        return [stage for stage in self.stages if stage.failed]

    def stage(self, name: str) -> Optional[StageResult]:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None


def ask_yes_no(prompt: str) -> bool:
    """Interactive y/N question; anything but y/yes is no."""
    try:
        answer = input(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def wait_for_enter(prompt: str) -> None:
    try:
        input(prompt)
    except EOFError:
        raise UserAbort("No terminal available for confirmation (use --yes)")


def root_disk_usage() -> float:
    return psutil.disk_usage("/").percent


class UpdatePipeline:
    """
    Runs the full update.

    Example:
        pipeline = UpdatePipeline(config.updater, assume_yes=True)
        report = pipeline.run()
        if report.reboot.recommended:
            print("Reboot recommended")

    Raises from run():
        UserAbort: the user declined to continue
        UpdateStageError: the mandatory pacman stage failed
    """

    def __init__(
        self,
        config: Optional[UpdaterConfig] = None,
        assume_yes: bool = False,
        runner: Optional[Callable[..., CommandResult]] = None,
        streamer: Optional[Callable[..., CommandResult]] = None,
        command_exists: Callable[[str], bool] = commands.command_exists,
        network_check: Optional[Callable[[], bool]] = None,
        monitor_factory: Optional[Callable[[], ContextManager]] = None,
        disk_usage: Callable[[], float] = root_disk_usage,
        confirm: Callable[[str], bool] = ask_yes_no,
        pause: Callable[[str], None] = wait_for_enter,
        environment: Optional[EnvironmentInfo] = None,
        remediator: Optional[Remediator] = None,
        home: Optional[Path] = None,
    ):
        self.config = config or UpdaterConfig()
        self.assume_yes = assume_yes
        self._run = runner or commands.run
        self._stream = streamer or commands.stream
        self._exists = command_exists
        self._network_check = network_check or (lambda: check_network(
            self.config.network_hosts, self.config.network_port, self.config.network_timeout,
        ))
        self._monitor_factory = monitor_factory or (
            lambda: ResourceMonitor(interval=self.config.monitor_interval)
        )
        self._disk_usage = disk_usage
        self._confirm = confirm
        self._pause = pause
        self._environment = environment
        self.remediator = remediator or Remediator(runner=self._run)
        self.pacman = Pacman(runner=self._run)
        self.home = Path(home) if home else Path.home()

    @property
    def environment(self) -> EnvironmentInfo:
        if self._environment is None:
            self._environment = detect_environment()
        return self._environment

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def run(self) -> UpdateReport:
        report = UpdateReport()
        logger.info("Starting system update process")

        with LogContext(component="network"):
            report.network_ok = self.check_network()

        if not self.assume_yes:
            self._pause("Reminder: consider backing up important data before proceeding.\n"
                        "Press Enter to continue or Ctrl+C to cancel...")

        if self.config.health_checks:
            with LogContext(component="health"):
                report.health = HealthChecker(
                    self.config, runner=self._run, command_exists=self._exists,
                ).run_all()

        self.check_disk_space()

        if self.config.backup:
            with LogContext(component="backup"):
                report.backup = self.backup_configs()

        self.update_packages(report)

        if self.config.cleanup:
            report.cleanup = SystemCleaner(
                runner=self._run,
                pacman=self.pacman,
                journal_retention=self.config.journal_retention,
            ).run_all()

        with LogContext(component="verify"):
            report.verification = UpdateVerifier(
                self.environment, runner=self._run, pacman=self.pacman,
            ).verify(diagnostics=self.config.diagnostics)
            if self.config.diagnostics:
                report.verification.extend(HealthChecker(
                    self.config, runner=self._run, command_exists=self._exists,
                ).system_report())

        report.reboot = compute_reboot_signals(
            self.pacman,
            self.environment,
            kernel_package=self.config.kernel_package,
            compositor_prefixes=self.config.compositor_prefixes,
            gpu_driver_prefixes=self.config.gpu_driver_prefixes,
        )
        report.finished = datetime.now()
        logger.info("Update process completed successfully")
        return report

    def check_network(self) -> bool:
        logger.info("Checking network connectivity...")
        if self._network_check():
            return True
        self.remediator.remediate(ErrorKind.NETWORK)
        return False

    def check_disk_space(self) -> None:
        usage = self._disk_usage()
        logger.info(f"Disk Usage: {usage:.0f}%")
        if usage <= self.config.disk_warning_percent:
            return

        logger.warning(f"Low disk space detected: {usage:.0f}%")
        if self.assume_yes:
            return
        if not self._confirm(f"Warning: Low disk space! ({usage:.0f}% used) Continue anyway? (y/N): "):
            raise UserAbort("Update cancelled because of low disk space")

    def backup_configs(self) -> BackupReport:
        logger.info("Backing up system configurations...")
        root = Path(self.config.backup_root).expanduser()
        destination = timestamped_dir(root, fmt="%Y%m%d_%H%M%S")
        report = ConfigBackup(destination, base=self.home).backup(self.config.backup_paths)
        logger.info(f"Backups completed: {destination}")
        return report

    # ------------------------------------------------------------------
    # Update stages
    # ------------------------------------------------------------------

    def run_stage(
        self,
        name: str,
        cmd: Sequence[str],
        mandatory: bool = False,
        sudo: bool = False,
    ) -> StageResult:
        """
        Run one update command under the resource monitor.

        On failure the output is classified and remediated once. A
        mandatory stage then raises UpdateStageError.
        """
        with LogContext(component=name):
            logger.info(f"Updating {name} packages...")
            with self._monitor_factory():
                result = self._stream(cmd, sudo=sudo)

            if result.ok:
                logger.info(f"{name} packages updated successfully")
                return StageResult(name, StageOutcome.SUCCEEDED)

            kind = classify_error(result.output)
            logger.error(f"{name} update failed ({kind.value} error, exit {result.returncode})")
            self.remediator.remediate(kind)

            if mandatory:
                raise UpdateStageError(name, kind.value)
            return StageResult(name, StageOutcome.FAILED, kind, f"exit {result.returncode}")

    def update_packages(self, report: UpdateReport) -> None:
        report.stages.append(
            self.run_stage("pacman", ["pacman", "-Syu", "--noconfirm"], mandatory=True, sudo=True)
        )
        report.stages.append(self.update_aur())
        report.stages.append(self.update_flatpak())
        report.stages.append(self.update_snap())

    def _aur_provider(self, helper: str) -> Provider:
        return Provider(
            name=helper,
            check=lambda: self._exists(helper),
            run=lambda: self.run_stage("aur", [helper, "-Sua", "--noconfirm"]),
        )

    def update_aur(self) -> StageResult:
        chain = ProviderChain("aur", [self._aur_provider(h) for h in self.config.aur_helpers])
        result = chain.run()
        if result is None:
            logger.info("No AUR helper installed, skipping AUR updates")
            return StageResult("aur", StageOutcome.SKIPPED, message="no AUR helper")
        return result

    def update_flatpak(self) -> StageResult:
        if not self._exists("flatpak"):
            return StageResult("flatpak", StageOutcome.SKIPPED, message="flatpak not installed")

        result = self.run_stage("flatpak", ["flatpak", "update", "-y"])
        if not result.failed:
            removed = self._run(["flatpak", "uninstall", "--unused", "-y"], timeout=600)
            if not removed.ok:
                logger.warning("Could not remove unused Flatpak runtimes")
        return result

    def update_snap(self) -> StageResult:
        if not self._exists("snap"):
            return StageResult("snap", StageOutcome.SKIPPED, message="snap not installed")
        return self.run_stage("snap", ["snap", "refresh"], sudo=True)


def null_monitor() -> ContextManager:
    """Monitor factory that displays nothing."""
    return contextlib.nullcontext()

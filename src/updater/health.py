#!/usr/bin/env python3
"""
Pre-update Health Checks

A survey of the machine before packages change: network interfaces,
storage, temperatures, services, audio, Flatpak, firewall, Bluetooth,
power management and logins. Every check returns a CheckResult and
none of them raises.
"""

from __future__ import annotations

import logging
import re
import socket
from pathlib import Path
from typing import Callable, Dict, List, Optional

import psutil

from common import commands
from common.commands import CommandResult
from common.config import UpdaterConfig
from common.decorators import timed
from common.providers import Provider, ProviderChain
from desktop_env.processes import is_running
from .checks import CheckLevel, CheckResult, run_checks

logger = logging.getLogger(__name__)

CPU_SENSOR_NAMES = ("coretemp", "k10temp", "zenpower", "cpu_thermal", "acpitz")
DISK_NAME = re.compile(r"^(sd|nvme)")
SMART_VERDICT = re.compile(r"overall-health|SMART Health Status")
VIRT_MODULES = ("kvm", "kvm_intel", "kvm_amd", "vboxdrv")
TIME_SYNC_SERVICES = ("systemd-timesyncd", "chronyd", "ntpd")
BACKUP_TOOLS = ("timeshift", "snapper")


def ok(name: str, message: str) -> CheckResult:
    return CheckResult(name, CheckLevel.OK, message)


def warning(name: str, message: str) -> CheckResult:
    return CheckResult(name, CheckLevel.WARNING, message)


def error(name: str, message: str) -> CheckResult:
    return CheckResult(name, CheckLevel.ERROR, message)


def skipped(name: str, message: str) -> CheckResult:
    return CheckResult(name, CheckLevel.SKIPPED, message)


def parse_unit_names(text: str) -> List[str]:
    """First column of `systemctl --failed --no-legend` output."""
    units = []
    for line in text.splitlines():
        parts = line.replace("●", " ").split()
        if parts:
            units.append(parts[0])
    return units


def max_cpu_temperature(sensors: Dict[str, list]) -> Optional[float]:
    """Highest reading from a known CPU sensor, if any."""
    readings = [
        entry.current
        for name, entries in sensors.items() if name in CPU_SENSOR_NAMES
        for entry in entries
        if entry.current is not None
    ]
    return max(readings) if readings else None


class HealthChecker:
    """
    Runs the pre-update survey.

    Example:
        results = HealthChecker(config.updater).run_all()
    """

    def __init__(
        self,
        config: Optional[UpdaterConfig] = None,
        runner: Optional[Callable[..., CommandResult]] = None,
        command_exists: Callable[[str], bool] = commands.command_exists,
        proc_root: Path = Path("/proc"),
        boot_root: Path = Path("/boot"),
    ):
        self.config = config or UpdaterConfig()
        self._run = runner or commands.run
        self._exists = command_exists
        self.proc_root = Path(proc_root)
        self.boot_root = Path(boot_root)

    # ------------------------------------------------------------------
    # Pre-update survey
    # ------------------------------------------------------------------

    @timed
    def run_all(self) -> List[CheckResult]:
        logger.info("Performing comprehensive system health check...")
        return run_checks([
            self.check_network_interfaces,
            self.check_storage,
            self.check_temperatures,
            self.check_user_services,
            self.check_audio,
            self.check_flatpak_runtime,
            self.check_firewall,
            self.check_bluetooth,
            self.check_power_management,
            self.check_failed_logins,
            self.check_remote_sessions,
        ])

    def check_network_interfaces(self) -> CheckResult:
        name = "network_interfaces"
        addresses = psutil.net_if_addrs()
        interfaces = {iface: addrs for iface, addrs in addresses.items() if iface != "lo"}
        if not interfaces:
            return error(name, "No network interfaces found")

        disconnected = [
            iface for iface, addrs in sorted(interfaces.items())
            if not any(addr.family == socket.AF_INET for addr in addrs)
        ]
        if disconnected:
            return warning(name, f"Disconnected: {', '.join(disconnected)}")
        return ok(name, f"{len(interfaces)} interface(s) connected")

    def check_storage(self) -> CheckResult:
        name = "storage"
        if not self._exists("smartctl"):
            return skipped(name, "smartctl not installed - skipping SMART checks")

        listing = self._run(["lsblk", "-d", "-n", "-o", "NAME"], timeout=10)
        drives = [line.strip() for line in listing.stdout.splitlines()
                  if DISK_NAME.match(line.strip())]
        if not drives:
            return skipped(name, "No SATA or NVMe drives found")

        failing = []
        unread = []
        for drive in drives:
            result = self._run(["smartctl", "-H", f"/dev/{drive}"], sudo=True)
            if "PASSED" in result.stdout or "Health Status: OK" in result.stdout:
                continue
            # Without a verdict the drive was never read
            if not SMART_VERDICT.search(result.stdout):
                unread.append(f"/dev/{drive}")
            else:
                failing.append(f"/dev/{drive}")

        if failing:
            return error(name, f"SMART check failed for {', '.join(failing)}")
        if unread:
            return warning(name, f"Could not read SMART status for {', '.join(unread)}")
        return ok(name, f"SMART status healthy on {len(drives)} drive(s)")

    def check_temperatures(self) -> CheckResult:
        name = "temperatures"
        threshold = self.config.temperature_warning
        readings = []
        high = []

        sensors_fn = getattr(psutil, "sensors_temperatures", None)
        cpu_temp = max_cpu_temperature(sensors_fn()) if sensors_fn else None
        if cpu_temp is not None:
            readings.append(f"CPU {cpu_temp:.0f}°C")
            if cpu_temp > threshold:
                high.append(f"CPU {cpu_temp:.0f}°C")

        if self._exists("nvidia-smi"):
            result = self._run(
                ["nvidia-smi", "--query-gpu=temperature.gpu", "--format=csv,noheader"],
                timeout=10,
            )
            lines = result.stdout.split()
            if result.ok and lines:
                gpu_temp = float(lines[0])
                readings.append(f"GPU {gpu_temp:.0f}°C")
                if gpu_temp > threshold:
                    high.append(f"GPU {gpu_temp:.0f}°C")

        if high:
            return warning(name, f"High temperature: {', '.join(high)}")
        if not readings:
            return skipped(name, "No temperature sensors available")
        return ok(name, ", ".join(readings))

    def check_user_services(self) -> CheckResult:
        name = "user_services"
        result = self._run(
            ["systemctl", "--user", "list-units", "--state=failed", "--no-legend"], timeout=10,
        )
        failed = parse_unit_names(result.stdout)
        if failed:
            return error(name, f"Failed user services: {', '.join(failed)}")
        return ok(name, "All user services are running normally")

    def check_audio(self) -> CheckResult:
        name = "audio"
        if not is_running("pipewire"):
            return error(name, "Audio system (PipeWire) is not running")
        if not self._run(["pactl", "info"], timeout=10).ok:
            return warning(name, "PipeWire is running but the PulseAudio interface is not responding")
        return ok(name, "PipeWire is running")

    def check_flatpak_runtime(self) -> CheckResult:
        name = "flatpak_runtime"
        if not self._exists("flatpak"):
            return skipped(name, "Flatpak not installed")
        result = self._run(["flatpak", "list", "--runtime"], timeout=30)
        if "org.freedesktop.Platform" in result.stdout:
            return ok(name, "Flatpak base runtime is installed")
        return warning(name, "Flatpak base runtime is not installed")

    def _ufw_active(self) -> bool:
        return "Status: active" in self._run(["ufw", "status"], sudo=True).stdout

    def _firewalld_active(self) -> bool:
        return "running" in self._run(["firewall-cmd", "--state"], sudo=True).stdout

    def check_firewall(self) -> CheckResult:
        name = "firewall"
        chain = ProviderChain("firewall", [
            Provider("ufw", lambda: self._exists("ufw"), self._ufw_active),
            Provider("firewall-cmd", lambda: self._exists("firewall-cmd"), self._firewalld_active),
        ])
        provider = chain.first_available()
        if provider is None:
            return skipped(name, "No firewall tool installed")
        if provider.run():
            return ok(name, f"{provider.name} firewall is active")
        return warning(name, f"{provider.name} firewall is inactive")

    def check_bluetooth(self) -> CheckResult:
        name = "bluetooth"
        if not self._run(["systemctl", "is-active", "bluetooth"], timeout=10).ok:
            return warning(name, "Bluetooth service is not running")
        if "Powered: yes" in self._run(["bluetoothctl", "show"], timeout=10).stdout:
            return ok(name, "Bluetooth adapter is powered on")
        return ok(name, "Bluetooth service is active, adapter is powered off")

    def check_power_management(self) -> CheckResult:
        name = "power_management"
        if not self._exists("tlp"):
            return warning(name, "TLP is not installed")
        if self._run(["systemctl", "is-active", "tlp"], timeout=10).ok:
            return ok(name, "TLP power management is active")
        return warning(name, "TLP is installed but not active")

    def check_failed_logins(self) -> CheckResult:
        name = "failed_logins"
        result = self._run(["journalctl", "-u", "systemd-logind", "-b", "--no-pager"], timeout=30)
        count = result.stdout.count("Failed password")
        if count:
            return warning(name, f"Detected {count} failed login attempt(s)")
        return ok(name, "No failed login attempts")

    def check_remote_sessions(self) -> CheckResult:
        name = "remote_sessions"
        remote = [user for user in psutil.users() if (user.terminal or "").startswith("pts")]
        if remote:
            hosts = ", ".join(sorted({user.host or "local" for user in remote}))
            return warning(name, f"{len(remote)} active remote session(s) from {hosts}")
        return ok(name, "No active remote sessions")

    # ------------------------------------------------------------------
    # System report
    # ------------------------------------------------------------------

    def system_report(self) -> List[CheckResult]:
        """Informational extras shown after the update."""
        return run_checks([
            self.check_bootloader,
            self.check_virtualization,
            self.check_time_sync,
            self.check_swap,
            self.check_backup_tools,
        ])

    def check_bootloader(self) -> CheckResult:
        name = "bootloader"
        if (self.boot_root / "grub").is_dir():
            if (self.boot_root / "grub" / "grub.cfg").is_file():
                return ok(name, "GRUB detected, config present")
            return warning(name, "GRUB detected but grub.cfg is missing")
        if (self.boot_root / "loader").is_dir():
            return ok(name, "systemd-boot detected")
        return skipped(name, "No known bootloader found")

    def check_virtualization(self) -> CheckResult:
        name = "virtualization"
        cpuinfo = (self.proc_root / "cpuinfo").read_text()
        flags = set()
        for line in cpuinfo.splitlines():
            if line.startswith("flags"):
                flags.update(line.split(":", 1)[1].split())
        if not flags & {"vmx", "svm"}:
            return warning(name, "CPU virtualization support: No")

        modules_file = self.proc_root / "modules"
        loaded = []
        if modules_file.exists():
            module_names = {line.split()[0] for line in modules_file.read_text().splitlines()
                            if line.strip()}
            loaded = [module for module in VIRT_MODULES if module in module_names]
        suffix = f", modules loaded: {', '.join(loaded)}" if loaded else ""
        return ok(name, f"CPU virtualization support: Yes{suffix}")

    def check_time_sync(self) -> CheckResult:
        name = "time_sync"
        for service in TIME_SYNC_SERVICES:
            if self._run(["systemctl", "is-active", service], timeout=10).ok:
                return ok(name, f"{service} is active and running")
        return warning(name, "No time synchronization service is active")

    def check_swap(self) -> CheckResult:
        name = "swap"
        swaps_file = self.proc_root / "swaps"
        zram = swaps_file.exists() and "zram" in swaps_file.read_text()
        swap = psutil.swap_memory()
        if not swap.total:
            return warning(name, "No swap configured")
        kind = "ZRAM" if zram else "Swap"
        return ok(name, f"{kind} active, {swap.percent:.0f}% of "
                        f"{swap.total / (1024 ** 3):.1f} GiB used")

    def check_backup_tools(self) -> CheckResult:
        name = "backup_tools"
        installed = [tool for tool in BACKUP_TOOLS if self._exists(tool)]
        if installed:
            return ok(name, f"Installed: {', '.join(installed)}")
        return warning(name, "No system snapshot tool installed")

#!/usr/bin/env python3
"""
GPU Detection

Finds display controllers with `lspci -nn` and checks that the matching
driver package is installed.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from common import commands
from common.commands import CommandResult
from common.packages import Pacman

logger = logging.getLogger(__name__)


class GPUVendor(Enum):
    """GPU vendors the toolbox knows driver packages for."""
    NVIDIA = "nvidia"
    AMD = "amd"
    INTEL = "intel"

    @property
    def display_name(self) -> str:
        return {"nvidia": "NVIDIA", "amd": "AMD", "intel": "Intel"}[self.value]

    @property
    def driver_package(self) -> str:
        return "nvidia" if self is GPUVendor.NVIDIA else "mesa"


# PCI vendor ids
VENDOR_IDS = {
    "10de": GPUVendor.NVIDIA,
    "1002": GPUVendor.AMD,
    "1022": GPUVendor.AMD,
    "8086": GPUVendor.INTEL,
}

# PCI classes: 0300 VGA, 0302 3D controller, 0380 other display controller
DISPLAY_CLASSES = ("0300", "0302", "0380")

# "01:00.0 VGA compatible controller [0300]: NVIDIA Corporation GA104 [GeForce RTX 3070] [10de:2484] (rev a1)"
_LSPCI_LINE = re.compile(
    r"^(?P<slot>\S+)\s+.*?\[(?P<cls>[0-9a-fA-F]{4})\]:\s+"
    r"(?P<name>.*)\s+\[(?P<vendor>[0-9a-fA-F]{4}):(?P<device>[0-9a-fA-F]{4})\]"
)


@dataclass
class PCIDisplayDevice:
    """A display controller line from lspci."""
    slot: str
    device_class: str
    name: str
    vendor_id: str
    device_id: str

    @property
    def vendor(self) -> Optional[GPUVendor]:
        return VENDOR_IDS.get(self.vendor_id)


@dataclass
class GPUStatus:
    """A detected GPU and the state of its driver package."""
    vendor: GPUVendor
    device: str
    driver_package: str
    driver_version: Optional[str] = None

    @property
    def driver_installed(self) -> bool:
        return self.driver_version is not None


def parse_lspci(text: str) -> List[PCIDisplayDevice]:
    """Parse `lspci -nn` output, keeping display controllers only."""
    devices = []
    for line in text.splitlines():
        match = _LSPCI_LINE.match(line.strip())
        if not match or match.group("cls") not in DISPLAY_CLASSES:
            continue
        devices.append(PCIDisplayDevice(
            slot=match.group("slot"),
            device_class=match.group("cls"),
            name=match.group("name").strip(),
            vendor_id=match.group("vendor").lower(),
            device_id=match.group("device").lower(),
        ))
    return devices


class GPUScanner:
    """Scans PCI display controllers and their driver packages."""

    def __init__(
        self,
        runner: Optional[Callable[..., CommandResult]] = None,
        pacman: Optional[Pacman] = None,
    ):
        self._run = runner or commands.run
        self.pacman = pacman or Pacman(runner=self._run)

    def display_devices(self) -> List[PCIDisplayDevice]:
        result = self._run(["lspci", "-nn"], timeout=10)
        if not result.ok:
            logger.warning("lspci is not available, cannot detect GPUs")
            return []
        return parse_lspci(result.stdout)

    def scan(self) -> List[GPUStatus]:
        """Detected GPUs of known vendors, with driver package versions."""
        gpus = []
        for device in self.display_devices():
            vendor = device.vendor
            if vendor is None:
                logger.warning(f"Unknown GPU vendor {device.vendor_id} at {device.slot}")
                continue

            package = vendor.driver_package
            version = self.pacman.installed_version(package)
            if version is None:
                logger.warning(f"{vendor.display_name} GPU detected but {package} "
                               f"drivers are not installed")
            gpus.append(GPUStatus(
                vendor=vendor,
                device=device.name,
                driver_package=package,
                driver_version=version,
            ))
        return gpus

    def has_vendor(self, vendor: GPUVendor) -> bool:
        return any(device.vendor is vendor for device in self.display_devices())


def detect_gpus(runner: Optional[Callable[..., CommandResult]] = None) -> List[GPUStatus]:
    """Convenience wrapper around GPUScanner.scan()."""
    return GPUScanner(runner=runner).scan()

"""
Process table queries backed by psutil.

Matching follows `pgrep -x`: the process name must equal the pattern.
The kernel truncates names to 15 characters, so either side may be
compared in its truncated form.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Set

import psutil

logger = logging.getLogger(__name__)

COMM_LENGTH = 15


@dataclass
class ProcessStats:
    """Resource usage summed over every process with one name."""
    name: str
    count: int = 0
    memory_percent: float = 0.0
    rss_bytes: int = 0

    @property
    def running(self) -> bool:
        return self.count > 0

    @property
    def rss_mb(self) -> float:
        return self.rss_bytes / (1024 * 1024)


def names_match(actual: str, wanted: str) -> bool:
    """Exact name match, tolerant of kernel name truncation."""
    if actual == wanted:
        return True
    return actual[:COMM_LENGTH] == wanted[:COMM_LENGTH]


def running_process_names() -> Set[str]:
    """Names of every process in the table."""
    names = set()
    for proc in psutil.process_iter(["name"]):
        name = proc.info.get("name")
        if name:
            names.add(name)
    return names


def is_running(name: str, process_names: Optional[Iterable[str]] = None) -> bool:
    """True if a process with this exact name exists."""
    if process_names is None:
        process_names = running_process_names()
    return any(names_match(actual, name) for actual in process_names)


def process_stats(name: str) -> ProcessStats:
    """Count, memory share and RSS of all processes called name."""
    stats = ProcessStats(name=name)
    for proc in psutil.process_iter(["name", "memory_info", "memory_percent"]):
        if not names_match(proc.info.get("name") or "", name):
            continue
        stats.count += 1
        # Attributes psutil could not read come back as None
        memory = proc.info.get("memory_info")
        if memory is not None:
            stats.rss_bytes += memory.rss
        stats.memory_percent += proc.info.get("memory_percent") or 0.0
    return stats


def rss_matching(pattern: str) -> float:
    """
    Total resident memory in MB of processes whose name or command line
    matches the regular expression pattern.
    """
    regex = re.compile(pattern)
    total = 0
    for proc in psutil.process_iter(["name", "cmdline", "memory_info"]):
        name = proc.info.get("name") or ""
        cmdline = " ".join(proc.info.get("cmdline") or [])
        if not (regex.search(name) or regex.search(cmdline)):
            continue
        memory = proc.info.get("memory_info")
        if memory is not None:
            total += memory.rss
    return total / (1024 * 1024)

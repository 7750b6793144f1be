"""
Live resource monitor.

While a long update command runs, a daemon thread samples CPU, memory
and root filesystem usage and rewrites a single terminal line.
"""

from __future__ import annotations

import logging
import sys
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, TextIO

import psutil

logger = logging.getLogger(__name__)

LINE_WIDTH = 80


@dataclass
class ResourceSample:
    cpu_percent: float
    memory_percent: float
    disk_percent: float

    def format(self) -> str:
        return (f"CPU: {self.cpu_percent:5.1f}% RAM: {self.memory_percent:5.1f}% "
                f"Disk: {self.disk_percent:.0f}%")


def sample_resources(path: str = "/") -> ResourceSample:
    return ResourceSample(
        cpu_percent=psutil.cpu_percent(interval=None),
        memory_percent=psutil.virtual_memory().percent,
        disk_percent=psutil.disk_usage(path).percent,
    )


class ResourceMonitor:
    """
    Background resource display, used as a context manager.

    Example:
        with ResourceMonitor(interval=1.0):
            stream(["pacman", "-Syu", "--noconfirm"], sudo=True)

    Leaving the block always stops and joins the thread, even when the
    command inside raised.
    """

    def __init__(
        self,
        interval: float = 1.0,
        output: Optional[TextIO] = None,
        sampler: Callable[[], ResourceSample] = sample_resources,
    ):
        self.interval = interval
        self.output = output or sys.stdout
        self._sampler = sampler
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.samples: List[ResourceSample] = []

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="resource-monitor", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=max(self.interval * 2, 1.0))
            self._thread = None
        self._clear_line()

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                sample = self._sampler()
            except (psutil.Error, OSError) as e:
                logger.debug(f"Resource sampling failed: {e}")
            else:
                self.samples.append(sample)
                self._write(f"\r{sample.format()}")
            self._stop.wait(self.interval)

    def _write(self, text: str) -> None:
        try:
            self.output.write(text)
            self.output.flush()
        except (OSError, ValueError) as e:
            logger.debug(f"Monitor output unavailable: {e}")

    def _clear_line(self) -> None:
        self._write("\r" + " " * LINE_WIDTH + "\r")

    def __enter__(self) -> "ResourceMonitor":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()

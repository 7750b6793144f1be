"""
Cursor zoom control for the Hyprland compositor.

The zoom factor lives in the compositor option cursor:zoom_factor and is
always kept within [MIN_ZOOM, MAX_ZOOM].
"""

from __future__ import annotations

import json
import logging
from typing import Callable, Optional

from common import commands
from common.commands import CommandResult
from common.exceptions import CommandError, ParseError

logger = logging.getLogger(__name__)

MIN_ZOOM = 1.0
MAX_ZOOM = 3.0
DEFAULT_OPTION = "cursor:zoom_factor"


def clamp_zoom(value: float) -> float:
    """Clamp a zoom factor to [1.0, 3.0]."""
    return max(MIN_ZOOM, min(MAX_ZOOM, float(value)))


def parse_option_float(output: str) -> float:
    """
    Read the float value from `hyprctl getoption -j` output.

    Raises:
        ParseError: if the output is not JSON or has no numeric "float".
    """
    try:
        data = json.loads(output)
    except json.JSONDecodeError as e:
        raise ParseError("hyprctl getoption", f"invalid JSON: {e}")

    value = data.get("float") if isinstance(data, dict) else None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParseError("hyprctl getoption", "no numeric 'float' field")
    return float(value)


class HyprctlZoom:
    """Reads and writes the zoom option through hyprctl."""

    def __init__(
        self,
        option: str = DEFAULT_OPTION,
        runner: Optional[Callable[..., CommandResult]] = None,
    ):
        self.option = option
        self._run = runner or commands.run

    def get(self) -> float:
        result = self._run(["hyprctl", "getoption", "-j", self.option], timeout=5)
        if not result.ok:
            raise CommandError(result.args, result.returncode, result.output)
        return parse_option_float(result.stdout)

    def set(self, value: float) -> None:
        result = self._run(["hyprctl", "keyword", self.option, f"{value}"], timeout=5)
        if not result.ok:
            raise CommandError(result.args, result.returncode, result.output)


class ZoomController:
    """
    Zoom operations over a getter/setter pair.

    Every value written goes through clamp_zoom.
    """

    def __init__(self, getter: Callable[[], float], setter: Callable[[float], None]):
        self._get = getter
        self._set = setter

    @classmethod
    def for_hyprland(cls, option: str = DEFAULT_OPTION,
                     runner: Optional[Callable[..., CommandResult]] = None) -> "ZoomController":
        backend = HyprctlZoom(option=option, runner=runner)
        return cls(backend.get, backend.set)

    def current(self) -> float:
        return self._get()

    def set(self, value: float) -> float:
        """Write a clamped zoom factor and return it."""
        target = round(clamp_zoom(value), 6)
        self._set(target)
        logger.debug(f"Cursor zoom set to {target}")
        return target

    def reset(self) -> float:
        return self.set(MIN_ZOOM)

    def increase(self, step: float) -> float:
        return self.set(self.current() + step)

    def decrease(self, step: float) -> float:
        return self.set(self.current() - step)

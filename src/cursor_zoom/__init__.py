"""Cursor zoom adjuster for Hyprland."""

from .zoom import (
    MIN_ZOOM,
    MAX_ZOOM,
    ZoomController,
    HyprctlZoom,
    clamp_zoom,
    parse_option_float,
)

__all__ = [
    "MIN_ZOOM",
    "MAX_ZOOM",
    "ZoomController",
    "HyprctlZoom",
    "clamp_zoom",
    "parse_option_float",
]

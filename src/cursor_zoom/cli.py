#!/usr/bin/env python3
"""
Cursor Zoom CLI

Usage: cursor-zoom {reset|increase STEP|decrease STEP|set VALUE|get}
"""

import argparse
import logging
import math
import sys
from pathlib import Path
from typing import List, Optional

from common.arguments import ToolboxArgumentParser
from common.commands import require_commands
from common.config import load_config
from common.exceptions import InvalidArgumentError, ToolboxError
from common.logging_config import setup_logging
from .zoom import ZoomController

logger = logging.getLogger(__name__)

USAGE = "cursor-zoom {reset|increase STEP|decrease STEP|set VALUE|get}"


def parse_number(name: str, value: Optional[str]) -> float:
    """Parse a STEP/VALUE argument; missing or non-numeric is an error."""
    if value is None:
        raise InvalidArgumentError(name, "", "a number is required")
    try:
        number = float(value)
    except ValueError:
        raise InvalidArgumentError(name, value, "not a number")
    if not math.isfinite(number):
        raise InvalidArgumentError(name, value, "not a finite number")
    return number


def cmd_reset(controller: ZoomController, args) -> int:
    print(controller.reset())
    return 0


def cmd_increase(controller: ZoomController, args) -> int:
    print(controller.increase(parse_number("STEP", args.value)))
    return 0


def cmd_decrease(controller: ZoomController, args) -> int:
    print(controller.decrease(parse_number("STEP", args.value)))
    return 0


def cmd_set(controller: ZoomController, args) -> int:
    print(controller.set(parse_number("VALUE", args.value)))
    return 0


def cmd_get(controller: ZoomController, args) -> int:
    print(controller.current())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = ToolboxArgumentParser(
        prog="cursor-zoom",
        usage=USAGE,
        description="Adjust the Hyprland cursor zoom factor (1.0 to 3.0)",
    )
    parser.add_argument("--config", type=Path, help="Configuration file")
    subparsers = parser.add_subparsers(dest="command")

    reset_parser = subparsers.add_parser("reset", help="Reset zoom to 1.0")
    reset_parser.set_defaults(func=cmd_reset, value=None)

    increase_parser = subparsers.add_parser("increase", help="Zoom in by STEP")
    increase_parser.add_argument("value", nargs="?", metavar="STEP")
    increase_parser.set_defaults(func=cmd_increase)

    decrease_parser = subparsers.add_parser("decrease", help="Zoom out by STEP")
    decrease_parser.add_argument("value", nargs="?", metavar="STEP")
    decrease_parser.set_defaults(func=cmd_decrease)

    set_parser = subparsers.add_parser("set", help="Set zoom to VALUE")
    set_parser.add_argument("value", nargs="?", metavar="VALUE")
    set_parser.set_defaults(func=cmd_set)

    get_parser = subparsers.add_parser("get", help="Print the current zoom")
    get_parser.set_defaults(func=cmd_get, value=None)

    return parser


def main(argv: Optional[List[str]] = None, controller: Optional[ZoomController] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        print(f"Usage: {USAGE}")
        return 1

    setup_logging(level=logging.WARNING)

    try:
        if controller is None:
            require_commands(["hyprctl"])
            config = load_config(args.config)
            controller = ZoomController.for_hyprland(option=config.zoom.option)
        return args.func(controller, args)
    except InvalidArgumentError as e:
        print(f"Usage: {USAGE}")
        logger.error(e.message)
        return 1
    except ToolboxError as e:
        logger.error(e.message)
        return 1


if __name__ == "__main__":
    sys.exit(main())

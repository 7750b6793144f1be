"""
Check results shared by the health checks and post-update verification.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List

import psutil

from common.exceptions import ToolboxError

logger = logging.getLogger(__name__)


class CheckLevel(Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass
class CheckResult:
    """Outcome of one check."""
    name: str
    level: CheckLevel
    message: str

    @property
    def ok(self) -> bool:
        return self.level in (CheckLevel.OK, CheckLevel.SKIPPED)


def log_result(result: CheckResult) -> None:
    if result.level is CheckLevel.ERROR:
        logger.error(f"{result.name}: {result.message}")
    elif result.level is CheckLevel.WARNING:
        logger.warning(f"{result.name}: {result.message}")
    else:
        logger.info(f"{result.name}: {result.message}")


def run_check(name: str, check: Callable[[], CheckResult]) -> CheckResult:
    """Run a check; a failure inside it becomes an ERROR result."""
    try:
        result = check()
    except (ToolboxError, OSError, subprocess.SubprocessError, psutil.Error, ValueError) as e:
        result = CheckResult(name, CheckLevel.ERROR, f"check failed: {e}")
    log_result(result)
    return result


def run_checks(checks: List[Callable[[], CheckResult]]) -> List[CheckResult]:
    """Run every check, each isolated from the others."""
    return [run_check(check_name(check), check) for check in checks]


def check_name(check: Callable) -> str:
    """check_audio -> audio"""
    name = getattr(check, "__name__", "check")
    return name[len("check_"):] if name.startswith("check_") else name

"""
External command helpers.

Every tool in the toolbox is a thin layer over system binaries. These
helpers run them, capture their output and turn "binary not installed"
and "timed out" into ordinary results instead of exceptions.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .exceptions import DependencyError

logger = logging.getLogger(__name__)

NOT_FOUND = 127
TIMED_OUT = 124


@dataclass
class CommandResult:
    """Outcome of an external command."""
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr joined, for error classification."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


def _with_sudo(cmd: Sequence[str], sudo: bool) -> List[str]:
    args = [str(c) for c in cmd]
    if sudo:
        args = ["sudo"] + args
    return args


def run(
    cmd: Sequence[str],
    timeout: Optional[float] = None,
    sudo: bool = False,
) -> CommandResult:
    """
    Run a command and capture its output.

    Args:
        cmd: Command and arguments
        timeout: Seconds before the command is killed
        sudo: Prefix the command with sudo

    Returns:
        CommandResult; returncode is 127 when the binary is missing
        and 124 when the timeout expired.
    """
    args = _with_sudo(cmd, sudo)
    logger.debug(f"Running: {' '.join(args)}")

    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        return CommandResult(args, NOT_FOUND, "", f"{args[0]}: command not found")
    except subprocess.TimeoutExpired:
        logger.warning(f"Command timed out after {timeout}s: {' '.join(args)}")
        return CommandResult(args, TIMED_OUT, "", "timed out")

    return CommandResult(args, result.returncode, result.stdout or "", result.stderr or "")


def stream(cmd: Sequence[str], sudo: bool = False) -> CommandResult:
    """
    Run a long command, echoing its output while collecting it.

    stderr is merged into stdout so the caller can classify failures
    from the combined text.
    """
    args = _with_sudo(cmd, sudo)
    logger.debug(f"Streaming: {' '.join(args)}")

    collected = []
    try:
        proc = subprocess.Popen(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except FileNotFoundError:
        return CommandResult(args, NOT_FOUND, "", f"{args[0]}: command not found")

    with proc:
        for line in proc.stdout:
            collected.append(line)
            sys.stdout.write(line)
            sys.stdout.flush()
        returncode = proc.wait()

    return CommandResult(args, returncode, "".join(collected), "")


def command_exists(name: str) -> bool:
    """Check whether a binary is on PATH."""
    return shutil.which(name) is not None


def missing_commands(names: Iterable[str]) -> List[str]:
    """Return the binaries from names that are not installed."""
    return [name for name in names if not command_exists(name)]


def require_commands(names: Iterable[str]) -> None:
    """
    Raise DependencyError listing every missing binary.

    All names are checked before raising so the user sees the full list.
    """
    missing = missing_commands(names)
    if missing:
        raise DependencyError(missing)

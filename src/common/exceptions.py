"""
Toolbox Exception Hierarchy

Provides clear, actionable error messages with structured information
for logging, user feedback, and programmatic error handling.
"""

from typing import Optional, Dict, Any, List, Sequence


class ToolboxError(Exception):
    """
    Base exception for all toolbox errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context as key-value pairs
        cause: Original exception that caused this error
        recoverable: Whether the error is recoverable
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.recoverable = recoverable

    def __str__(self):
        s = f"[{self.code}] {self.message}"
        if self.details:
            s += f" (details: {self.details})"
        if self.cause:
            s += f" caused by: {self.cause}"
        return s

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Environment errors
# =============================================================================

class PrivilegeError(ToolboxError):
    """Tool was started with the wrong privileges."""
    def __init__(self, message: str = "This command must be run with sudo privileges"):
        super().__init__(
            message,
            code="PRIVILEGE_ERROR",
            recoverable=False,
        )


class DependencyError(ToolboxError):
    """One or more required external tools are missing."""
    def __init__(self, missing: Sequence[str]):
        self.missing: List[str] = list(missing)
        super().__init__(
            f"Missing required dependencies: {' '.join(self.missing)}",
            code="MISSING_DEPENDENCY",
            details={"missing": self.missing},
            recoverable=False,
        )


class UserAbort(ToolboxError):
    """User declined to continue."""
    def __init__(self, reason: str = "Cancelled by user"):
        super().__init__(reason, code="USER_ABORT", recoverable=False)


class InvalidArgumentError(ToolboxError):
    """Bad command line argument."""
    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"Invalid argument {field}={value!r}: {reason}",
            code="INVALID_ARGUMENT",
            details={"field": field, "value": str(value), "reason": reason},
        )


# =============================================================================
# External command errors
# =============================================================================

class CommandError(ToolboxError):
    """External command exited with a failure status."""
    def __init__(self, cmd: Sequence[str], returncode: int, output: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"Command failed ({returncode}): {' '.join(self.cmd)}",
            code="COMMAND_FAILED",
            details={"returncode": returncode},
        )


class ParseError(ToolboxError):
    """Output of an external tool could not be parsed."""
    def __init__(self, tool: str, reason: str):
        super().__init__(
            f"Could not parse {tool} output: {reason}",
            code="PARSE_ERROR",
            details={"tool": tool, "reason": reason},
        )


# =============================================================================
# Mount errors
# =============================================================================

class MountError(ToolboxError):
    """Base for mount-related errors."""
    pass


class HibernatedVolumeError(MountError):
    """NTFS volume carries the Windows hibernation / fast startup flag."""
    def __init__(self, device: str):
        super().__init__(
            f"Windows hibernation detected on {device}, refusing read-write mount",
            code="VOLUME_HIBERNATED",
            details={
                "device": device,
                "hint": "Disable Fast Startup in Windows or use --force",
            },
        )


# =============================================================================
# Update errors
# =============================================================================

class UpdateStageError(ToolboxError):
    """A mandatory update stage failed."""
    def __init__(self, stage: str, kind: str, cause: Optional[Exception] = None):
        super().__init__(
            f"Update stage '{stage}' failed ({kind})",
            code="UPDATE_STAGE_FAILED",
            details={"stage": stage, "kind": kind},
            cause=cause,
            recoverable=False,
        )


# =============================================================================
# Configuration errors
# =============================================================================

class ConfigError(ToolboxError):
    """Base for configuration errors."""
    pass


class InvalidConfigError(ConfigError):
    """Invalid configuration."""
    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration: {field}={value}: {reason}",
            code="INVALID_CONFIG",
            details={"field": field, "value": str(value), "reason": reason},
        )

"""Desktop Environment Module.

Provides:
- Session type and desktop detection
- GPU and driver package detection
- Installed session listing
- Configuration backup and issue checks
"""

from .environment import (
    SessionType,
    EnvironmentInfo,
    DESKTOP_PRIORITY,
    detect_environment,
    detect_session_type,
)
from .gpu import GPUScanner, GPUStatus, GPUVendor, detect_gpus, parse_lspci
from .sessions import SessionEntry, list_sessions
from .inspector import DesktopInspector, IssueReport, SystemInfo

__all__ = [
    # Environment
    "SessionType",
    "EnvironmentInfo",
    "DESKTOP_PRIORITY",
    "detect_environment",
    "detect_session_type",
    # GPU
    "GPUScanner",
    "GPUStatus",
    "GPUVendor",
    "detect_gpus",
    "parse_lspci",
    # Sessions
    "SessionEntry",
    "list_sessions",
    # Inspector
    "DesktopInspector",
    "IssueReport",
    "SystemInfo",
]

"""
System Update Orchestrator

Updates every package source with safety rails:
- Network probe and pre-update health checks
- Configuration backup before packages change
- Error classification with a single remediation per failure
- Cleanup, post-update verification and a reboot recommendation
"""

from .remediation import ErrorKind, Remediator, classify_error
from .checks import CheckLevel, CheckResult
from .monitor import ResourceMonitor
from .network import check_network
from .reboot import RebootSignals, compute_reboot_signals, reboot_recommended
from .pipeline import (
    StageOutcome,
    StageResult,
    UpdatePipeline,
    UpdateReport,
)

__all__ = [
    "ErrorKind",
    "Remediator",
    "classify_error",
    "CheckLevel",
    "CheckResult",
    "ResourceMonitor",
    "check_network",
    "RebootSignals",
    "compute_reboot_signals",
    "reboot_recommended",
    "StageOutcome",
    "StageResult",
    "UpdatePipeline",
    "UpdateReport",
]

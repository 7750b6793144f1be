"""
Toolbox Common Utilities

Shared plumbing for the toolbox commands.
"""

from .exceptions import (
    ToolboxError, PrivilegeError, DependencyError, UserAbort,
    InvalidArgumentError, CommandError, ParseError, MountError,
    HibernatedVolumeError, UpdateStageError, ConfigError, InvalidConfigError,
)
from .decorators import require_root, forbid_root, is_root, timed
from .logging_config import setup_logging, LogContext
from .commands import (
    CommandResult, run, stream, command_exists, missing_commands, require_commands,
)
from .providers import Provider, ProviderChain, binary_provider
from .packages import Pacman
from .backup import ConfigBackup, BackupReport
from .config import ToolboxConfig, load_config

__all__ = [
    # Exceptions
    "ToolboxError", "PrivilegeError", "DependencyError", "UserAbort",
    "InvalidArgumentError", "CommandError", "ParseError", "MountError",
    "HibernatedVolumeError", "UpdateStageError", "ConfigError", "InvalidConfigError",
    # Decorators
    "require_root", "forbid_root", "is_root", "timed",
    # Logging
    "setup_logging", "LogContext",
    # Commands
    "CommandResult", "run", "stream", "command_exists", "missing_commands",
    "require_commands",
    # Providers
    "Provider", "ProviderChain", "binary_provider",
    # Packages
    "Pacman",
    # Backup
    "ConfigBackup", "BackupReport",
    # Config
    "ToolboxConfig", "load_config",
]

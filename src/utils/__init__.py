"""
Toolbox Utility Modules

File operations for editing system tables safely.
"""

from .atomic_write import (
    atomic_write_text,
    atomic_append_line,
    timestamped_backup,
)

__all__ = [
    "atomic_write_text",
    "atomic_append_line",
    "timestamped_backup",
]

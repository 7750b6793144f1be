"""
Logging configuration for the toolbox.

Console output is colored by level; log files are opened in append mode
and never rotated or truncated. An optional JSON-lines log carries one
object per record with the fields timestamp, level, component and message.
"""

from __future__ import annotations

import logging
import sys
import json
from pathlib import Path
from typing import Optional

DEFAULT_COMPONENT = "system"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class ComponentFilter(logging.Filter):
    """Make sure every record has a component attribute."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "component", None):
            record.component = DEFAULT_COMPONENT
        return True


class JSONFormatter(logging.Formatter):
    """JSON log formatter for machine-readable logs."""

    def __init__(self):
        super().__init__(datefmt=TIMESTAMP_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "component": getattr(record, "component", DEFAULT_COMPONENT),
            "message": record.getMessage(),
        }
        return json.dumps(log_data)


class ColoredFormatter(logging.Formatter):
    """Colored console formatter for better readability."""

    COLORS = {
        logging.DEBUG: "\033[36m",    # Cyan
        logging.INFO: "\033[32m",     # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",    # Red
        logging.CRITICAL: "\033[35m", # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, "")
        levelname = record.levelname

        record.levelname = f"{color}{levelname}{self.RESET}"
        result = super().format(record)

        # Restore original levelname for other handlers
        record.levelname = levelname

        return result


def text_formatter() -> logging.Formatter:
    """Formatter for plain-text log files."""
    return logging.Formatter(
        "[%(asctime)s] [%(levelname)s] %(message)s",
        datefmt=TIMESTAMP_FORMAT,
    )


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    json_log_file: Optional[Path] = None,
    error_log_file: Optional[Path] = None,
) -> None:
    """
    Configure logging for a toolbox command.

    Args:
        level: Console logging level (default: INFO)
        log_file: Plain-text log file, appended to
        json_log_file: JSON-lines log file, appended to
        error_log_file: Separate file receiving ERROR records only
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Drop handlers from a previous call, leave foreign ones alone
    for handler in list(root_logger.handlers):
        if getattr(handler, "_toolbox", False):
            root_logger.removeHandler(handler)
            handler.close()

    handlers = []

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    if sys.stderr.isatty():
        console_handler.setFormatter(ColoredFormatter("%(levelname)s: %(message)s"))
    else:
        console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    handlers.append(console_handler)

    if log_file:
        handlers.append(_file_handler(Path(log_file), logging.DEBUG, text_formatter()))
    if error_log_file:
        handlers.append(_file_handler(Path(error_log_file), logging.ERROR, text_formatter()))
    if json_log_file:
        handlers.append(_file_handler(Path(json_log_file), logging.DEBUG, JSONFormatter()))

    component_filter = ComponentFilter()
    for handler in handlers:
        handler._toolbox = True
        handler.addFilter(component_filter)
        root_logger.addHandler(handler)


class LogContext:
    """
    Context manager tagging log records with a component.

    Example:
        with LogContext(component="flatpak"):
            logger.info("Updating Flatpak packages")  # component=flatpak
    """

    def __init__(self, component: str = DEFAULT_COMPONENT):
        self.component = component
        self._old_factory = None

    def __enter__(self):
        self._old_factory = logging.getLogRecordFactory()

        component = self.component
        old_factory = self._old_factory

        def record_factory(*args, **kwargs):
            record = old_factory(*args, **kwargs)
            record.component = component
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, *args):
        logging.setLogRecordFactory(self._old_factory)

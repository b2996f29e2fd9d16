"""Logging setup for the forest command line tool.

All loggers live under the ``rust_forest`` namespace and write to stderr, so
a report rendered on stdout can be piped without log lines mixed in.
"""

import json
import logging
import sys
from typing import Any

LOGGER_NAME = "rust_forest"

# Attributes passed through ``extra=`` that the JSON formatter keeps
CONTEXT_FIELDS = ("path", "files", "errors", "jobs", "elapsed")


def verbosity_level(verbose: bool = False, quiet: bool = False) -> int:
    """Map the CLI's --verbose/--quiet flags to a logging level."""
    if quiet:
        return logging.ERROR
    if verbose:
        return logging.DEBUG
    return logging.WARNING


def setup_logging(level: int = logging.WARNING, json_format: bool = False) -> logging.Logger:
    """
    Install a single stderr handler on the package logger.

    Calling it again replaces the previous handler, so repeated CLI
    invocations in one process do not duplicate lines.

    Args:
        level: Logging level (default: WARNING)
        json_format: Emit one JSON object per line instead of plain text

    Returns:
        The package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    return logger


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with analysis context fields when present."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                data[name] = value
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data)


def get_logger(component: str | None = None) -> logging.Logger:
    """Logger for a component, e.g. ``get_logger("engine")`` -> rust_forest.engine."""
    if component:
        return logging.getLogger(f"{LOGGER_NAME}.{component}")
    return logging.getLogger(LOGGER_NAME)

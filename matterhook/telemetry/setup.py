"""Logging setup."""

import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

from matterhook.telemetry.formatters import JSONFormatter

LOG_FORMATS = ("console", "json")

# Noisy loggers to quieten
NOISY_LOGGERS = ["httpx", "httpcore"]


def setup_logging(level: str = "INFO", fmt: str = "console") -> logging.Handler:
    """Configure the root logger for console (rich) or JSON output.

    Replaces any handlers already installed on the root logger and returns
    the new one.
    """
    if fmt not in LOG_FORMATS:
        raise ValueError(f"unknown log format {fmt!r}, expected one of {LOG_FORMATS}")

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"unknown log level {level!r}")

    handler: logging.Handler
    if fmt == "json":
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
    else:
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return handler

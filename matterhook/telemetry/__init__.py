"""Metrics and logging."""

from matterhook.telemetry.formatters import JSONFormatter, redact_url
from matterhook.telemetry.metrics import RelayMetrics, start_metrics_server
from matterhook.telemetry.setup import setup_logging

__all__ = [
    "JSONFormatter",
    "RelayMetrics",
    "redact_url",
    "setup_logging",
    "start_metrics_server",
]

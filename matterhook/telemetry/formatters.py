"""JSON log formatter."""

import json
import logging
import re
from datetime import UTC, datetime
from typing import Any

# user:password@ in the authority part of a URL
USERINFO_PATTERN = re.compile(r"(?<=://)[^/@\s]+@")


def redact_url(url: str) -> str:
    """Replace any credentials embedded in a URL with '[REDACTED]'."""
    return USERINFO_PATTERN.sub("[REDACTED]@", url)


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line, easy to ship and to grep with jq.

    Known ``extra=`` fields are copied onto the entry and credentials embedded
    in URLs are redacted.
    """

    EXTRA_FIELDS = [
        # Errors
        "error",
        "error_type",
        # Resilience
        "attempt",
        "delay_seconds",
        "reconnects",
        # HTTP
        "url",
        "status_code",
        # Records
        "event_name",
        "message_id",
        "channel",
        "gateway",
        "username",
        "line",
        # Metrics
        "metrics_port",
    ]

    NUMERIC_FIELDS = {
        "attempt": int,
        "reconnects": int,
        "status_code": int,
        "metrics_port": int,
        "delay_seconds": float,
    }

    URL_FIELDS = ["url"]

    def _sanitize_value(self, key: str, value: Any) -> Any:
        if key in self.URL_FIELDS and isinstance(value, str):
            return redact_url(value)
        return value

    def _ensure_type(self, key: str, value: Any) -> Any:
        if key not in self.NUMERIC_FIELDS:
            return value if isinstance(value, (str, int, float, bool)) else str(value)
        try:
            return self.NUMERIC_FIELDS[key](value)
        except (ValueError, TypeError):
            return None

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "ts": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self.EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = self._sanitize_value(key, self._ensure_type(key, value))

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "stacktrace": self.formatException(record.exc_info),
            }

        return json.dumps(log_entry, ensure_ascii=False)

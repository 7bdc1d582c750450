"""Exception hierarchy for the relay pipeline.

Only ``ConfigError`` and ``PermanentStreamError`` are meant to reach the
process boundary. Everything else is absorbed by the component that raised
it and reported through logs and counters.
"""


class MatterhookError(Exception):
    """Base class for all relay errors."""


class ConfigError(MatterhookError):
    """Configuration is missing or invalid."""


class StreamError(MatterhookError):
    """A streaming session against the source API ended."""

    is_retryable = True


class PermanentStreamError(StreamError):
    """The stream cannot be opened no matter how often we retry (bad URL etc.)."""

    is_retryable = False


class TransientStreamError(StreamError):
    """Connection, read or EOF failure. Reconnecting may help."""

    is_retryable = True


class RecordDecodeError(MatterhookError, ValueError):
    """A single stream line could not be decoded into a record."""

    def __init__(self, message: str, line: str = ""):
        super().__init__(message)
        self.line = line


class ForwardError(MatterhookError):
    """Delivering a single message to the webhook failed."""

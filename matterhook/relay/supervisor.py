"""Reconnect supervisor around the stream reader."""

import asyncio
import enum
import logging
from typing import Awaitable, Callable, Protocol

from matterhook.errors import PermanentStreamError, StreamError, TransientStreamError
from matterhook.relay.backoff import ExponentialBackoff

logger = logging.getLogger(__name__)


class StreamSource(Protocol):
    """Anything with a ``start()`` coroutine that streams until it fails."""

    async def start(self) -> None: ...


class SupervisorState(enum.Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    BACKING_OFF = "backing_off"
    FAILED = "failed"
    STOPPED = "stopped"


class ReconnectSupervisor:
    """
    Keeps a stream source running forever.

    Transient failures are retried after an exponential backoff delay with no
    attempt limit. A permanent failure moves the supervisor to FAILED and is
    re-raised to the caller.
    """

    def __init__(
        self,
        source: StreamSource,
        backoff: ExponentialBackoff,
        notify: Callable[[StreamError, float], Awaitable[None] | None] | None = None,
    ):
        self.source = source
        self.backoff = backoff
        self.notify = notify
        self.state = SupervisorState.IDLE
        self.reconnects = 0
        self.last_error: StreamError | None = None
        self.last_delay: float | None = None

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Run the source until ``stop_event`` is set or a permanent error occurs."""
        stop_event = stop_event or asyncio.Event()

        try:
            while not stop_event.is_set():
                await self._run_once(stop_event)
        except asyncio.CancelledError:
            self.state = SupervisorState.STOPPED
            raise

        self.state = SupervisorState.STOPPED
        logger.info("Reconnect supervisor stopped")

    async def _run_once(self, stop_event: asyncio.Event) -> None:
        """One streaming session followed by a backoff wait."""
        self.state = SupervisorState.STREAMING
        try:
            await self.source.start()
            error: StreamError = TransientStreamError("stream ended")
        except PermanentStreamError as e:
            self.state = SupervisorState.FAILED
            self.last_error = e
            logger.error(
                "Permanent stream error, not retrying: %s",
                e,
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            raise
        except TransientStreamError as e:
            error = e

        if stop_event.is_set():
            return

        self.last_error = error
        delay = self.backoff.next_delay()
        self.last_delay = delay
        self.state = SupervisorState.BACKING_OFF
        self.reconnects += 1
        logger.warning(
            "get messages failed: %s (retry in %.2fs)",
            error,
            delay,
            extra={
                "error": str(error),
                "delay_seconds": delay,
                "attempt": self.backoff.attempt,
                "reconnects": self.reconnects,
            },
        )

        if self.notify is not None:
            result = self.notify(error, delay)
            if asyncio.iscoroutine(result):
                await result

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

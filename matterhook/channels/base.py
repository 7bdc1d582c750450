"""Base class for relay endpoints."""

from abc import ABC, abstractmethod

import httpx

from matterhook.bus import Message, MessageBus
from matterhook.telemetry.metrics import RelayMetrics


class BaseChannel(ABC):
    """Abstract base class for the two ends of the relay.

    Each channel owns one ``httpx.AsyncClient``, created lazily and closed on
    ``stop()``.
    """

    name: str = "base"

    def __init__(
        self,
        bus: MessageBus,
        metrics: RelayMetrics | None = None,
        timeout: httpx.Timeout | float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.bus = bus
        self.metrics = metrics or RelayMetrics()
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @abstractmethod
    async def start(self) -> None:
        """Start the channel."""
        pass

    async def stop(self) -> None:
        """Stop the channel and close its HTTP client."""
        self._running = False
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def _publish(self, msg: Message) -> None:
        """Hand a message over to the bus and count it as received."""
        await self.bus.publish(msg)
        self.metrics.received.inc()

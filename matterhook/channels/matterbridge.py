"""Matterbridge streaming API reader."""

import logging
from typing import Protocol

import httpx

from matterhook.bus import GatewayEvent, MessageBus, decode_record
from matterhook.channels.base import BaseChannel
from matterhook.errors import PermanentStreamError, RecordDecodeError, TransientStreamError
from matterhook.telemetry.metrics import RelayMetrics

logger = logging.getLogger(__name__)

STREAM_PATH = "/api/stream"

# No read timeout: the stream stays idle while nobody is chatting
STREAM_TIMEOUT = httpx.Timeout(10.0, read=None)


class Resettable(Protocol):
    def reset(self) -> None: ...


def build_stream_url(api_url: str) -> str:
    """Join the API base URL with the stream path, keeping any base path.

    Raises PermanentStreamError when the base URL is unusable.
    """
    if not api_url:
        raise PermanentStreamError("failed to build url: empty api url")
    try:
        url = httpx.URL(api_url)
    except (httpx.InvalidURL, TypeError) as e:
        raise PermanentStreamError(f"failed to build url: {e}") from e

    if url.scheme not in ("http", "https") or not url.host:
        raise PermanentStreamError(f"failed to build url: unsupported api url {api_url!r}")

    path = url.path.rstrip("/") + STREAM_PATH
    return str(url.copy_with(path=path))


class MatterbridgeChannel(BaseChannel):
    """Reads newline-delimited JSON from ``{api_url}/api/stream``.

    Every ``start()`` opens a fresh connection and reads until it breaks;
    there is no resume cursor. Chat messages go onto the bus, gateway events
    are logged and discarded, undecodable lines are counted and skipped.
    """

    name = "matterbridge"

    def __init__(
        self,
        bus: MessageBus,
        api_url: str,
        username: str = "",
        password: str = "",
        backoff: Resettable | None = None,
        metrics: RelayMetrics | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(bus, metrics=metrics, timeout=STREAM_TIMEOUT, transport=transport)
        self.api_url = api_url
        self.username = username
        self.password = password
        self.backoff = backoff

    def build_auth(self) -> httpx.BasicAuth | None:
        """Basic auth when both username and password are set."""
        if self.username and self.password:
            return httpx.BasicAuth(self.username, self.password)
        return None

    async def start(self) -> None:
        """Run one streaming session. Always ends with a StreamError."""
        url = build_stream_url(self.api_url)
        try:
            request = self._get_client().build_request("GET", url)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise PermanentStreamError(f"failed to build request: {e}") from e

        self._running = True
        try:
            response = await self._get_client().send(
                request, auth=self.build_auth(), stream=True
            )
        except httpx.TransportError as e:
            raise TransientStreamError(f"failed to request messages: {e}") from e

        try:
            if not response.is_success:
                raise TransientStreamError(
                    f"failed to request messages: HTTP {response.status_code}"
                )
            logger.info("listening for messages...", extra={"url": url})
            await self._read_lines(response)
        except (httpx.TransportError, httpx.StreamError) as e:
            raise TransientStreamError(f"failed to read messages: {e}") from e
        finally:
            await response.aclose()

        raise TransientStreamError("failed to read messages: stream closed by server")

    async def _iter_lines(self, response: httpx.Response):
        """Yield complete ``\\n``-terminated lines as bytes.

        Only ``\\n`` ends a record; other Unicode line breaks may appear
        unescaped inside JSON strings. A trailing fragment without a newline
        is dropped when the server closes the stream.
        """
        buffer = b""
        async for chunk in response.aiter_bytes():
            buffer += chunk
            *lines, buffer = buffer.split(b"\n")
            for line in lines:
                yield line

    async def _read_lines(self, response: httpx.Response) -> None:
        async for line in self._iter_lines(response):
            if not line.strip():
                continue

            try:
                record = decode_record(line)
            except RecordDecodeError as e:
                self.metrics.errors.inc()
                logger.warning(
                    "failed to unmarshal message, skipping: %s",
                    e,
                    extra={"error": str(e), "line": line[:200].decode("utf-8", "replace")},
                )
                continue

            if isinstance(record, GatewayEvent):
                logger.info("received %s event", record.name, extra={"event_name": record.name})
                continue

            logger.debug(
                "received message",
                extra={
                    "message_id": record.id,
                    "channel": record.channel,
                    "gateway": record.gateway,
                    "username": record.username,
                },
            )
            await self._publish(record)
            if self.backoff is not None:
                self.backoff.reset()

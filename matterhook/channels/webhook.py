"""Webhook forwarding worker."""

import asyncio
import json
import logging

import httpx

from matterhook.bus import Message, MessageBus
from matterhook.channels.base import BaseChannel
from matterhook.errors import ForwardError
from matterhook.telemetry.metrics import RelayMetrics

logger = logging.getLogger(__name__)


class WebhookChannel(BaseChannel):
    """
    Drains the bus and POSTs each admitted message to the webhook.

    Delivery is at-most-once: a failed message is counted, logged and
    dropped, and the worker moves on to the next one. Messages are delivered
    one at a time in bus order.
    """

    name = "webhook"

    def __init__(
        self,
        bus: MessageBus,
        webhook_url: str,
        prefix: str = "",
        metrics: RelayMetrics | None = None,
        timeout: float = 30.0,
        fail_on_error_status: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(bus, metrics=metrics, timeout=timeout, transport=transport)
        self.webhook_url = webhook_url
        self.prefix = prefix
        self.fail_on_error_status = fail_on_error_status

    def should_forward(self, msg: Message) -> bool:
        """Prefix filter; depends only on the message text."""
        return not self.prefix or msg.text.startswith(self.prefix)

    @staticmethod
    def encode(msg: Message) -> bytes:
        """Serialize as a JSON array holding exactly one message."""
        return json.dumps([msg.to_dict()], ensure_ascii=False).encode("utf-8")

    async def start(self) -> None:
        """Forward messages until stopped."""
        self._running = True
        logger.info("Webhook worker started")

        while self._running:
            try:
                msg = await asyncio.wait_for(self.bus.consume(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            try:
                await self.forward(msg)
            except Exception as e:
                self.metrics.errors.inc()
                logger.exception(
                    "Unexpected error forwarding message: %s",
                    e,
                    extra={"error": str(e), "message_id": msg.id},
                )

    async def forward(self, msg: Message) -> bool:
        """Filter and deliver one message. Returns True when forwarded."""
        if not self.should_forward(msg):
            self.metrics.dropped.inc()
            logger.debug(
                "skipping message without prefix",
                extra={"message_id": msg.id, "channel": msg.channel},
            )
            return False

        try:
            await self._send(msg)
        except ForwardError as e:
            self.metrics.errors.inc()
            logger.warning(
                "%s",
                e,
                extra={"error": str(e.__cause__ or e), "message_id": msg.id},
            )
            return False

        logger.debug("forwarded message successfully", extra={"message_id": msg.id})
        self.metrics.forwarded.inc()
        return True

    async def _send(self, msg: Message) -> None:
        try:
            body = self.encode(msg)
        except (TypeError, ValueError) as e:
            raise ForwardError("failed to marshal message") from e

        client = self._get_client()
        try:
            url = httpx.URL(self.webhook_url)
            if url.scheme not in ("http", "https") or not url.host:
                raise httpx.UnsupportedProtocol(f"unsupported webhook url {self.webhook_url!r}")
            request = client.build_request(
                "POST",
                url,
                content=body,
                headers={"Content-Type": "application/json"},
            )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise ForwardError("failed to build request") from e

        try:
            response = await client.send(request)
        except httpx.HTTPError as e:
            raise ForwardError("failed to send webhook") from e

        if not response.is_success:
            logger.warning(
                "webhook responded with HTTP %d",
                response.status_code,
                extra={"status_code": response.status_code, "message_id": msg.id},
            )
            if self.fail_on_error_status:
                raise ForwardError(f"webhook rejected message: HTTP {response.status_code}")

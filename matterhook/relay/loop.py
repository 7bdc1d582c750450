"""Relay loop - wires the reader, supervisor and worker together."""

import asyncio
import logging

import httpx

from matterhook.bus import MessageBus
from matterhook.channels import MatterbridgeChannel, WebhookChannel
from matterhook.config.schema import Config
from matterhook.relay.backoff import ExponentialBackoff
from matterhook.relay.supervisor import ReconnectSupervisor
from matterhook.telemetry.metrics import RelayMetrics

logger = logging.getLogger(__name__)


class RelayLoop:
    """
    The relay loop runs two tasks joined only by the bus:

    1. The reconnect supervisor, driving the Matterbridge stream reader
    2. The webhook worker, forwarding messages one at a time

    ``run()`` returns once ``stop()`` is called and re-raises a permanent
    stream error from the supervisor.
    """

    def __init__(
        self,
        config: Config,
        metrics: RelayMetrics | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.metrics = metrics or RelayMetrics()
        self.bus = MessageBus(capacity=config.relay.queue_size)
        self.backoff = ExponentialBackoff.from_config(config.backoff)

        self.source = MatterbridgeChannel(
            bus=self.bus,
            api_url=config.source.url,
            username=config.source.username,
            password=config.source.password,
            backoff=self.backoff,
            metrics=self.metrics,
            transport=transport,
        )
        self.webhook = WebhookChannel(
            bus=self.bus,
            webhook_url=config.webhook.url,
            prefix=config.webhook.prefix,
            metrics=self.metrics,
            timeout=config.webhook.timeout,
            fail_on_error_status=config.webhook.fail_on_error_status,
            transport=transport,
        )
        self.supervisor = ReconnectSupervisor(self.source, self.backoff)
        self._stop_event = asyncio.Event()

    async def run(self) -> None:
        """Run until stopped or until the stream fails permanently."""
        logger.info("Relay loop started")

        supervisor_task = asyncio.create_task(
            self.supervisor.run(self._stop_event), name="matterhook-supervisor"
        )
        webhook_task = asyncio.create_task(self.webhook.start(), name="matterhook-webhook")
        stop_task = asyncio.create_task(self._stop_event.wait(), name="matterhook-stop")
        tasks = [supervisor_task, webhook_task, stop_task]

        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            self._stop_event.set()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await self.source.stop()
            await self.webhook.stop()
            logger.info("Relay loop stopped")

        for task in (supervisor_task, webhook_task):
            if task.done() and not task.cancelled() and task.exception() is not None:
                raise task.exception()

    def stop(self) -> None:
        """Ask the relay to shut down."""
        self._stop_event.set()

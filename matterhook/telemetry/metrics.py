"""
Prometheus counters for the relay pipeline.

Four counters, mirroring the pipeline's outcomes:
- messages received from the stream
- messages forwarded to the webhook
- messages dropped by the prefix filter
- processing errors (decode, encode, request and delivery failures)
"""

import logging

from prometheus_client import CollectorRegistry, Counter, start_http_server

logger = logging.getLogger(__name__)

COUNTERS = {
    "received": ("messages_received", "Total number of messages received"),
    "forwarded": ("messages_forwarded", "Total number of messages forwarded to the webhook"),
    "dropped": ("messages_dropped", "Total number of messages not eligible for forwarding"),
    "errors": ("processing_errors", "Total number of processing errors"),
}


class RelayMetrics:
    """Holds the pipeline counters on a dedicated registry."""

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self.received = self._counter("received")
        self.forwarded = self._counter("forwarded")
        self.dropped = self._counter("dropped")
        self.errors = self._counter("errors")

    def _counter(self, key: str) -> Counter:
        name, description = COUNTERS[key]
        return Counter(name, description, registry=self.registry)

    def value(self, key: str) -> float:
        """Current value of one counter ("received", "forwarded", ...)."""
        name, _ = COUNTERS[key]
        return self.registry.get_sample_value(f"{name}_total") or 0.0

    def snapshot(self) -> dict[str, float]:
        return {key: self.value(key) for key in COUNTERS}


def start_metrics_server(metrics: RelayMetrics, port: int, host: str = "0.0.0.0") -> None:
    """Expose the counters on ``http://host:port/metrics``."""
    start_http_server(port, addr=host, registry=metrics.registry)
    logger.info(
        "Metrics endpoint listening on %s:%d",
        host,
        port,
        extra={"metrics_port": port},
    )

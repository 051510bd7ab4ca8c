"""Prometheus metrics for the connection pool."""

from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import Counter, Gauge


active_connections = Gauge(
    "feedlink_active_connections", "Connections currently held by the pool"
)
messages_total = Counter(
    "feedlink_messages_total", "Messages moved through the pool", ["direction"]
)
reconnects_total = Counter("feedlink_reconnects_total", "Reconnection attempts scheduled")
rate_limited_total = Counter(
    "feedlink_rate_limited_total", "Sends rejected by the rate limiter"
)
evictions_total = Counter(
    "feedlink_evictions_total", "Connections evicted to admit a new url"
)


@dataclass
class Metrics:
    """Convenience wrapper around Prometheus metrics."""

    def set_active_connections(self, count: int) -> None:
        active_connections.set(count)

    def record_sent(self) -> None:
        messages_total.labels(direction="sent").inc()

    def record_received(self) -> None:
        messages_total.labels(direction="received").inc()

    def record_reconnect(self) -> None:
        reconnects_total.inc()

    def record_rate_limited(self) -> None:
        rate_limited_total.inc()

    def record_eviction(self) -> None:
        evictions_total.inc()

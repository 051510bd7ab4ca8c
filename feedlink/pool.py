"""Bounded pool of persistent feed connections.

Example
-------
>>> import asyncio
>>> from feedlink import ConnectionPool, MessageEvent
>>> async def main():
...     async with ConnectionPool() as pool:
...         pool.add_listener(lambda ev: print(ev.data), MessageEvent)
...         conn_id = pool.connect("wss://stream.example.com/feed")
...         await asyncio.sleep(1)
...         await pool.subscribe(conn_id, "trades", {"symbol": "BTC-USD"})
>>> # asyncio.run(main())
"""

from __future__ import annotations

import asyncio
import itertools
import random
import secrets
import time
from dataclasses import dataclass, field
from typing import (
    Callable,
    Dict,
    FrozenSet,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Type,
    Union,
)

from .compression import GzipCodec
from .config import PoolConfig
from .connection import Connection, ConnectionInfo, ConnectionStats, ConnectionStatus
from .envelope import build_envelope
from .events import (
    ClosedEvent,
    ConnectedEvent,
    DisconnectedEvent,
    ErrorEvent,
    EventNotifier,
    Listener,
    MessageEvent,
    RateLimitedEvent,
    ReconnectFailedEvent,
    ReconnectingEvent,
)
from .exceptions import CompressionError, EnvelopeError, RateLimitExceeded
from .logging import logger
from .monitoring.metrics import Metrics
from .rate_limiter import KeyedRateLimiter
from .reconnector import Reconnector, Scheduler
from .transport import Frame, Transport, TransportFactory, WebSocketTransport

_DROPPABLE = frozenset(
    {
        ConnectionStatus.CONNECTING,
        ConnectionStatus.CONNECTED,
        ConnectionStatus.DISCONNECTED,
    }
)


class _TransportBinding:
    """Route one transport's notifications back to the pool."""

    def __init__(self, pool: "ConnectionPool", connection: Connection) -> None:
        self._pool = pool
        self._connection = connection

    def on_open(self, transport: Transport) -> None:
        self._pool._handle_open(self._connection, transport)

    def on_message(self, transport: Transport, data: Frame) -> None:
        self._pool._handle_message(self._connection, transport, data)

    def on_close(self, transport: Transport, code: Optional[int], reason: str) -> None:
        self._pool._handle_close(self._connection, transport, code, reason)

    def on_error(self, transport: Transport, error: BaseException) -> None:
        self._pool._handle_error(self._connection, transport, error)


@dataclass
class ConnectionPool:
    """Keep up to ``config.max_connections`` feed connections alive.

    Must be used from a running asyncio event loop. All registry changes
    happen synchronously, either in pool methods or in transport and timer
    callbacks; only :meth:`send` and friends suspend.
    """

    config: PoolConfig = field(default_factory=PoolConfig)
    transport_factory: TransportFactory = WebSocketTransport
    notifier: EventNotifier = field(default_factory=EventNotifier)
    codec: GzipCodec = field(default_factory=GzipCodec)
    metrics: Metrics = field(default_factory=Metrics)
    scheduler: Optional[Scheduler] = None
    clock: Callable[[], float] = time.monotonic
    rng: Callable[[], float] = random.random
    rate_limiter: KeyedRateLimiter = field(init=False)
    reconnector: Reconnector = field(init=False)
    _connections: Dict[str, Connection] = field(default_factory=dict, init=False)
    _keepalive_task: Optional[asyncio.Task] = field(default=None, init=False)
    _ids: Iterator[int] = field(default_factory=itertools.count, init=False)

    def __post_init__(self) -> None:
        self.rate_limiter = KeyedRateLimiter(
            rate_limit=self.config.rate_limit, period=self.config.rate_limit_duration
        )
        self.reconnector = Reconnector(
            self.config.reconnect_interval,
            self.config.max_reconnect_attempts,
            is_registered=self._owns,
            reopen=self._reopen,
            scheduler=self.scheduler,
            rng=self.rng,
        )

    async def __aenter__(self) -> "ConnectionPool":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close_all()

    # Events -----------------------------------------------------------
    def add_listener(self, listener: Listener, *event_types: Type) -> Callable[[], None]:
        """Receive pool events; see :meth:`EventNotifier.subscribe`."""

        return self.notifier.subscribe(listener, *event_types)

    # Registry ---------------------------------------------------------
    def connect(
        self, url: str, protocols: Optional[Union[str, Sequence[str]]] = None
    ) -> str:
        """Return the id of the connection to ``url``, opening one if needed."""

        url = self._secure_url(url)
        existing = self._find_by_url(url)
        if existing is not None:
            return existing.id

        self._ensure_keepalive()
        if len(self._connections) >= self.config.max_connections:
            victim = self._least_active()
            if victim is not None:
                logger.info("connection_evicted", id=victim.id, url=victim.url)
                self.metrics.record_eviction()
                self.disconnect(victim.id)

        if isinstance(protocols, str):
            protocols = [protocols]
        connection = Connection(
            id=self._next_id(),
            url=url,
            last_activity=self.clock(),
            protocols=list(protocols) if protocols else None,
        )
        connection.transport = self._new_transport(connection)
        self._connections[connection.id] = connection
        try:
            connection.transport.open()
        except Exception:
            del self._connections[connection.id]
            raise
        self.metrics.set_active_connections(len(self._connections))
        logger.info("connection_created", id=connection.id, url=url)
        return connection.id

    def disconnect(self, connection_id: str) -> bool:
        """Close and forget ``connection_id``; no reconnection follows."""

        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return False
        self._close_transport(connection)
        self.rate_limiter.forget(connection_id)
        self.metrics.set_active_connections(len(self._connections))
        logger.info("connection_removed", id=connection_id, url=connection.url)
        self.notifier.emit(DisconnectedEvent(id=connection_id, url=connection.url))
        return True

    def close_all(self) -> None:
        """Close every connection and stop the keepalive ticker."""

        closed = list(self._connections.values())
        self._connections.clear()
        for connection in closed:
            self._close_transport(connection)
            self.rate_limiter.forget(connection.id)
        if self._keepalive_task is not None:
            self._keepalive_task.cancel()
            self._keepalive_task = None
        self.metrics.set_active_connections(0)
        logger.info("pool_closed", closed=len(closed))
        self.notifier.emit(ClosedEvent())

    def get_status(self, connection_id: str) -> Optional[ConnectionStatus]:
        connection = self._connections.get(connection_id)
        return connection.status if connection else None

    def get_connections(self) -> List[ConnectionInfo]:
        return [c.info() for c in self._connections.values()]

    def get_subscriptions(self, connection_id: str) -> Optional[FrozenSet[str]]:
        connection = self._connections.get(connection_id)
        return frozenset(connection.subscriptions) if connection else None

    def get_stats(self, connection_id: str) -> Optional[ConnectionStats]:
        connection = self._connections.get(connection_id)
        return connection.stats if connection else None

    # Outbound ---------------------------------------------------------
    async def send(self, connection_id: str, data: Frame) -> bool:
        """Send ``data`` if the connection is up and within its rate limit.

        Text is gzip compressed when compression is enabled; a codec failure
        falls back to the original text. Failures are reported as events and a
        ``False`` result, never raised.
        """

        connection = self._connections.get(connection_id)
        if connection is None or connection.status is not ConnectionStatus.CONNECTED:
            return False
        try:
            await self.rate_limiter.consume(connection_id)
            payload: Frame = data
            if self.config.enable_compression and isinstance(data, str):
                try:
                    payload = self.codec.compress(data)
                except CompressionError as exc:
                    logger.warning(
                        "compression_failed", id=connection_id, error=str(exc)
                    )
                    payload = data
            await connection.transport.send(payload)
        except RateLimitExceeded:
            self.metrics.record_rate_limited()
            logger.warning("rate_limited", id=connection_id, url=connection.url)
            self.notifier.emit(RateLimitedEvent(id=connection_id, url=connection.url))
            return False
        except Exception as exc:
            connection.stats.errors += 1
            logger.error("send_failed", id=connection_id, error=str(exc))
            self.notifier.emit(
                ErrorEvent(id=connection_id, url=connection.url, error=exc)
            )
            return False
        connection.touch(self.clock())
        connection.stats.messages_sent += 1
        self.metrics.record_sent()
        return True

    async def subscribe(
        self,
        connection_id: str,
        topic: str,
        extra: Optional[Mapping[str, object]] = None,
    ) -> bool:
        """Send a ``subscribe`` envelope and record ``topic`` on success."""

        return await self._send_control(connection_id, "subscribe", topic, extra)

    async def unsubscribe(
        self,
        connection_id: str,
        topic: str,
        extra: Optional[Mapping[str, object]] = None,
    ) -> bool:
        """Send an ``unsubscribe`` envelope and drop ``topic`` on success."""

        return await self._send_control(connection_id, "unsubscribe", topic, extra)

    async def _send_control(
        self,
        connection_id: str,
        method: str,
        topic: str,
        extra: Optional[Mapping[str, object]],
    ) -> bool:
        connection = self._connections.get(connection_id)
        if connection is None or connection.status is not ConnectionStatus.CONNECTED:
            return False
        try:
            envelope = build_envelope(method, topic, extra)
        except EnvelopeError as exc:
            logger.warning("invalid_envelope", id=connection_id, error=str(exc))
            self.notifier.emit(
                ErrorEvent(id=connection_id, url=connection.url, error=exc)
            )
            return False
        if not await self.send(connection_id, envelope.to_wire()):
            return False
        if method == "subscribe":
            connection.subscriptions.add(topic)
        else:
            connection.subscriptions.discard(topic)
        return True

    # Keepalive --------------------------------------------------------
    def ping_all(self) -> int:
        """Ping every open CONNECTED connection; return how many were pinged."""

        pinged = 0
        for connection in list(self._connections.values()):
            if connection.status is not ConnectionStatus.CONNECTED:
                continue
            if not connection.transport.is_open:
                continue
            try:
                connection.transport.ping()
            except Exception as exc:
                logger.warning("ping_failed", id=connection.id, error=str(exc))
            else:
                pinged += 1
        return pinged

    async def _keepalive_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.ping_interval)
            self.ping_all()

    def _ensure_keepalive(self) -> None:
        if self._keepalive_task is None or self._keepalive_task.done():
            self._keepalive_task = asyncio.get_running_loop().create_task(
                self._keepalive_loop()
            )

    # Transport notifications -----------------------------------------
    def _handle_open(self, connection: Connection, transport: Transport) -> None:
        if transport is not connection.transport or not self._owns(connection):
            return
        connection.mark_connected(self.clock())
        logger.info("connection_opened", id=connection.id, url=connection.url)
        self.notifier.emit(ConnectedEvent(id=connection.id, url=connection.url))

    def _handle_message(
        self, connection: Connection, transport: Transport, data: Frame
    ) -> None:
        if transport is not connection.transport or not self._owns(connection):
            return
        connection.touch(self.clock())
        connection.stats.messages_received += 1
        self.metrics.record_received()
        if self.config.enable_compression and isinstance(data, (bytes, bytearray)):
            try:
                data = self.codec.decompress(bytes(data))
            except CompressionError as exc:
                logger.warning("decompression_failed", id=connection.id, error=str(exc))
        self.notifier.emit(MessageEvent(id=connection.id, url=connection.url, data=data))

    def _handle_error(
        self, connection: Connection, transport: Transport, error: BaseException
    ) -> None:
        if transport is not connection.transport:
            return
        if connection.status not in _DROPPABLE:
            return
        connection.stats.errors += 1
        connection.mark_disconnected()
        if not self._owns(connection):
            return
        logger.warning(
            "transport_error", id=connection.id, url=connection.url, error=str(error)
        )
        self.notifier.emit(
            ErrorEvent(id=connection.id, url=connection.url, error=error)
        )

    def _handle_close(
        self,
        connection: Connection,
        transport: Transport,
        code: Optional[int],
        reason: str,
    ) -> None:
        if transport is not connection.transport:
            return
        # RECONNECTING or FAILED: this handle already reported its drop
        if connection.status not in _DROPPABLE:
            return
        connection.mark_disconnected()
        if not self._owns(connection):
            return
        logger.info(
            "connection_closed",
            id=connection.id,
            url=connection.url,
            code=code,
            reason=reason,
        )
        self._schedule_reconnect(connection)

    # Reconnection -----------------------------------------------------
    def _schedule_reconnect(self, connection: Connection) -> None:
        if self.reconnector.schedule(connection) is None:
            connection.mark_failed()
            del self._connections[connection.id]
            self.rate_limiter.forget(connection.id)
            self.metrics.set_active_connections(len(self._connections))
            logger.error(
                "reconnect_exhausted",
                id=connection.id,
                url=connection.url,
                attempts=connection.reconnect_attempts,
            )
            self.notifier.emit(
                ReconnectFailedEvent(id=connection.id, url=connection.url)
            )
            return
        self.metrics.record_reconnect()
        self.notifier.emit(
            ReconnectingEvent(
                id=connection.id,
                url=connection.url,
                attempt=connection.reconnect_attempts,
                max_attempts=self.config.max_reconnect_attempts,
            )
        )

    def _reopen(self, connection: Connection) -> None:
        transport = self._new_transport(connection)
        connection.mark_connecting(transport)
        logger.info(
            "reconnect_attempt",
            id=connection.id,
            url=connection.url,
            attempt=connection.reconnect_attempts,
        )
        try:
            transport.open()
        except Exception as exc:
            self._handle_error(connection, transport, exc)
            self._handle_close(connection, transport, None, str(exc))

    # Helpers ----------------------------------------------------------
    def _new_transport(self, connection: Connection) -> Transport:
        return self.transport_factory(
            connection.url, connection.protocols, _TransportBinding(self, connection)
        )

    def _close_transport(self, connection: Connection) -> None:
        try:
            connection.transport.close()
        except Exception as exc:
            logger.warning("transport_close_failed", id=connection.id, error=str(exc))

    def _owns(self, connection: Connection) -> bool:
        return self._connections.get(connection.id) is connection

    def _find_by_url(self, url: str) -> Optional[Connection]:
        for connection in self._connections.values():
            if connection.url == url:
                return connection
        return None

    def _least_active(self) -> Optional[Connection]:
        # min() keeps the first of equal keys, so ties go to the oldest entry
        if not self._connections:
            return None
        return min(self._connections.values(), key=lambda c: c.last_activity)

    def _next_id(self) -> str:
        return f"ws-{next(self._ids)}-{secrets.token_hex(4)}"

    def _secure_url(self, url: str) -> str:
        if self.config.is_production and url.startswith("ws://"):
            url = "wss://" + url[len("ws://") :]
            logger.warning("insecure_url_upgraded", url=url)
        return url

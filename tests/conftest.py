from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import pytest

from feedlink.config import PoolConfig
from feedlink.pool import ConnectionPool
from feedlink.transport import Transport


class FakeTransport(Transport):
    """In-memory transport; tests drive its notifications by hand."""

    def __init__(self, url, protocols, listener):
        super().__init__(url, protocols, listener)
        self.opened = False
        self.closed = False
        self.sent = []
        self.pings = 0
        self.fail_send: Optional[BaseException] = None
        self._ready = False

    @property
    def is_open(self):
        return self._ready and not self.closed

    def open(self):
        self.opened = True

    async def send(self, data):
        if self.fail_send is not None:
            raise self.fail_send
        self.sent.append(data)

    def ping(self):
        self.pings += 1

    def close(self):
        self.closed = True
        self._ready = False

    def fire_open(self):
        self._ready = True
        self.listener.on_open(self)

    def fire_message(self, data):
        self.listener.on_message(self, data)

    def fire_error(self, error):
        self.listener.on_error(self, error)

    def fire_close(self, code=1006, reason=""):
        self._ready = False
        self.listener.on_close(self, code, reason)


class TransportRecorder:
    def __init__(self):
        self.created: List[FakeTransport] = []

    def __call__(self, url, protocols, listener):
        transport = FakeTransport(url, protocols, listener)
        self.created.append(transport)
        return transport

    def for_url(self, url) -> List[FakeTransport]:
        return [t for t in self.created if t.url == url]


class ManualScheduler:
    def __init__(self):
        self.pending: List[Tuple[float, Callable[[], None]]] = []
        self.delays: List[float] = []

    def __call__(self, delay, callback):
        self.pending.append((delay, callback))
        self.delays.append(delay)

    def fire_next(self):
        _, callback = self.pending.pop(0)
        callback()


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds=1.0):
        self.now += seconds


@dataclass
class Harness:
    pool: ConnectionPool
    transports: TransportRecorder
    scheduler: ManualScheduler
    clock: FakeClock
    events: list = field(default_factory=list)

    def transport(self, conn_id) -> FakeTransport:
        return self.pool._connections[conn_id].transport

    def open(self, url):
        conn_id = self.pool.connect(url)
        self.transport(conn_id).fire_open()
        return conn_id

    def events_of(self, event_type):
        return [e for e in self.events if isinstance(e, event_type)]


@pytest.fixture
def make_pool():
    def _make(rng=lambda: 0.0, **overrides):
        overrides.setdefault("environment", "development")
        harness = Harness(
            pool=None,
            transports=TransportRecorder(),
            scheduler=ManualScheduler(),
            clock=FakeClock(),
        )
        harness.pool = ConnectionPool(
            config=PoolConfig(**overrides),
            transport_factory=harness.transports,
            scheduler=harness.scheduler,
            clock=harness.clock,
            rng=rng,
        )
        harness.pool.add_listener(harness.events.append)
        return harness

    return _make

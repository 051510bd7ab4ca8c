import pytest

from feedlink.connection import Connection, ConnectionStatus
from feedlink.reconnector import Reconnector


def make_reconnector(rng=lambda: 0.0, registered=True, max_attempts=3):
    scheduled = []
    reopened = []
    reconnector = Reconnector(
        1.0,
        max_attempts,
        is_registered=lambda conn: registered,
        reopen=reopened.append,
        scheduler=lambda delay, cb: scheduled.append((delay, cb)),
        rng=rng,
    )
    return reconnector, scheduled, reopened


def dropped_connection():
    conn = Connection(id="ws-1-abc", url="ws://feed", last_activity=0.0)
    conn.status = ConnectionStatus.DISCONNECTED
    return conn


@pytest.mark.parametrize("attempt", [1, 2, 3, 4, 5, 6])
@pytest.mark.parametrize("draw", [0.0, 0.5, 0.999999])
def test_backoff_within_bounds(attempt, draw):
    reconnector, _, _ = make_reconnector(rng=lambda: draw)
    base = 1.0 * 1.5 ** (attempt - 1)
    delay = reconnector.backoff(attempt)
    assert base <= delay <= base * 1.3


def test_schedule_increments_attempts_and_arms_timer():
    reconnector, scheduled, reopened = make_reconnector()
    conn = dropped_connection()
    delay = reconnector.schedule(conn)
    assert delay == 1.0
    assert conn.status is ConnectionStatus.RECONNECTING
    assert conn.reconnect_attempts == 1
    assert len(scheduled) == 1
    scheduled[0][1]()
    assert reopened == [conn]


def test_schedule_returns_none_when_exhausted():
    reconnector, scheduled, _ = make_reconnector(max_attempts=2)
    conn = dropped_connection()
    conn.reconnect_attempts = 2
    assert reconnector.schedule(conn) is None
    assert conn.status is ConnectionStatus.DISCONNECTED
    assert scheduled == []


def test_timer_is_noop_for_unregistered_connection():
    reconnector, scheduled, reopened = make_reconnector(registered=False)
    reconnector.schedule(dropped_connection())
    scheduled[0][1]()
    assert reopened == []


def test_timer_is_noop_when_no_longer_reconnecting():
    reconnector, scheduled, reopened = make_reconnector()
    conn = dropped_connection()
    reconnector.schedule(conn)
    conn.status = ConnectionStatus.FAILED
    scheduled[0][1]()
    assert reopened == []

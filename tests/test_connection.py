import pytest

from feedlink.connection import Connection, ConnectionStatus
from feedlink.exceptions import InvalidTransitionError


def make_connection():
    return Connection(id="ws-0-abcd", url="ws://feed", last_activity=1.0)


def test_full_lifecycle():
    conn = make_connection()
    assert conn.status is ConnectionStatus.CONNECTING
    conn.mark_connected(5.0)
    assert conn.last_activity == 5.0
    conn.mark_disconnected()
    assert conn.mark_reconnecting() == 1
    replacement = object()
    conn.mark_connecting(replacement)
    assert conn.transport is replacement
    conn.mark_connected(6.0)
    assert conn.reconnect_attempts == 0
    assert conn.stats.reconnects == 1


def test_failed_is_terminal():
    conn = make_connection()
    conn.mark_disconnected()
    conn.mark_failed()
    with pytest.raises(InvalidTransitionError):
        conn.mark_connecting(object())
    with pytest.raises(InvalidTransitionError):
        conn.mark_disconnected()


def test_connected_cannot_reconnect_without_drop():
    conn = make_connection()
    conn.mark_connected(2.0)
    with pytest.raises(InvalidTransitionError):
        conn.mark_reconnecting()


def test_info_snapshot():
    conn = make_connection()
    info = conn.info()
    conn.mark_connected(2.0)
    assert info.status is ConnectionStatus.CONNECTING
    assert (info.id, info.url) == ("ws-0-abcd", "ws://feed")


def test_status_values_are_strings():
    assert ConnectionStatus.RECONNECTING == "reconnecting"
    assert ConnectionStatus("failed") is ConnectionStatus.FAILED

"""Connection records and their state machine."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Set

from .exceptions import InvalidTransitionError
from .transport import Transport


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


_TRANSITIONS: Dict[ConnectionStatus, FrozenSet[ConnectionStatus]] = {
    ConnectionStatus.CONNECTING: frozenset(
        {ConnectionStatus.CONNECTED, ConnectionStatus.DISCONNECTED}
    ),
    ConnectionStatus.CONNECTED: frozenset({ConnectionStatus.DISCONNECTED}),
    # error and close both report a drop for the same socket
    ConnectionStatus.DISCONNECTED: frozenset(
        {
            ConnectionStatus.DISCONNECTED,
            ConnectionStatus.RECONNECTING,
            ConnectionStatus.FAILED,
        }
    ),
    ConnectionStatus.RECONNECTING: frozenset(
        {ConnectionStatus.CONNECTING, ConnectionStatus.FAILED}
    ),
    ConnectionStatus.FAILED: frozenset(),
}


@dataclass(frozen=True)
class ConnectionInfo:
    """Read-only snapshot returned by ``ConnectionPool.get_connections``."""

    id: str
    url: str
    status: ConnectionStatus


@dataclass
class ConnectionStats:
    """Traffic counters kept for the lifetime of a connection."""

    messages_sent: int = 0
    messages_received: int = 0
    errors: int = 0
    reconnects: int = 0
    created_at: float = field(default_factory=time.time)

    def as_dict(self) -> Dict[str, float]:
        return {
            "messages_sent": self.messages_sent,
            "messages_received": self.messages_received,
            "errors": self.errors,
            "reconnects": self.reconnects,
            "created_at": self.created_at,
        }


@dataclass
class Connection:
    """One logical session to ``url``, surviving transport replacements."""

    id: str
    url: str
    last_activity: float
    protocols: Optional[List[str]] = None
    transport: Optional[Transport] = None
    status: ConnectionStatus = ConnectionStatus.CONNECTING
    reconnect_attempts: int = 0
    subscriptions: Set[str] = field(default_factory=set)
    stats: ConnectionStats = field(default_factory=ConnectionStats)

    def _move(self, target: ConnectionStatus) -> None:
        if target not in _TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"{self.id}: {self.status.value} -> {target.value} not allowed"
            )
        self.status = target

    def touch(self, now: float) -> None:
        self.last_activity = now

    def mark_connected(self, now: float) -> None:
        self._move(ConnectionStatus.CONNECTED)
        self.reconnect_attempts = 0
        self.touch(now)

    def mark_disconnected(self) -> None:
        self._move(ConnectionStatus.DISCONNECTED)

    def mark_reconnecting(self) -> int:
        """Enter RECONNECTING and return the new attempt number."""

        self._move(ConnectionStatus.RECONNECTING)
        self.reconnect_attempts += 1
        self.stats.reconnects += 1
        return self.reconnect_attempts

    def mark_connecting(self, transport: Transport) -> None:
        self._move(ConnectionStatus.CONNECTING)
        self.transport = transport

    def mark_failed(self) -> None:
        self._move(ConnectionStatus.FAILED)

    def info(self) -> ConnectionInfo:
        return ConnectionInfo(id=self.id, url=self.url, status=self.status)

"""Managed pool of persistent, rate-limited feed connections."""

from .config import PoolConfig, load_pool_config
from .connection import ConnectionInfo, ConnectionStats, ConnectionStatus
from .events import (
    ClosedEvent,
    ConnectedEvent,
    DisconnectedEvent,
    ErrorEvent,
    EventNotifier,
    MessageEvent,
    PoolEvent,
    RateLimitedEvent,
    ReconnectFailedEvent,
    ReconnectingEvent,
)
from .exceptions import (
    CompressionError,
    ConfigurationError,
    EnvelopeError,
    FeedlinkError,
    RateLimitExceeded,
    TransportError,
)
from .pool import ConnectionPool
from .transport import Transport, WebSocketTransport

__all__ = [
    "ConnectionPool",
    "PoolConfig",
    "load_pool_config",
    "ConnectionInfo",
    "ConnectionStats",
    "ConnectionStatus",
    "EventNotifier",
    "PoolEvent",
    "ClosedEvent",
    "ConnectedEvent",
    "DisconnectedEvent",
    "ErrorEvent",
    "MessageEvent",
    "RateLimitedEvent",
    "ReconnectFailedEvent",
    "ReconnectingEvent",
    "FeedlinkError",
    "CompressionError",
    "ConfigurationError",
    "EnvelopeError",
    "RateLimitExceeded",
    "TransportError",
    "Transport",
    "WebSocketTransport",
]

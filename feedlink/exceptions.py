"""Error taxonomy for the connection pool."""

from __future__ import annotations


class FeedlinkError(RuntimeError):
    """Base exception for connection pool errors."""


class ConfigurationError(FeedlinkError):
    """Raised when pool configuration fails validation."""


class RateLimitExceeded(FeedlinkError):
    """Raised when a key has no rate-limit units left in the current window."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Rate limit exhausted for '{key}'")
        self.key = key


class CompressionError(FeedlinkError):
    """Raised when a payload cannot be compressed or decompressed."""


class TransportError(FeedlinkError):
    """Raised when the underlying transport cannot carry a frame."""


class InvalidTransitionError(FeedlinkError):
    """Raised on a connection state change the state machine does not allow."""


class EnvelopeError(FeedlinkError, ValueError):
    """Raised when a subscription envelope fails validation."""

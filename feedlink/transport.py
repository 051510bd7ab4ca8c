"""Message transports driven by the connection pool.

A transport owns one socket. It reports lifecycle changes to a
:class:`TransportListener` and passes itself along with every notification, so
the listener can ignore a handle it has already replaced.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Protocol, Sequence, Union

import websockets

from .exceptions import TransportError
from .logging import logger

Frame = Union[str, bytes]


class TransportListener(Protocol):
    def on_open(self, transport: "Transport") -> None: ...

    def on_message(self, transport: "Transport", data: Frame) -> None: ...

    def on_close(
        self, transport: "Transport", code: Optional[int], reason: str
    ) -> None: ...

    def on_error(self, transport: "Transport", error: BaseException) -> None: ...


class Transport(ABC):
    """Bidirectional message channel to a single URL."""

    def __init__(
        self,
        url: str,
        protocols: Optional[Sequence[str]],
        listener: TransportListener,
    ) -> None:
        self.url = url
        self.protocols: Optional[List[str]] = list(protocols) if protocols else None
        self.listener = listener

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether frames can be sent right now."""

    @abstractmethod
    def open(self) -> None:
        """Start connecting; ``on_open`` or ``on_error``/``on_close`` follows."""

    @abstractmethod
    async def send(self, data: Frame) -> None:
        """Send one frame, raising on failure."""

    @abstractmethod
    def ping(self) -> None:
        """Send a ping frame without waiting for the pong."""

    @abstractmethod
    def close(self) -> None:
        """Close the channel. Safe to call more than once."""


TransportFactory = Callable[
    [str, Optional[Sequence[str]], TransportListener], Transport
]


class WebSocketTransport(Transport):
    """:class:`Transport` backed by the ``websockets`` client."""

    def __init__(
        self,
        url: str,
        protocols: Optional[Sequence[str]],
        listener: TransportListener,
    ) -> None:
        super().__init__(url, protocols, listener)
        self._ws = None
        self._task: Optional[asyncio.Task] = None
        self._open = False
        self._closing = False

    @property
    def is_open(self) -> bool:
        return self._open and not self._closing

    def open(self) -> None:
        if self._task is not None:
            raise TransportError("transport already opened")
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        try:
            self._ws = await websockets.connect(self.url, subprotocols=self.protocols)
            if self._closing:
                await self._ws.close()
                return
            self._open = True
            self.listener.on_open(self)
            async for message in self._ws:
                self.listener.on_message(self, message)
        except asyncio.CancelledError:
            self._open = False
            raise
        except Exception as exc:
            self._open = False
            self.listener.on_error(self, exc)
        self._open = False
        code = getattr(self._ws, "close_code", None)
        reason = getattr(self._ws, "close_reason", None) or ""
        self.listener.on_close(self, code, reason)

    async def send(self, data: Frame) -> None:
        if self._ws is None or not self.is_open:
            raise TransportError(f"transport to {self.url} is not open")
        await self._ws.send(data)

    def ping(self) -> None:
        if self._ws is None or not self.is_open:
            return
        pending = asyncio.ensure_future(self._ws.ping())
        pending.add_done_callback(self._ping_done)

    def _ping_done(self, pending: asyncio.Future) -> None:
        if pending.cancelled():
            return
        exc = pending.exception()
        if exc is not None:
            logger.warning("ping_failed", url=self.url, error=str(exc))

    def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        if self._ws is not None and self._open:
            asyncio.ensure_future(self._ws.close())
        elif self._task is not None and not self._task.done():
            self._task.cancel()

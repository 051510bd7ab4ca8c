"""Typed lifecycle and data events published by the pool."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Tuple, Type, Union

from .logging import logger


@dataclass(frozen=True)
class ConnectedEvent:
    id: str
    url: str


@dataclass(frozen=True)
class DisconnectedEvent:
    id: str
    url: str


@dataclass(frozen=True)
class MessageEvent:
    id: str
    url: str
    data: Union[str, bytes]


@dataclass(frozen=True)
class ErrorEvent:
    id: str
    url: str
    error: BaseException


@dataclass(frozen=True)
class RateLimitedEvent:
    id: str
    url: str


@dataclass(frozen=True)
class ReconnectingEvent:
    id: str
    url: str
    attempt: int
    max_attempts: int


@dataclass(frozen=True)
class ReconnectFailedEvent:
    id: str
    url: str


@dataclass(frozen=True)
class ClosedEvent:
    pass


PoolEvent = Union[
    ConnectedEvent,
    DisconnectedEvent,
    MessageEvent,
    ErrorEvent,
    RateLimitedEvent,
    ReconnectingEvent,
    ReconnectFailedEvent,
    ClosedEvent,
]

EVENT_TYPES: Tuple[Type[Any], ...] = PoolEvent.__args__  # type: ignore[attr-defined]

Listener = Callable[[PoolEvent], Any]


class EventNotifier:
    """Deliver events synchronously to registered listeners.

    A listener registered without event types receives every event. Listener
    failures are logged and never reach the emitter. Coroutines returned by a
    listener are scheduled on the running loop.
    """

    def __init__(self) -> None:
        self._listeners: List[Tuple[Listener, Tuple[Type[Any], ...]]] = []
        self._pending: Dict[int, asyncio.Future] = {}

    def subscribe(
        self, listener: Listener, *event_types: Type[Any]
    ) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""

        for event_type in event_types:
            if event_type not in EVENT_TYPES:
                raise TypeError(f"{event_type!r} is not a pool event type")
        entry = (listener, tuple(event_types))
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def emit(self, event: PoolEvent) -> None:
        for listener, event_types in list(self._listeners):
            if event_types and not isinstance(event, event_types):
                continue
            try:
                res = listener(event)
                if asyncio.iscoroutine(res):
                    self._schedule(res)
            except Exception as exc:  # keep the pool robust to listener errors
                logger.error(
                    "listener_error", event_type=type(event).__name__, error=str(exc)
                )

    def _schedule(self, coro: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no running loop; close it so it is not left un-awaited
            coro.close()
            raise
        task = loop.create_task(coro)
        self._pending[id(task)] = task
        task.add_done_callback(self._listener_done)

    def _listener_done(self, task: asyncio.Future) -> None:
        self._pending.pop(id(task), None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("listener_error", error=str(exc))

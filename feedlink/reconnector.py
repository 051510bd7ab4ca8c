"""Reconnection scheduling with exponential backoff and jitter."""

from __future__ import annotations

import asyncio
import random
from typing import Any, Callable, Optional

from .connection import Connection, ConnectionStatus
from .logging import logger

BACKOFF_FACTOR = 1.5
JITTER_RATIO = 0.3

Scheduler = Callable[[float, Callable[[], None]], Any]


def _loop_scheduler(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class Reconnector:
    """Plan and fire reconnection attempts for dropped connections.

    The timers are never cancelled. When one fires, the connection must still
    be registered and waiting in RECONNECTING, otherwise the attempt is a
    no-op.

    Parameters
    ----------
    base_interval:
        Delay before the first attempt, in seconds.
    max_attempts:
        Consecutive attempts allowed before a connection fails.
    is_registered:
        Returns whether the pool still owns the connection.
    reopen:
        Opens a fresh transport for the connection.
    scheduler:
        ``(delay, callback)`` one-shot timer; defaults to ``loop.call_later``.
    rng:
        Uniform ``[0, 1)`` source for jitter.
    """

    def __init__(
        self,
        base_interval: float,
        max_attempts: int,
        *,
        is_registered: Callable[[Connection], bool],
        reopen: Callable[[Connection], None],
        scheduler: Optional[Scheduler] = None,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.base_interval = base_interval
        self.max_attempts = max_attempts
        self._is_registered = is_registered
        self._reopen = reopen
        self._scheduler = scheduler or _loop_scheduler
        self._rng = rng

    def backoff(self, attempt: int) -> float:
        """Return the jittered delay for ``attempt`` (1-based)."""

        base = self.base_interval * BACKOFF_FACTOR ** (attempt - 1)
        return base + self._rng() * JITTER_RATIO * base

    def exhausted(self, connection: Connection) -> bool:
        return connection.reconnect_attempts >= self.max_attempts

    def schedule(self, connection: Connection) -> Optional[float]:
        """Move ``connection`` to RECONNECTING and arm its timer.

        Returns the delay, or ``None`` when attempts are exhausted and nothing
        was scheduled.
        """

        if self.exhausted(connection):
            return None
        attempt = connection.mark_reconnecting()
        delay = self.backoff(attempt)
        self._scheduler(delay, lambda: self._fire(connection))
        logger.info(
            "reconnect_scheduled",
            id=connection.id,
            url=connection.url,
            attempt=attempt,
            delay=round(delay, 3),
        )
        return delay

    def _fire(self, connection: Connection) -> None:
        if (
            not self._is_registered(connection)
            or connection.status is not ConnectionStatus.RECONNECTING
        ):
            logger.debug("reconnect_skipped", id=connection.id)
            return
        self._reopen(connection)

"""Per-connection outbound rate limiting."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict

from asyncio_throttle import Throttler

from .exceptions import RateLimitExceeded


class AdmissionThrottler(Throttler):
    """Sliding-window throttler that rejects instead of waiting."""

    def try_acquire(self) -> bool:
        self.flush()
        if len(self._task_logs) >= self.rate_limit:
            return False
        self._task_logs.append(time.monotonic())
        return True


@dataclass
class KeyedRateLimiter:
    """Allow ``rate_limit`` units per ``period`` seconds for each key."""

    rate_limit: int
    period: float
    _throttlers: Dict[str, AdmissionThrottler] = field(
        default_factory=dict, init=False
    )

    def _throttler(self, key: str) -> AdmissionThrottler:
        throttler = self._throttlers.get(key)
        if throttler is None:
            throttler = AdmissionThrottler(rate_limit=self.rate_limit, period=self.period)
            self._throttlers[key] = throttler
        return throttler

    async def consume(self, key: str) -> None:
        """Take one unit for ``key`` or raise :class:`RateLimitExceeded`."""

        if not self._throttler(key).try_acquire():
            raise RateLimitExceeded(key)

    def forget(self, key: str) -> None:
        """Drop the counters held for ``key``."""

        self._throttlers.pop(key, None)

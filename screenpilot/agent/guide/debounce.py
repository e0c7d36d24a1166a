from __future__ import annotations

"""
Quiet-period coalescing for screen-change events.

Every `push` restarts the quiet period; the callback fires once, with the latest
value, after no event arrived for `quiet_period_s`. The clock is injectable so
tests can step time explicitly and call `poll`.
"""

import asyncio
import logging
import time
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Debouncer(Generic[T]):
    def __init__(
        self,
        quiet_period_s: float,
        callback: Callable[[T], None],
        clock: Callable[[], float] = time.monotonic,
    ):
        if quiet_period_s < 0:
            raise ValueError("quiet_period_s must be >= 0")
        self.quiet_period_s = quiet_period_s
        self.callback = callback
        self.clock = clock
        self._pending: Optional[T] = None
        self._has_pending = False
        self._deadline = 0.0
        self.fired = 0

    @property
    def has_pending(self) -> bool:
        return self._has_pending

    def push(self, value: T) -> None:
        self._pending = value
        self._has_pending = True
        self._deadline = self.clock() + self.quiet_period_s

    def time_until_due(self) -> Optional[float]:
        if not self._has_pending:
            return None
        return max(0.0, self._deadline - self.clock())

    def poll(self) -> bool:
        """Fire the callback if the quiet period has elapsed. Returns True if it fired."""
        if not self._has_pending or self.clock() < self._deadline:
            return False
        value = self._pending
        self.cancel()
        self.fired += 1
        self.callback(value)  # type: ignore[arg-type]
        return True

    def cancel(self) -> None:
        self._pending = None
        self._has_pending = False


class LoopDebouncer(Debouncer[T]):
    """`Debouncer` that arms an asyncio timer on every push instead of being polled."""

    def __init__(
        self,
        quiet_period_s: float,
        callback: Callable[[T], None],
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(quiet_period_s, callback, clock)
        self._handle: Optional[asyncio.TimerHandle] = None

    def push(self, value: T) -> None:
        super().push(value)
        self._arm(self.quiet_period_s)

    def _arm(self, delay: float) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = asyncio.get_running_loop().call_later(delay, self._on_timer)

    def _on_timer(self) -> None:
        self._handle = None
        if self.poll():
            return
        remaining = self.time_until_due()
        if remaining is not None:
            self._arm(remaining)

    def cancel(self) -> None:
        super().cancel()
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

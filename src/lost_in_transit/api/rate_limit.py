from __future__ import annotations

import threading
import time
from typing import Callable


class IntervalGate:
    """Fixed-interval gate: consecutive `wait()` returns are at least `interval` apart.

    Used to keep provider calls polite regardless of what the caller does
    between them. Clock and sleep are injectable for tests.
    """

    def __init__(
        self,
        interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.interval = max(0.0, float(interval))
        self._clock = clock
        self._sleep = sleep
        self._next_allowed: float | None = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """Block until a call is allowed; return the seconds slept."""
        with self._lock:
            now = self._clock()
            delay = 0.0
            if self._next_allowed is not None and now < self._next_allowed:
                delay = self._next_allowed - now
                self._sleep(delay)
                now = self._next_allowed
            self._next_allowed = now + self.interval
            return delay

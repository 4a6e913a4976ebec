import threading
import time
from typing import Callable


class RateLimiter:
    """
    Gate consulted by the tailer before handing a line to the consumer.

    - allow(): True lets the line through (may block to pace output);
      False drops it.
    - close(): called exactly once when the tailer's loop exits.
    """

    def allow(self) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class NoopRateLimiter(RateLimiter):
    def allow(self) -> bool:
        return True

    def close(self) -> None:
        return None


class TickerRateLimiter(RateLimiter):
    """
    Paces allow() to a fixed period of 1/lines_per_second.

    Behaves like a ticker with a one-slot buffer: a tick that nobody waited
    for is kept, older missed ticks are dropped, so a slow consumer never
    gets a burst afterwards.
    """

    def __init__(
        self,
        lines_per_second: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        try:
            lps = float(lines_per_second)
        except (TypeError, ValueError):
            lps = 0.0
        if lps <= 0.0:
            raise ValueError(f"lines_per_second must be > 0, got {lines_per_second!r}")
        self._period = 1.0 / lps
        self._clock = clock
        self._next_tick = clock() + self._period
        self._lock = threading.Lock()
        self._closed = threading.Event()

    @property
    def period_s(self) -> float:
        return self._period

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def allow(self) -> bool:
        with self._lock:
            while True:
                if self._closed.is_set():
                    return False
                now = self._clock()
                tick = self._next_tick
                if now >= tick:
                    nxt = tick + self._period
                    if nxt <= now:
                        # Missed ticks are not accumulated.
                        missed = int((now - tick) / self._period)
                        nxt = tick + (missed + 1) * self._period
                        while nxt <= now:
                            nxt += self._period
                    self._next_tick = nxt
                    return True
                # close() sets the event, so a pending wait ends early.
                self._closed.wait(tick - now)

    def close(self) -> None:
        self._closed.set()

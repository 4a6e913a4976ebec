from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class StopToken:
    """
    Cooperative cancellation: a stop event plus an optional deadline.

    The tailer checks it at the top of each loop iteration and uses wait()
    for its backoff sleeps so they end as soon as a stop is requested.
    """

    def __init__(
        self,
        stop_event: Optional[threading.Event] = None,
        timeout_s: Optional[float] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._event = stop_event if stop_event is not None else threading.Event()
        self._clock = clock
        self._deadline: Optional[float] = None
        if timeout_s is not None:
            self._deadline = clock() + max(0.0, float(timeout_s))

    @property
    def event(self) -> threading.Event:
        return self._event

    def remaining_s(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def is_set(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and self._clock() >= self._deadline

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; returns True if stopped meanwhile."""
        s = max(0.0, float(seconds or 0.0))
        rem = self.remaining_s()
        if rem is not None:
            s = min(s, rem)
        self._event.wait(s)
        return self.is_set()

    def set(self) -> None:
        self._event.set()


def request_stop_and_join(
    *,
    stop_event: Optional[threading.Event],
    thread: Optional[threading.Thread],
    join_timeout_s: float,
) -> bool:
    """
    Request a thread to stop and join for a bounded time.

    Returns:
      still_running: True if the thread is still alive after the join.
    """
    if stop_event is not None:
        stop_event.set()
    t = thread
    if t is not None and t.is_alive() and t is not threading.current_thread():
        t.join(timeout=float(join_timeout_s or 0.0))
    return bool(t is not None and t.is_alive())

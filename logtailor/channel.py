import threading
from collections import deque
from typing import Any, Deque, Iterator, Optional, Tuple


class ChannelClosed(Exception):
    pass


class Channel:
    """
    Closable FIFO hand-off between the tailer thread and a consumer.

    - maxsize > 0: send() blocks while the buffer is full.
    - maxsize <= 0: unbounded.
    - close() wakes every waiter; receivers drain what is left, then get
      ok=False.
    """

    def __init__(self, maxsize: int = 1) -> None:
        try:
            n = int(maxsize)
        except (TypeError, ValueError):
            n = 1
        self._maxsize = n if n > 0 else 0
        self._items: Deque[Any] = deque()
        self._closed = False
        self._cond = threading.Condition(threading.Lock())

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def _full(self) -> bool:
        return self._maxsize > 0 and len(self._items) >= self._maxsize

    def send(self, item: Any) -> None:
        with self._cond:
            while not self._closed and self._full():
                self._cond.wait()
            if self._closed:
                raise ChannelClosed("send on closed channel")
            self._items.append(item)
            self._cond.notify_all()

    def try_send(self, item: Any) -> bool:
        with self._cond:
            if self._closed:
                raise ChannelClosed("send on closed channel")
            if self._full():
                return False
            self._items.append(item)
            self._cond.notify_all()
            return True

    def receive(self, timeout: Optional[float] = None) -> Tuple[Any, bool]:
        """
        Returns (item, True), or (None, False) once closed and drained.
        Raises TimeoutError when nothing arrives within timeout.
        """
        with self._cond:
            ok = self._cond.wait_for(lambda: bool(self._items) or self._closed, timeout=timeout)
            if not ok:
                raise TimeoutError("channel receive timed out")
            if self._items:
                item = self._items.popleft()
                self._cond.notify_all()
                return item, True
            return None, False

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        while True:
            item, ok = self.receive()
            if not ok:
                return
            yield item

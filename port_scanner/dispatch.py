from __future__ import annotations

import queue
import threading
from typing import Optional

from .models import ScanTask

_CLOSED = object()


class DispatchQueue:
    """
    Bounded FIFO between the task producer and the workers.

    put() blocks while the queue is full. After close(), get() keeps handing
    out the remaining tasks and then returns None to every caller.
    """

    def __init__(self, maxsize: int = 100):
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self._q: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self._lock = threading.Lock()
        self._closed = False

    def put(self, task: ScanTask) -> None:
        if self._closed:
            raise RuntimeError("put() on a closed dispatch queue")
        self._q.put(task)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._q.put(_CLOSED)

    def get(self) -> Optional[ScanTask]:
        item = self._q.get()
        if item is _CLOSED:
            # Only the sentinel is left; put it back for the next worker.
            self._q.put(_CLOSED)
            return None
        return item

    def qsize(self) -> int:
        return self._q.qsize()

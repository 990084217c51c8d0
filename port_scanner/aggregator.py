from __future__ import annotations

import threading
from typing import Callable, List, Optional, Tuple

from .models import ScanProgress, ScanResult

ProgressCallback = Callable[[ScanProgress], None]


class ResultAggregator:
    """
    The only mutable state the workers share: open results and the scanned counter.

    Both mutations go through one lock. Callers never see the backing list;
    results() hands back a copy.
    """

    def __init__(self, total: int, on_progress: Optional[ProgressCallback] = None):
        if total < 0:
            raise ValueError("total must be >= 0")
        self._total = total
        self._scanned = 0
        self._results: List[ScanResult] = []
        self._lock = threading.Lock()
        self._on_progress = on_progress

    @property
    def total(self) -> int:
        return self._total

    def record_open(self, result: ScanResult) -> None:
        with self._lock:
            self._results.append(result)

    def advance_progress(self) -> ScanProgress:
        with self._lock:
            if self._scanned >= self._total:
                raise RuntimeError(f"progress advanced past total ({self._total})")
            self._scanned += 1
            snap = ScanProgress(self._scanned, self._total)
            # Called under the lock so sinks see counts in order.
            if self._on_progress is not None:
                self._on_progress(snap)
        return snap

    def progress(self) -> ScanProgress:
        with self._lock:
            return ScanProgress(self._scanned, self._total)

    def results(self) -> Tuple[ScanResult, ...]:
        with self._lock:
            return tuple(self._results)

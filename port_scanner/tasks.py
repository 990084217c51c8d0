from __future__ import annotations

from typing import Iterator, Optional, Sequence, Tuple

from .models import ScanTask
from .ports import range_size


def iter_tasks(
    targets: Sequence[str],
    port_range: Optional[Tuple[int, int]] = None,
    ports: Sequence[int] = (),
) -> Iterator[ScanTask]:
    """Per target: every port of the inclusive range, then the explicit ports."""
    for t in targets:
        if port_range is not None:
            start, end = port_range
            for p in range(start, end + 1):
                yield ScanTask(t, p)
        for p in ports:
            yield ScanTask(t, p)


def count_tasks(
    targets: Sequence[str],
    port_range: Optional[Tuple[int, int]] = None,
    ports: Sequence[int] = (),
) -> int:
    return len(targets) * (range_size(port_range) + len(ports))

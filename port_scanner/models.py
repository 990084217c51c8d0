from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

STATUS_OPEN = "open"
STATUS_CLOSED = "closed"

# Host identifier (IP or hostname); passed through untouched.
ScanTarget = str


@dataclass(frozen=True)
class ScanTask:
    target: ScanTarget
    port: int

    @property
    def address(self) -> str:
        # Same form as net.JoinHostPort: IPv6 literals get brackets.
        if ":" in self.target:
            return f"[{self.target}]:{self.port}"
        return f"{self.target}:{self.port}"


@dataclass(frozen=True)
class ScanResult:
    target: ScanTarget
    port: int
    status: str = STATUS_OPEN
    banner: str = ""
    service: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status == STATUS_OPEN


@dataclass(frozen=True)
class ScanProgress:
    scanned: int
    total: int

    @property
    def done(self) -> bool:
        return self.scanned >= self.total


@dataclass(frozen=True)
class ScanSummary:
    elapsed: float
    total: int
    results: Tuple[ScanResult, ...] = ()

    @property
    def open_count(self) -> int:
        return sum(1 for r in self.results if r.is_open)


@dataclass(frozen=True)
class TaskOutcome:
    """
    What the connect-retry protocol produced for one task.
    A missing result means every attempt failed.
    """

    task: ScanTask
    result: Optional[ScanResult] = None
    attempts: int = 0
    errors: Tuple[str, ...] = field(default=())

    @property
    def ok(self) -> bool:
        return self.result is not None

from __future__ import annotations

from typing import Optional

from .models import ScanTask


class ScanError(Exception):
    """Base class for everything the scanner raises."""


class ConfigurationError(ScanError, ValueError):
    """Bad ports, timeout, worker count or target selection. Fatal, raised before any worker starts."""


class ConnectionFailure(ScanError):
    """One failed dial attempt. Retried by the worker, never surfaced to callers of scan()."""

    def __init__(self, task: ScanTask, attempt: int, cause: Optional[BaseException] = None):
        self.task = task
        self.attempt = attempt
        self.cause = cause
        reason = cause if cause is not None else "unknown error"
        super().__init__(f"attempt {attempt + 1} to {task.address} failed: {reason}")


class BannerReadFailure(ScanError):
    """Reading the banner after a good connect failed; treated as no banner."""

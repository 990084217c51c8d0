from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from .errors import ConfigurationError
from .ports import MAX_PORT, MIN_PORT, dedupe_ports
from .tasks import count_tasks

DEFAULT_WORKERS = 100
DEFAULT_TIMEOUT = 5.0
DEFAULT_BANNER_TIMEOUT = 2.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_QUEUE_SIZE = 100


@dataclass(frozen=True)
class ScanConfig:
    """
    Everything one scan run needs. Built once, never mutated.

    ``port_range`` is inclusive. ``ports`` is scanned after the range, per target.
    A ``timeout`` of 0 leaves the connect timeout to the OS.
    """

    targets: Tuple[str, ...]
    port_range: Optional[Tuple[int, int]] = None
    ports: Tuple[int, ...] = ()
    workers: int = DEFAULT_WORKERS
    timeout: float = DEFAULT_TIMEOUT
    banner: bool = True
    banner_timeout: float = DEFAULT_BANNER_TIMEOUT
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    queue_size: int = DEFAULT_QUEUE_SIZE

    @classmethod
    def build(
        cls,
        targets: Iterable[str],
        port_range: Optional[Tuple[int, int]] = None,
        ports: Iterable[int] = (),
        **options,
    ) -> "ScanConfig":
        """De-dupes targets and ports so each (target, port) pair is scanned once, then validates."""
        uniq_targets = tuple(dict.fromkeys(t for t in targets))
        uniq_ports = tuple(dedupe_ports(ports, port_range))
        config = cls(
            targets=uniq_targets,
            port_range=tuple(port_range) if port_range is not None else None,
            ports=uniq_ports,
            **options,
        )
        config.validate()
        return config

    @property
    def total(self) -> int:
        return count_tasks(self.targets, self.port_range, self.ports)

    @property
    def connect_timeout(self) -> Optional[float]:
        return self.timeout if self.timeout > 0 else None

    def validate(self) -> None:
        if not self.targets:
            raise ConfigurationError("No targets to scan")
        if any(not t or not str(t).strip() for t in self.targets):
            raise ConfigurationError("Empty target")

        if self.port_range is not None:
            if len(self.port_range) != 2:
                raise ConfigurationError(f"Port range must be (start, end), got {self.port_range!r}")
            start, end = self.port_range
            _check_port(start)
            _check_port(end)
            if start > end:
                raise ConfigurationError(f"Invalid port range: {start}-{end} (start > end)")
        for p in self.ports:
            _check_port(p)
        if self.port_range is None and not self.ports:
            raise ConfigurationError("No ports to scan")

        # Each (target, port) pair must be enumerated once; build() normalises this.
        if len(set(self.targets)) != len(self.targets):
            raise ConfigurationError("Duplicate targets")
        if len(set(self.ports)) != len(self.ports):
            raise ConfigurationError("Duplicate ports")
        if self.port_range is not None:
            start, end = self.port_range
            inside = [p for p in self.ports if start <= p <= end]
            if inside:
                raise ConfigurationError(f"Ports {inside} are already in range {start}-{end}")

        if self.workers < 1:
            raise ConfigurationError(f"Invalid number of workers: {self.workers}")
        if self.timeout < 0:
            raise ConfigurationError(f"Timeout must be >= 0, got {self.timeout}")
        if self.banner_timeout <= 0:
            raise ConfigurationError(f"Banner timeout must be > 0, got {self.banner_timeout}")
        if self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.queue_size < 1:
            raise ConfigurationError(f"queue_size must be >= 1, got {self.queue_size}")


def _check_port(port) -> None:
    if isinstance(port, bool) or not isinstance(port, int):
        raise ConfigurationError(f"Invalid port {port!r}")
    if port < MIN_PORT or port > MAX_PORT:
        raise ConfigurationError(
            f"Invalid port {port}. Ports must be a number between {MIN_PORT} and {MAX_PORT}."
        )

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from .errors import ConfigurationError

MIN_PORT = 0
MAX_PORT = 65535


def parse_port(value) -> int:
    """
    Parses a single port. Accepts an int or a numeric string.
    Port 0 is allowed; anything outside 0-65535 is rejected.
    """
    text = str(value).strip()
    try:
        port = int(text)
    except ValueError:
        raise ConfigurationError(
            f"Invalid port {text!r}. Ports must be a number between {MIN_PORT} and {MAX_PORT}."
        ) from None
    if port < MIN_PORT or port > MAX_PORT:
        raise ConfigurationError(
            f"Invalid port {port}. Ports must be a number between {MIN_PORT} and {MAX_PORT}."
        )
    return port


def parse_port_list(spec: str) -> List[int]:
    """
    Parses a comma-separated port list: "22,80,443".
    Order is preserved; empty items are skipped.
    """
    spec = spec.strip()
    if not spec:
        raise ConfigurationError("Empty port list")

    ports: List[int] = []
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        ports.append(parse_port(part))

    if not ports:
        raise ConfigurationError(f"No ports in {spec!r}")
    return ports


def parse_port_range(start, end) -> Tuple[int, int]:
    start_port = parse_port(start)
    end_port = parse_port(end)
    if start_port > end_port:
        raise ConfigurationError(f"Invalid port range: {start_port}-{end_port} (start > end)")
    return start_port, end_port


def range_size(port_range: Optional[Tuple[int, int]]) -> int:
    if port_range is None:
        return 0
    start, end = port_range
    return end - start + 1


def dedupe_ports(ports: Iterable[int], port_range: Optional[Tuple[int, int]] = None) -> List[int]:
    """
    Drops duplicates (keeping first-seen order) and anything the range already covers.
    """
    seen = set()
    out: List[int] = []
    for p in ports:
        if p in seen:
            continue
        if port_range is not None and port_range[0] <= p <= port_range[1]:
            continue
        seen.add(p)
        out.append(p)
    return out

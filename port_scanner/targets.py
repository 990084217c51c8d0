from __future__ import annotations

import ipaddress
from typing import List, Optional

from .errors import ConfigurationError


def expand_target(target: str) -> List[str]:
    """
    Supports:
      - Single IP: "172.20.0.10"
      - CIDR: "172.20.0.0/24"
      - Hostname: "webapp" (kept as-is, resolved at connect time)
    """
    target = target.strip()
    if not target:
        raise ConfigurationError("Empty target")

    if "/" not in target:
        return [target]

    try:
        net = ipaddress.ip_network(target, strict=False)
    except ValueError as e:
        raise ConfigurationError(f"Invalid network '{target}': {e}") from e

    # hosts() excludes network + broadcast (good for /24 style)
    hosts = [str(ip) for ip in net.hosts()]
    # if /32 or single-address network
    if not hosts and net.num_addresses == 1:
        hosts = [str(net.network_address)]
    return hosts


def parse_targets(target: Optional[str] = None, targets: Optional[str] = None) -> List[str]:
    """
    Exactly one of a single target or a comma-separated target list must be given.
    """
    if not target and not targets:
        raise ConfigurationError("A target is required (--target or --targets)")
    if target and targets:
        raise ConfigurationError("Cannot use both --target and --targets")

    if target:
        return expand_target(target)

    hosts: List[str] = []
    for part in targets.split(","):
        if not part.strip():
            continue
        hosts.extend(expand_target(part))
    if not hosts:
        raise ConfigurationError(f"No targets in {targets!r}")
    return hosts

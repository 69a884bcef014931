from __future__ import annotations

import ipaddress
from typing import Iterable, Iterator, List

from .models import ScanTask, join_host_port

__all__ = ["expand_targets", "iter_tasks", "join_host_port", "parse_targets"]


def iter_tasks(host: str, ports: Iterable[int]) -> Iterator[ScanTask]:
    """
    Lazily yields one ScanTask per port, in the order given.
    Duplicate ports give duplicate tasks; range checking is left to the caller.
    """
    for port in ports:
        yield ScanTask(host=host, port=port)


def _network_hosts(spec: str) -> List[str]:
    try:
        net = ipaddress.ip_network(spec, strict=False)
    except ValueError as e:
        raise ValueError(f"Invalid network '{spec}': {e}") from e
    if net.num_addresses == 1:
        return [str(net.network_address)]
    # hosts() leaves out the network and broadcast addresses
    return [str(ip) for ip in net.hosts()]


def expand_targets(target: str) -> List[str]:
    """
    One target argument to the hosts it names: an IP literal stays as is, a
    CIDR block becomes its host addresses, and anything else is taken to be a
    hostname and left for the dialer to resolve, so a failed lookup is just a
    closed port.
    """
    target = target.strip()
    if not target:
        raise ValueError("Empty target")
    if "/" in target:
        return _network_hosts(target)
    try:
        return [str(ipaddress.ip_address(target))]
    except ValueError:
        return [target]


def parse_targets(values: Iterable[str]) -> List[str]:
    """Expands repeated and comma-separated target arguments, keeping first-seen order."""
    seen = set()
    out: List[str] = []
    for value in values:
        for part in value.split(","):
            if not part.strip():
                continue
            for host in expand_targets(part):
                if host not in seen:
                    seen.add(host)
                    out.append(host)
    return out

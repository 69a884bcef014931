from __future__ import annotations

import logging
from typing import List

logger = logging.getLogger(__name__)

MIN_PORT = 1
MAX_PORT = 65535


def port_range(start: int, end: int) -> List[int]:
    if start < MIN_PORT or end > MAX_PORT or start > end:
        raise ValueError(f"Invalid port range: {start}-{end}")
    return list(range(start, end + 1))


def parse_ports(spec: str) -> List[int]:
    """
    Parses a port specification string into a list of ports.
    Supports:
    - Single ports: "80"
    - Ranges: "1-1024"
    - Comma-separated: "22,80,443"
    - Mixed: "1-1024,8080,9000-9005"

    Malformed or out-of-range entries are logged and skipped so the rest of
    the list can still be scanned. Result is de-duplicated and sorted.
    """
    ports: List[int] = []
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                start_s, end_s = part.split("-", 1)
                ports.extend(port_range(int(start_s), int(end_s)))
            else:
                p = int(part)
                if p < MIN_PORT or p > MAX_PORT:
                    raise ValueError(f"Invalid port: {p}")
                ports.append(p)
        except ValueError as e:
            logger.warning("Skipping port entry %r: %s", part, e)

    # De-dupe, keep sorted
    return sorted(set(ports))

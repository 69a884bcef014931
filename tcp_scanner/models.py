from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


def join_host_port(host: str, port: int) -> str:
    # IPv6 literals need brackets so the port separator stays unambiguous
    if ":" in host and not host.startswith("["):
        return f"[{host}]:{port}"
    return f"{host}:{port}"


@dataclass(frozen=True)
class ScanTask:
    host: str
    port: int

    @property
    def address(self) -> str:
        return join_host_port(self.host, self.port)

    def __str__(self) -> str:
        return self.address


@dataclass(frozen=True)
class ProbeOutcome:
    task: ScanTask
    is_open: bool
    elapsed_s: float
    banner: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ScanResult:
    target: str
    open_ports: Tuple[str, ...]
    port_count: int
    total_ports: int
    progress: float
    elapsed_s: float

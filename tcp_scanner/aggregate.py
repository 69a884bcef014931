from __future__ import annotations

import threading
from typing import Callable, Iterator, List, Optional, Tuple

from .errors import ScanError
from .models import ScanResult

# (target, completed, total, percent)
ProgressCallback = Callable[[str, int, int, float], None]


def percent_of(completed: int, total: int) -> float:
    if total <= 0:
        return 100.0
    return completed / total * 100


class ProgressTracker:
    """
    Completed/total counter for one target. Shares its lock with the
    target's ResultAggregator so both are updated under the same mutex.
    """

    def __init__(
        self,
        target: str,
        total: int,
        lock: threading.Lock,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.target = target
        self.total = total
        self.completed = 0
        self.percent = 0.0 if total else 100.0
        self._lock = lock
        self._on_progress = on_progress

    def record_completion(self) -> float:
        """Must be called exactly once per task, open or not."""
        with self._lock:
            if self.completed >= self.total:
                raise ScanError(
                    f"{self.target}: completion recorded past total ({self.total})"
                )
            self.completed += 1
            self.percent = percent_of(self.completed, self.total)
            completed, percent = self.completed, self.percent
        if self._on_progress is not None:
            self._on_progress(self.target, completed, self.total, percent)
        return percent

    def snapshot(self) -> Tuple[int, int, float]:
        with self._lock:
            return self.completed, self.total, self.percent


class ResultAggregator:
    def __init__(self, target: str, total_ports: int, lock: threading.Lock):
        self.target = target
        self.total_ports = total_ports
        self._open: List[str] = []
        self._lock = lock

    def record_open(self, address: str) -> None:
        with self._lock:
            self._open.append(address)

    def finalize(self, elapsed_s: float, progress: float) -> ScanResult:
        """Only valid once every worker for the target has exited."""
        with self._lock:
            open_ports = tuple(self._open)
        return ScanResult(
            target=self.target,
            open_ports=open_ports,
            port_count=len(open_ports),
            total_ports=self.total_ports,
            progress=progress,
            elapsed_s=elapsed_s,
        )


class ResultSet:
    """Finished ScanResults for one run, in the order targets completed."""

    def __init__(self):
        self._results: List[ScanResult] = []
        self._lock = threading.Lock()

    def append(self, result: ScanResult) -> None:
        with self._lock:
            self._results.append(result)

    def snapshot(self) -> List[ScanResult]:
        with self._lock:
            return list(self._results)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def __iter__(self) -> Iterator[ScanResult]:
        return iter(self.snapshot())

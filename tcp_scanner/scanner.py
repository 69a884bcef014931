from __future__ import annotations

import contextlib
import logging
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import List, Optional, Sequence

from .aggregate import ProgressCallback, ProgressTracker, ResultAggregator, ResultSet
from .errors import ResourceExhaustedError, ScanError
from .models import ScanResult, ScanTask
from .probe import probe
from .targets import iter_tasks

logger = logging.getLogger(__name__)

# Queue closure marker; each worker consumes exactly one.
_CLOSED = object()

# How often a blocked producer checks whether any worker is still alive.
_PUT_POLL_S = 0.5


class WorkerPool:
    """
    W threads draining one bounded queue for a single target.

    start() -> submit()* -> close() -> join(). join() blocks until every worker
    has seen the closure marker (or exited) and re-raises anything a worker
    raised unexpectedly.
    """

    def __init__(
        self,
        tracker: ProgressTracker,
        aggregator: ResultAggregator,
        workers: int,
        timeout_s: float,
        grab_banner: bool = True,
        gate: Optional[threading.BoundedSemaphore] = None,
    ):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.tracker = tracker
        self.aggregator = aggregator
        self.workers = workers
        self.timeout_s = timeout_s
        self.grab_banner = grab_banner
        self._gate = gate
        self._tasks: queue.Queue = queue.Queue(maxsize=workers)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._futures: List[Future] = []

    def start(self) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=self.workers,
            thread_name_prefix=f"scan-{self.tracker.target}",
        )
        self._futures = [self._executor.submit(self._work) for _ in range(self.workers)]

    def _alive(self) -> bool:
        return any(not f.done() for f in self._futures)

    def _put(self, item) -> bool:
        # Blocks while the queue is full, but gives up once nobody is left to drain it.
        while True:
            try:
                self._tasks.put(item, timeout=_PUT_POLL_S)
                return True
            except queue.Full:
                if not self._alive():
                    return False

    def submit(self, task: ScanTask) -> None:
        if not self._put(task):
            raise ScanError(f"{self.tracker.target}: all workers exited before {task} was queued")

    def close(self) -> None:
        for _ in range(self.workers):
            if not self._put(_CLOSED):
                break

    def join(self) -> None:
        try:
            for fut in self._futures:
                fut.result()
        finally:
            if self._executor is not None:
                self._executor.shutdown(wait=True)

    def _probe(self, task: ScanTask):
        gate = self._gate if self._gate is not None else contextlib.nullcontext()
        with gate:
            return probe(task, self.timeout_s, grab_banner=self.grab_banner)

    def _work(self) -> None:
        while True:
            task = self._tasks.get()
            if task is _CLOSED:
                return

            try:
                outcome = self._probe(task)
            except ResourceExhaustedError as e:
                # The task counts as done (not open); this worker stops, the rest carry on.
                self.tracker.record_completion()
                logger.error("%s; worker exiting", e)
                return

            if outcome.is_open:
                self.aggregator.record_open(task.address)
                if outcome.banner:
                    logger.debug("Connection to %s was successful | banner: %s", task, outcome.banner)
                else:
                    logger.debug("Connection to %s was successful", task)
            else:
                logger.debug("Failed to connect to %s: %s", task, outcome.error)
            self.tracker.record_completion()


def scan(
    target: str,
    ports: Sequence[int],
    workers: int,
    timeout_s: float,
    grab_banner: bool = True,
    on_progress: Optional[ProgressCallback] = None,
    gate: Optional[threading.BoundedSemaphore] = None,
) -> ScanResult:
    """
    Scans every port of one target with its own queue and worker pool and
    returns the finished result once the pool has fully drained.
    """
    start = time.perf_counter()
    total = len(ports)
    lock = threading.Lock()
    tracker = ProgressTracker(target, total, lock, on_progress=on_progress)
    aggregator = ResultAggregator(target, total, lock)
    pool = WorkerPool(tracker, aggregator, workers, timeout_s, grab_banner=grab_banner, gate=gate)

    logger.info("Scanning %s: %d ports with %d workers", target, total, workers)
    pool.start()
    try:
        for task in iter_tasks(target, ports):
            pool.submit(task)
    finally:
        pool.close()
        pool.join()

    completed, _, percent = tracker.snapshot()
    if completed != total:
        raise ScanError(f"{target}: {total - completed} of {total} tasks were never probed")

    result = aggregator.finalize(elapsed_s=time.perf_counter() - start, progress=percent)
    logger.info(
        "Finished %s: %d open of %d in %.3fs",
        target, result.port_count, result.total_ports, result.elapsed_s,
    )
    return result


def scan_targets(
    targets: Sequence[str],
    ports: Sequence[int],
    workers: int,
    timeout_s: float,
    grab_banner: bool = True,
    on_progress: Optional[ProgressCallback] = None,
    max_in_flight: Optional[int] = None,
    result_set: Optional[ResultSet] = None,
) -> ResultSet:
    """
    Runs scan() for every target at once, one orchestrating thread each.

    Without max_in_flight up to len(targets) * workers connects can be open at
    the same time; with it, a single semaphore caps in-flight probes across
    all targets.
    """
    if result_set is None:
        result_set = ResultSet()
    if max_in_flight is not None and max_in_flight < 1:
        raise ValueError("max_in_flight must be >= 1")
    if not targets:
        return result_set

    gate = threading.BoundedSemaphore(max_in_flight) if max_in_flight else None

    def _scan_one(target: str) -> None:
        result = scan(
            target,
            ports,
            workers,
            timeout_s,
            grab_banner=grab_banner,
            on_progress=on_progress,
            gate=gate,
        )
        result_set.append(result)

    with ThreadPoolExecutor(max_workers=len(targets), thread_name_prefix="target") as pool:
        futures = [pool.submit(_scan_one, t) for t in targets]
        for fut in as_completed(futures):
            fut.result()

    return result_set

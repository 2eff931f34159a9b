"""callsign_directory.write_pool

Fixed-size pool of writer threads draining a bounded queue of Members.

Each worker keeps its own failure list and publishes it into its own result
slot when the queue closes, so workers never share mutable state.  The
controller closes the queue once ingestion is done and joins to collect the
failures.  Failed writes are reported, not retried.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Callable

from callsign_directory.members import Member

log = logging.getLogger(__name__)

_CLOSE = object()
_SUBMIT_POLL_SECONDS = 0.1


class PoolCancelled(Exception):
    """Raised by submit() once the pool has been cancelled."""


@dataclass
class WriteFailure:
    callsign: str
    error: Exception

    def __str__(self) -> str:
        return f"{self.callsign}: {type(self.error).__name__}: {self.error}"


@dataclass
class _WorkerResult:
    attempted: int = 0
    failures: list[WriteFailure] = field(default_factory=list)


class WritePool:
    """Bounded fan-out of `write(member)` calls across `workers` threads.

    Usage:
        with WritePool(store.put, workers=8, queue_size=100) as pool:
            for member in members:
                pool.submit(member)
        failures = pool.failures

    Leaving the block normally closes the queue and joins every worker.
    Leaving it with an exception cancels first: queued members are dropped
    without being written, and no worker outlives the block.
    """

    def __init__(
        self,
        write: Callable[[Member], None],
        workers: int,
        queue_size: int,
        name: str = "member-writer",
    ) -> None:
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        if queue_size < 1:
            raise ValueError(f"queue_size must be >= 1, got {queue_size}")
        self._write = write
        self._workers = workers
        self._name = name
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._cancelled = threading.Event()
        self._results: list[_WorkerResult | None] = [None] * workers
        self._threads: list[threading.Thread] = []
        self._closed = False
        self._joined = False
        self.failures: list[WriteFailure] = []

    # -- lifecycle ----------------------------------------------------------

    def start(self) -> "WritePool":
        if self._threads:
            raise RuntimeError("write pool already started")
        for slot in range(self._workers):
            t = threading.Thread(
                target=self._run_worker,
                args=(slot,),
                name=f"{self._name}-{slot}",
                daemon=True,
            )
            t.start()
            self._threads.append(t)
        log.debug("started %d writers", self._workers)
        return self

    def __enter__(self) -> "WritePool":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.cancel()
        self.close()
        self.join()

    @property
    def workers(self) -> int:
        return self._workers

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def attempted(self) -> int:
        """Writes attempted so far by workers that have finished."""
        return sum(r.attempted for r in self._results if r is not None)

    # -- controller side ----------------------------------------------------

    def submit(self, member: Member) -> None:
        """Queue one member, blocking while the queue is full."""
        if self._closed:
            raise RuntimeError("write pool is closed")
        while True:
            if self._cancelled.is_set():
                raise PoolCancelled(f"write of {member.callsign} not queued")
            try:
                self._queue.put(member, timeout=_SUBMIT_POLL_SECONDS)
                return
            except queue.Full:
                continue

    def close(self) -> None:
        """Signal that no more members will be submitted."""
        if self._closed:
            return
        self._closed = True
        for _ in self._threads:
            self._queue.put(_CLOSE)

    def cancel(self) -> None:
        """Stop writing; workers drain the queue without calling write()."""
        if not self._cancelled.is_set():
            log.warning("write pool cancelled")
        self._cancelled.set()

    def join(self) -> list[WriteFailure]:
        """Wait for every worker and return all write failures."""
        if not self._closed:
            raise RuntimeError("close() the write pool before join()")
        if not self._joined:
            for t in self._threads:
                t.join()
            self._joined = True
            self.failures = [
                f for r in self._results if r is not None for f in r.failures
            ]
        return self.failures

    # -- worker side --------------------------------------------------------

    def _run_worker(self, slot: int) -> None:
        result = _WorkerResult()
        while True:
            item = self._queue.get()
            if item is _CLOSE:
                break
            if self._cancelled.is_set():
                continue
            result.attempted += 1
            try:
                self._write(item)
            except Exception as exc:
                log.warning("write of %s failed: %s", item.callsign, exc)
                result.failures.append(WriteFailure(item.callsign, exc))
        self._results[slot] = result

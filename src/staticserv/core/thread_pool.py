"""
=============================================================================
THREAD POOL
=============================================================================

Bounded pool of worker threads; each accepted connection runs on one.

    ┌────────────┐ try_submit(conn) ┌──────────────────────┐
    │ accept loop│ ───────────────▶ │ Job Queue (bounded)  │
    └────────────┘                  └──────────┬───────────┘
                                               │ get()
                     ┌─────────────────────────┼─────────────────────┐
                     ▼                         ▼                     ▼
               ┌────────────┐            ┌────────────┐        ┌────────────┐
               │ worker-0   │            │ worker-1   │  ...   │ worker-N   │
               └────────────┘            └────────────┘        └────────────┘

A file read that stalls on a slow disk blocks only its own worker. The
pool starts with min_workers and grows one thread at a time, up to
max_workers, whenever every worker is busy and jobs are waiting.

When the queue is full, try_submit() returns False and the server answers
503 instead of queueing without bound.

=============================================================================
SHUTDOWN
=============================================================================

    close(timeout)
        │
        ├── wait for queued and running jobs (bounded by timeout)
        ├── one STOP sentinel per worker
        └── join each worker

Workers are daemon threads, so a connection stuck past the timeout can
never keep the process alive.

=============================================================================
"""

import logging
import queue
import threading
import time
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

Job = Tuple[Callable[..., Any], tuple]

# Queued once per worker at shutdown
_STOP = None


class _WorkerThread(threading.Thread):
    """Runs jobs from the shared queue until it dequeues the stop sentinel."""

    def __init__(self, jobs: "queue.Queue[Optional[Job]]", index: int):
        super().__init__(name=f"staticserv-worker-{index}", daemon=True)
        self.jobs = jobs
        self.busy = False
        self.handled = 0
        self.failed = 0

    def run(self):
        while True:
            job = self.jobs.get()
            try:
                if job is _STOP:
                    return
                self._run_job(*job)
            finally:
                self.jobs.task_done()

    def _run_job(self, func: Callable[..., Any], args: tuple):
        self.busy = True
        started = time.perf_counter()
        try:
            func(*args)
            self.handled += 1
        except Exception:
            # A connection handler is expected to deal with its own errors;
            # anything reaching this point is a bug, so keep the traceback
            self.failed += 1
            logger.exception("%s: job crashed after %.3fs",
                             self.name, time.perf_counter() - started)
        finally:
            self.busy = False


class ThreadPool:
    """
    Worker threads for connection handling.

    Usage:
        pool = ThreadPool(min_workers=4, max_workers=16)
        pool.start()
        if not pool.try_submit(process_connection, conn):
            reject(conn)              # queue full → 503
        pool.close(timeout=5.0)
    """

    def __init__(self, min_workers: int = 4, max_workers: int = 16, backlog: int = 100):
        """
        Args:
            min_workers: Threads started up front and kept running.
            max_workers: Upper bound the pool may grow to under load.
            backlog: Jobs that may wait for a free worker.
        """
        if not 1 <= min_workers <= max_workers:
            raise ValueError("need 1 <= min_workers <= max_workers")

        self.min_workers = min_workers
        self.max_workers = max_workers

        self._jobs: "queue.Queue[Optional[Job]]" = queue.Queue(maxsize=backlog)
        self._workers: List[_WorkerThread] = []
        self._lock = threading.Lock()
        self._accepting = False

    @property
    def running(self) -> bool:
        return self._accepting

    def start(self):
        with self._lock:
            if self._accepting:
                return
            while len(self._workers) < self.min_workers:
                self._spawn_locked()
            self._accepting = True
        logger.info("Thread pool started with %d workers (max %d)",
                    self.min_workers, self.max_workers)

    def _spawn_locked(self):
        worker = _WorkerThread(self._jobs, len(self._workers))
        self._workers.append(worker)
        worker.start()

    # =========================================================================
    # SUBMITTING
    # =========================================================================

    def try_submit(self, func: Callable[..., Any], *args: Any) -> bool:
        """
        Queue func(*args) without blocking.

        Returns:
            False if the queue is full.

        Raises:
            RuntimeError: The pool is not running.
        """
        if not self._accepting:
            raise RuntimeError("Thread pool is not running")

        try:
            self._jobs.put_nowait((func, args))
        except queue.Full:
            return False

        self._grow_if_saturated()
        return True

    def _grow_if_saturated(self):
        with self._lock:
            if len(self._workers) >= self.max_workers or self._jobs.empty():
                return
            if all(w.busy for w in self._workers):
                self._spawn_locked()
                logger.debug("Thread pool grew to %d workers", len(self._workers))

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def close(self, timeout: Optional[float] = None):
        """
        Stop accepting jobs, let pending ones finish, then stop the workers.

        Args:
            timeout: Seconds to wait for pending jobs; None waits forever.
        """
        with self._lock:
            if not self._accepting:
                return
            self._accepting = False
            workers = list(self._workers)

        logger.info("Stopping thread pool...")

        if timeout is None:
            self._jobs.join()
        else:
            deadline = time.monotonic() + timeout
            while self._jobs.unfinished_tasks and time.monotonic() < deadline:
                time.sleep(0.05)
            if self._jobs.unfinished_tasks:
                logger.warning("%d job(s) still running at shutdown", self._jobs.unfinished_tasks)

        for _ in workers:
            try:
                self._jobs.put(_STOP, timeout=0.5)
            except queue.Full:
                break
        for worker in workers:
            worker.join(timeout=2.0)

        with self._lock:
            self._workers.clear()
        logger.info("Thread pool stopped")

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    @property
    def size(self) -> int:
        return len(self._workers)

    @property
    def busy(self) -> int:
        return sum(1 for w in self._workers if w.busy)

    @property
    def pending(self) -> int:
        return self._jobs.qsize()

    def snapshot(self) -> dict:
        return {
            "workers": self.size,
            "busy": self.busy,
            "pending": self.pending,
            "handled": sum(w.handled for w in self._workers),
            "failed": sum(w.failed for w in self._workers),
        }


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. try_submit() never blocks the accept loop; False means "answer 503"
# 2. The pool grows only when every worker is busy and jobs are waiting
# 3. close() drains with a deadline, then stops workers with sentinels
# =============================================================================

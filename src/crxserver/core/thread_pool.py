"""
=============================================================================
BOUNDED WORKER POOL
=============================================================================

Connections are handed from the accept loop to a fixed-capacity pool:

    accept loop                 task queue (queue_size)          workers
    ───────────                ─────────────────────────        ─────────
    submit(conn) ──put_nowait──► [conn][conn][conn][    ] ──get──► Worker-0
         │                                                  ──get──► Worker-1
         │ queue.Full                                       ──get──► ...
         ▼                                                           (max_workers)
    caller answers 503

Rules:
- submit() never blocks the accept loop by default. A full queue is
  reported back as False and the caller sheds the connection.
- Workers start at min_workers and grow to max_workers while every worker
  is busy and tasks are waiting.
- A task that raises is logged and counted. The worker keeps running.
- shutdown() drains the queue (bounded by a timeout), then sends one
  poison pill (None) per worker.
=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """A deferred call: func(*args, **kwargs)."""
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.monotonic)


class Worker(threading.Thread):
    """Daemon thread pulling tasks until it receives None or is told to stop."""

    def __init__(self, task_queue: "queue.Queue[Optional[Task]]", worker_id: int,
                 idle_timeout: float = 60.0):
        super().__init__(name=f"crx-worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout
        self.state = WorkerState.IDLE
        self.tasks_completed = 0
        self.tasks_failed = 0
        self._stop_event = threading.Event()

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._stop_event.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        started = time.monotonic()
        waited = started - task.submitted_at

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
            logger.debug(
                f"Worker {self.worker_id} finished task in "
                f"{time.monotonic() - started:.3f}s (queued {waited:.3f}s)"
            )
        except Exception as e:
            self.tasks_failed += 1
            logger.exception(
                f"Worker {self.worker_id} task failed after "
                f"{time.monotonic() - started:.3f}s: {e}"
            )
        finally:
            self.state = WorkerState.IDLE

    def stop(self):
        self._stop_event.set()


class ThreadPool:
    """
    Fixed-capacity thread pool.

    Usage:
        pool = ThreadPool(min_workers=4, max_workers=16, queue_size=64)
        pool.start()
        if not pool.submit(handle, args=(conn,)):
            reject(conn)          # saturated
        pool.shutdown(wait=True, timeout=30)

    Capacity is max_workers running tasks plus queue_size waiting ones.
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 64,
        idle_timeout: float = 60.0,
    ):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue = queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)
        self._workers: List[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutting_down = False
        self._next_worker_id = 0

    @property
    def is_running(self) -> bool:
        return self._started and not self._shutting_down

    def start(self):
        """Spawn min_workers threads. Calling it twice is a no-op."""
        if self._started:
            return

        logger.info(
            f"Starting thread pool: {self.min_workers}-{self.max_workers} workers, "
            f"queue of {self.max_queue}"
        )
        self._shutting_down = False
        with self._lock:
            for _ in range(self.min_workers):
                self._spawn_worker_locked()
        self._started = True

    def _spawn_worker_locked(self) -> Worker:
        # Caller holds self._lock.
        worker = Worker(self._task_queue, self._next_worker_id, self.idle_timeout)
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[Dict[str, Any]] = None,
        block: bool = False,
        queue_timeout: Optional[float] = None,
    ) -> bool:
        """
        Queue func(*args, **kwargs) for a worker.

        Returns:
            True if accepted, False if the queue is full.

        Raises:
            RuntimeError: If the pool is not started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutting_down:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {})
        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            all_busy = all(w.state == WorkerState.BUSY for w in self._workers)
            if all_busy and self._task_queue.qsize() > 0:
                logger.debug(
                    f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
                )
                self._spawn_worker_locked()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop accepting tasks, optionally drain the queue, then stop workers.

        Args:
            wait: Let queued tasks finish first.
            timeout: Upper bound on the drain, in seconds. None waits forever.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutting_down = True

        if wait:
            deadline = None if timeout is None else time.monotonic() + timeout
            while self._task_queue.unfinished_tasks:
                if deadline is not None and time.monotonic() > deadline:
                    logger.warning("Thread pool drain timed out, stopping workers anyway")
                    break
                time.sleep(0.05)

        with self._lock:
            workers = list(self._workers)
            self._workers.clear()

        for worker in workers:
            worker.stop()
            try:
                self._task_queue.put_nowait(None)
            except queue.Full:
                pass  # the worker will notice the stop event instead
        for worker in workers:
            worker.join(timeout=2.0)

        self._started = False
        logger.info("Thread pool shutdown complete")

    @property
    def active_workers(self) -> int:
        return sum(1 for w in self._workers if w.state != WorkerState.STOPPED)

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def pending(self) -> int:
        """Tasks waiting in the queue."""
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        return {
            "workers": {
                "active": self.active_workers,
                "busy": self.busy_workers,
                "min": self.min_workers,
                "max": self.max_workers,
            },
            "queue": {"pending": self.pending, "max": self.max_queue},
            "tasks": {
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }

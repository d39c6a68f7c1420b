from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from loguru import logger

DEFAULT_WORKERS = 10
DEFAULT_QUEUE_SIZE = 100

# how often idle workers and blocked submitters look at the stop flag
_POLL_INTERVAL = 0.1


@dataclass
class Task:
    fn: Callable[[], object]
    name: str = "task"


@dataclass
class TaskResult:
    name: str
    ok: bool
    duration: float
    error: Optional[BaseException] = None


class WorkerPool:
    """Fixed number of threads draining a bounded task queue.

    A task that raises is reported as a failed :class:`TaskResult`; the worker
    keeps serving. ``stop()`` waits for running tasks and drops queued ones.
    """

    def __init__(
        self,
        num_workers: int = DEFAULT_WORKERS,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        log=None,
    ):
        self.num_workers = num_workers
        self.log = log or logger.bind(component="worker_pool")
        self._tasks: "queue.Queue[Task]" = queue.Queue(maxsize=queue_size)
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._threads: List[threading.Thread] = []
        self._running = False
        self._completed = 0
        self._failed = 0
        self._dropped = 0

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._stop.clear()
            self._threads = [
                threading.Thread(target=self._worker, name=f"worker-{i}", daemon=True)
                for i in range(self.num_workers)
            ]
            for thread in self._threads:
                thread.start()
            self._running = True
        self.log.info(f"Worker pool started with {self.num_workers} workers")

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._stop.set()
            threads, self._threads = self._threads, []

        for thread in threads:
            thread.join()

        dropped = 0
        while True:
            try:
                self._tasks.get_nowait()
            except queue.Empty:
                break
            dropped += 1
        if dropped:
            self._count(dropped=dropped)
            self.log.warning(f"Worker pool stopped, dropped {dropped} queued tasks")
        else:
            self.log.info("Worker pool stopped")

    def submit(self, fn: Callable[[], object], name: str = "task") -> bool:
        """Queue ``fn``. Returns False (task discarded) once the pool is stopping.

        Waits for queue space while the pool runs, never after stop.
        """
        task = Task(fn=fn, name=name)
        while not self._stop.is_set() and self.running:
            try:
                self._tasks.put(task, timeout=_POLL_INTERVAL)
                return True
            except queue.Full:
                continue

        self.log.debug(f"Worker pool not running, discarded {name}")
        self._count(dropped=1)
        return False

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "workers": self.num_workers,
                "queued": self._tasks.qsize(),
                "completed": self._completed,
                "failed": self._failed,
                "dropped": self._dropped,
            }

    def _count(self, completed: int = 0, failed: int = 0, dropped: int = 0) -> None:
        with self._lock:
            self._completed += completed
            self._failed += failed
            self._dropped += dropped

    def _worker(self) -> None:
        while not self._stop.is_set():
            try:
                task = self._tasks.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue

            if self._stop.is_set():
                # picked up while stopping: treat as still queued
                self._count(dropped=1)
                break

            self._execute(task)

    def _execute(self, task: Task) -> TaskResult:
        started = time.monotonic()
        try:
            task.fn()
        except Exception as e:
            result = TaskResult(task.name, ok=False, duration=time.monotonic() - started, error=e)
            self._count(failed=1)
            self.log.opt(exception=e).error(f"Task {task.name} failed: {e}")
            return result

        result = TaskResult(task.name, ok=True, duration=time.monotonic() - started)
        self._count(completed=1)
        self.log.debug(f"Task {task.name} finished in {result.duration:.2f}s")
        return result

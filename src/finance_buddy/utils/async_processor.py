"""
Worker pool for fan-out reads: submit callables, then join on their results.
"""

import queue
import threading
import time
import uuid
from typing import Any, Callable, Dict, List, Set


class TaskFailed(Exception):
    """A submitted task did not finish in time."""

    def __init__(self, task_id: str, status: str, error: str):
        super().__init__(f"Task {task_id} {status}: {error}")
        self.task_id = task_id
        self.status  = status
        self.error   = error


class AsyncProcessor:
    """Fixed set of daemon threads draining one task queue"""

    def __init__(self, max_workers: int = 4):
        self.max_workers = max_workers
        self.running     = True
        self._tasks: "queue.Queue" = queue.Queue()
        self._outcomes: Dict[str, tuple] = {}
        self._abandoned: Set[str] = set()
        self._finished = threading.Condition()
        self._threads = [
            threading.Thread(target=self._drain, daemon=True, name=f"FetchWorker-{n}")
            for n in range(max_workers)
        ]
        for thread in self._threads:
            thread.start()

    def _drain(self):
        while self.running:
            try:
                task_id, func = self._tasks.get(timeout=0.5)
            except queue.Empty:
                continue

            try:
                outcome = (True, func())
            except Exception as exc:
                outcome = (False, exc)

            with self._finished:
                # nobody is waiting on a timed-out task any more
                if task_id in self._abandoned:
                    self._abandoned.discard(task_id)
                    continue
                self._outcomes[task_id] = outcome
                self._finished.notify_all()

    def submit(self, func: Callable[..., Any], *args, **kwargs) -> str:
        """Queue func(*args, **kwargs); returns the task id to wait on."""
        task_id = uuid.uuid4().hex
        self._tasks.put((task_id, lambda: func(*args, **kwargs)))
        return task_id

    def wait_for_result(self, task_id: str, timeout: float = 30.0) -> Any:
        """
        Block until task_id finishes. Returns its value or re-raises its
        exception; raises TaskFailed when the timeout runs out first.
        """
        deadline = time.monotonic() + timeout
        with self._finished:
            while task_id not in self._outcomes:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self._abandoned.add(task_id)
                    raise TaskFailed(task_id, "timeout", f"no result after {timeout} seconds")
                self._finished.wait(remaining)
            ok, value = self._outcomes.pop(task_id)

        if ok:
            return value
        raise value

    def gather(self, calls: Dict[str, Callable[[], Any]], timeout: float = 30.0) -> Dict[str, Any]:
        """
        Run named zero-argument calls concurrently and join on all of them.

        Every task is waited on before the first failure (in submission
        order) is raised, so no outcome is left behind.
        """
        pending = {name: self.submit(call) for name, call in calls.items()}
        deadline = time.monotonic() + timeout
        results: Dict[str, Any] = {}
        errors: List[Exception] = []
        for name, task_id in pending.items():
            try:
                results[name] = self.wait_for_result(task_id, max(deadline - time.monotonic(), 0.0))
            except Exception as exc:
                errors.append(exc)
        if errors:
            raise errors[0]
        return results

    def shutdown(self):
        self.running = False
        for thread in self._threads:
            thread.join(timeout=2.0)


_async_processor = None


def get_async_processor() -> AsyncProcessor:
    """Get or create the shared pool, replacing it after shutdown"""
    global _async_processor
    if _async_processor is None or not _async_processor.running:
        _async_processor = AsyncProcessor()
    return _async_processor

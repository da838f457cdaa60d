"""
Fire-and-forget background jobs.

Jobs never report back to the request that queued them. A failing job is
logged through the queue's failure sink and dropped.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Tuple

from app.core.config import TASK_WORKERS

logger = logging.getLogger(__name__)

FailureSink = Callable[[str, BaseException], None]


def log_failure(job_name: str, exc: BaseException) -> None:
    logger.error(f"❌ Background job {job_name} failed: {exc!r}")


class TaskQueue:
    def __init__(self, max_workers: int = TASK_WORKERS, failure_sink: FailureSink = log_failure):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="portal-job")
        self._failure_sink = failure_sink

    def enqueue(self, job_name: str, func: Callable, *args, **kwargs) -> None:
        logger.debug(f"Queued job {job_name}")
        self._executor.submit(self._run, job_name, func, args, kwargs)

    def _run(self, job_name: str, func: Callable, args: tuple, kwargs: dict) -> None:
        try:
            func(*args, **kwargs)
        except Exception as exc:
            self._failure_sink(job_name, exc)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class InlineTaskQueue(TaskQueue):
    """Runs jobs synchronously in the caller's thread; failures still go to the sink."""

    def __init__(self, failure_sink: FailureSink = log_failure):
        self._failure_sink = failure_sink
        self.executed: List[Tuple[str, tuple, dict]] = []

    def enqueue(self, job_name: str, func: Callable, *args, **kwargs) -> None:
        self.executed.append((job_name, args, kwargs))
        self._run(job_name, func, args, kwargs)

    def shutdown(self, wait: bool = True) -> None:
        return None


_task_queue: TaskQueue | None = None


def get_task_queue() -> TaskQueue:
    """Process-wide queue, used through Depends so tests can swap it."""
    global _task_queue
    if _task_queue is None:
        _task_queue = TaskQueue()
    return _task_queue


def shutdown_task_queue() -> None:
    global _task_queue
    if _task_queue is not None:
        _task_queue.shutdown(wait=False)
        _task_queue = None

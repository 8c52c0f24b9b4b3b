"""Deferred ingestion hand-off.

The orchestrator only ever calls ``enqueue``; whoever owns the queue decides
when to wait for the work to finish.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Callable, Protocol

from codepoint.common.logging import default_logger, log_event


class TaskQueue(Protocol):
    def enqueue(self, filename: str) -> None: ...


@dataclass(frozen=True)
class TaskFailure:
    filename: str
    error_code: str
    message: str


class ThreadPoolTaskQueue:
    def __init__(
        self,
        handler: Callable[[str], Any],
        *,
        max_workers: int = 4,
        logger: logging.Logger | None = None,
    ) -> None:
        self.handler = handler
        self.logger = logger or default_logger()
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ingest")
        self.futures: list[Future] = []
        self.failures: list[TaskFailure] = []
        self.completed: list[str] = []
        self._lock = threading.Lock()

    def enqueue(self, filename: str) -> None:
        log_event(self.logger, "task queued", stage="dispatch", file=filename, event="TASK_QUEUED", status="ok")
        future = self.executor.submit(self.handler, filename)
        future.add_done_callback(lambda done: self._record(filename, done))
        self.futures.append(future)

    def _record(self, filename: str, future: Future) -> None:
        exc = future.exception()
        with self._lock:
            if exc is None:
                self.completed.append(filename)
                return
            error_code = getattr(exc, "error_code", "UNEXPECTED_ERROR")
            self.failures.append(TaskFailure(filename=filename, error_code=error_code, message=str(exc)))
        log_event(
            self.logger,
            f"task failed: {exc}",
            level=logging.ERROR,
            stage="ingest",
            file=filename,
            event="TASK_FAIL",
            status="error",
            error_code=error_code,
        )

    def join(self) -> None:
        self.executor.shutdown(wait=True)

    def __enter__(self) -> "ThreadPoolTaskQueue":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.join()

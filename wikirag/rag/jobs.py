"""Background sync runs.

A sync triggered over HTTP must not block the request, so it is submitted to
a process-owned single-worker pool and the caller receives a
:class:`SyncTask` handle to poll.  Only one run is ever in flight: submitting
while a run is pending or running returns that run's handle instead of
queueing a second, overlapping one.
"""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from time import time
from typing import Any, Callable, Optional

from wikirag.rag.orchestrator import SyncReport

logger = logging.getLogger(__name__)

PENDING = "pending"
RUNNING = "running"
SUCCEEDED = "succeeded"
FAILED = "failed"

# Finished tasks kept for status lookups.
_MAX_HISTORY = 50


@dataclass
class SyncTask:
    id: str
    name: str
    status: str = PENDING
    submitted_at: int = field(default_factory=lambda: int(time()))
    started_at: Optional[int] = None
    finished_at: Optional[int] = None
    report: Optional[SyncReport] = None
    error: Optional[str] = None

    @property
    def active(self) -> bool:
        return self.status in (PENDING, RUNNING)

    def to_dict(self) -> dict[str, Any]:
        return {
            "taskId": self.id,
            "name": self.name,
            "status": self.status,
            "submittedAt": self.submitted_at,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
            "report": self.report.to_dict() if self.report else None,
            "error": self.error,
        }


class SyncJobs:
    """Owns the worker pool that runs sync functions off the request path."""

    def __init__(self) -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="wikirag-sync")
        self._lock = threading.Lock()
        self._tasks: dict[str, SyncTask] = {}
        self._latest: Optional[SyncTask] = None

    def submit(
        self, name: str, fn: Callable[..., SyncReport], *args: Any
    ) -> tuple[SyncTask, bool]:
        """Schedule ``fn(*args)`` unless a run is already in flight.

        Returns:
            ``(task, created)`` where *created* is ``False`` when the handle
            of the in-flight run was returned instead.
        """
        with self._lock:
            if self._latest is not None and self._latest.active:
                return self._latest, False
            task = SyncTask(id=uuid.uuid4().hex, name=name)
            self._tasks[task.id] = task
            self._latest = task
            self._prune()
        self._executor.submit(self._run, task, fn, args)
        logger.info("Submitted sync task %s (%s)", task.id, name)
        return task, True

    def _run(self, task: SyncTask, fn: Callable[..., SyncReport], args: tuple) -> None:
        task.status = RUNNING
        task.started_at = int(time())
        try:
            task.report = fn(*args)
            task.status = SUCCEEDED
        except Exception as exc:  # noqa: BLE001
            task.error = str(exc)
            task.status = FAILED
            logger.exception("Sync task %s failed", task.id)
        finally:
            task.finished_at = int(time())

    def _prune(self) -> None:
        finished = [t for t in self._tasks.values() if not t.active]
        for task in finished[: max(0, len(self._tasks) - _MAX_HISTORY)]:
            del self._tasks[task.id]

    def get(self, task_id: str) -> Optional[SyncTask]:
        with self._lock:
            return self._tasks.get(task_id)

    @property
    def latest(self) -> Optional[SyncTask]:
        return self._latest

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)

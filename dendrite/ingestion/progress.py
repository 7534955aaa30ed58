"""
In-memory progress tracking for real-time submissions.

Progress is observability only: it lives in process memory and finished
entries are discarded once older than the retention window.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta

from dendrite.types.records import utc_now
from dendrite.types.tasks import TaskProgress, TaskStatus

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_SECONDS = 300.0


class TaskProgressTracker:
    """Thread-safe map of task_id -> TaskProgress."""

    def __init__(self, retention_seconds: float = DEFAULT_RETENTION_SECONDS) -> None:
        self._retention = timedelta(seconds=retention_seconds)
        self._tasks: dict[str, TaskProgress] = {}
        self._lock = threading.Lock()

    def create_task(self, task_id: str, employee_name: str) -> TaskProgress:
        self.cleanup_old_tasks()
        progress = TaskProgress(task_id=task_id, employee_name=employee_name)
        with self._lock:
            self._tasks[task_id] = progress
        return progress

    def update(
        self,
        task_id: str,
        percent: int,
        message: str,
        status: TaskStatus = TaskStatus.PROCESSING,
    ) -> TaskProgress | None:
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                return None
            updated = current.model_copy(
                update={"percent": max(0, min(100, percent)), "message": message, "status": status}
            )
            self._tasks[task_id] = updated
        logger.debug(f"Task {task_id}: {percent}% {message}")
        return updated

    def complete(self, task_id: str, message: str = "Completed") -> TaskProgress | None:
        return self._finish(task_id, TaskStatus.COMPLETED, message, percent=100)

    def fail(self, task_id: str, message: str) -> TaskProgress | None:
        return self._finish(task_id, TaskStatus.FAILED, message)

    def _finish(
        self,
        task_id: str,
        status: TaskStatus,
        message: str,
        percent: int | None = None,
    ) -> TaskProgress | None:
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                return None
            changes: dict = {"status": status, "message": message, "finished_at": utc_now()}
            if percent is not None:
                changes["percent"] = percent
            updated = current.model_copy(update=changes)
            self._tasks[task_id] = updated
            return updated

    def get(self, task_id: str) -> TaskProgress | None:
        with self._lock:
            return self._tasks.get(task_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def cleanup_old_tasks(self, now: datetime | None = None) -> int:
        """Drop finished tasks older than the retention window. Returns the count removed."""
        cutoff = (now or utc_now()) - self._retention
        with self._lock:
            stale = [
                task_id
                for task_id, progress in self._tasks.items()
                if progress.status.is_finished
                and progress.finished_at is not None
                and progress.finished_at < cutoff
            ]
            for task_id in stale:
                del self._tasks[task_id]
        if stale:
            logger.debug(f"Removed {len(stale)} finished task progress entries")
        return len(stale)

"""
Queue and Progress Types

EvaluationTask is the only message kind carried by the evaluation queue.
It is serialized as JSON with an explicit ``kind`` tag and
``schema_version`` so a consumer can recognize (and drop) anything it does
not understand instead of failing on it.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from dendrite.types.records import utc_now

MERGE_SEPARATOR = "\n---\n"
"""Visible separator placed between one employee's evaluations when merged."""

TASK_SCHEMA_VERSION = 1


class EvaluationTask(BaseModel):
    """One submitted evaluation, consumed exactly once by the worker."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    kind: Literal["evaluation"] = "evaluation"
    schema_version: int = TASK_SCHEMA_VERSION
    employee_name: str = Field(min_length=1)
    raw_content: str = Field(min_length=1)
    submitted_at: datetime = Field(default_factory=utc_now)


class BatchEvaluationTask(BaseModel):
    """
    Tasks grouped by the worker for one scan cycle.

    Immutable once built. Employees are reported in first-seen order and
    each employee's texts are merged in submission order.
    """

    model_config = ConfigDict(frozen=True)

    tasks: tuple[EvaluationTask, ...] = ()

    def __len__(self) -> int:
        return len(self.tasks)

    @property
    def is_empty(self) -> bool:
        return not self.tasks

    @property
    def distinct_employees(self) -> list[str]:
        seen: dict[str, None] = {}
        for task in self.tasks:
            seen.setdefault(task.employee_name, None)
        return list(seen)

    def merged_content_for(self, employee_name: str) -> str:
        return MERGE_SEPARATOR.join(
            task.raw_content for task in self.tasks if task.employee_name == employee_name
        )

    def merged_contents(self) -> dict[str, str]:
        return {name: self.merged_content_for(name) for name in self.distinct_employees}


class TaskStatus(str, Enum):
    """Lifecycle of a real-time processing task."""

    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_finished(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


class TaskProgress(BaseModel):
    """In-memory progress snapshot for one real-time submission."""

    task_id: str
    employee_name: str
    status: TaskStatus = TaskStatus.QUEUED
    message: str = "Queued"
    percent: int = Field(default=0, ge=0, le=100)
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: datetime | None = None

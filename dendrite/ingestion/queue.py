"""
Evaluation Queue

Durable FIFO of EvaluationTasks keyed by a logical queue name. Items are
stored as JSON; pop is destructive and atomic in storage, so any item is
observed by at most one consumer.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from dendrite.exceptions import DendriteError, ErrorCode
from dendrite.types.tasks import TASK_SCHEMA_VERSION, EvaluationTask

if TYPE_CHECKING:
    from dendrite.storage.base import StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_NAME = "dendrite:evaluation:queue"


def encode_task(task: EvaluationTask) -> str:
    return task.model_dump_json()


def decode_task(payload: str) -> EvaluationTask:
    """
    Parse one queue payload.

    Raises:
        DendriteError(QUEUE_ITEM_MALFORMED): not JSON, an unknown kind, a
            newer schema version, or fields that fail validation
    """
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise DendriteError(ErrorCode.QUEUE_ITEM_MALFORMED, f"not JSON ({e})") from e

    if not isinstance(data, dict):
        raise DendriteError(ErrorCode.QUEUE_ITEM_MALFORMED, "payload is not an object")
    kind = data.get("kind")
    if kind != "evaluation":
        raise DendriteError(ErrorCode.QUEUE_ITEM_MALFORMED, f"unknown kind {kind!r}")
    version = data.get("schema_version")
    if (
        isinstance(version, bool)
        or not isinstance(version, int)
        or not 1 <= version <= TASK_SCHEMA_VERSION
    ):
        raise DendriteError(
            ErrorCode.QUEUE_ITEM_MALFORMED, f"unsupported schema_version {version!r}"
        )

    try:
        return EvaluationTask.model_validate(data)
    except ValidationError as e:
        raise DendriteError(ErrorCode.QUEUE_ITEM_MALFORMED, str(e)) from e


class EvaluationQueue:
    """
    FIFO of evaluation tasks on top of a storage backend.

    Args:
        storage: Backend that holds the queue rows
        name: Logical queue name
    """

    def __init__(self, storage: "StorageBackend", name: str = DEFAULT_QUEUE_NAME) -> None:
        self._storage = storage
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    async def push(self, task: EvaluationTask) -> int:
        """Append one task. Returns the queue size after the push."""
        size = await self._storage.push_task(self._name, encode_task(task))
        logger.debug(f"Queued evaluation for {task.employee_name} (queue size {size})")
        return size

    async def push_raw(self, payload: str) -> int:
        """Append an already-serialized payload as-is."""
        return await self._storage.push_task(self._name, payload)

    async def pop_raw(self) -> str | None:
        return await self._storage.pop_task(self._name)

    async def size(self) -> int:
        return await self._storage.queue_size(self._name)

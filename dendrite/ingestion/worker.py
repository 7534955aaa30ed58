"""
Pipeline Worker

Scheduled consumer of the evaluation queue. Each cycle:

    IDLE -> FETCHING -> (queue empty -> IDLE)
                     -> PROCESSING -> IDLE

Fetch pops up to ``max_batch_size`` items, stopping early when the queue
runs dry. Items that do not decode into an EvaluationTask are logged and
dropped. Delivery is at-most-once: a task whose processing fails is not
requeued.

The same cycle runs on a fixed schedule (``start``/``stop``) and on demand
(``trigger``); cycles never overlap within one worker, and the queue's
destructive pop keeps any item from being seen twice.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum
from typing import TYPE_CHECKING

from dendrite.exceptions import DendriteError
from dendrite.ingestion.queue import decode_task
from dendrite.types.results import PipelineResult
from dendrite.types.tasks import BatchEvaluationTask, EvaluationTask

if TYPE_CHECKING:
    from dendrite.config.settings import DendriteConfig
    from dendrite.ingestion.pipeline import EvaluationPipeline
    from dendrite.ingestion.queue import EvaluationQueue

logger = logging.getLogger(__name__)


class WorkerState(str, Enum):
    IDLE = "IDLE"
    FETCHING = "FETCHING"
    PROCESSING = "PROCESSING"


class PipelineWorker:
    """
    Batch consumer driving the EvaluationPipeline.

    Args:
        queue: Evaluation queue to drain
        pipeline: Pipeline that processes each batch
        config: Optional configuration (batch size, schedule)
    """

    def __init__(
        self,
        queue: "EvaluationQueue",
        pipeline: "EvaluationPipeline",
        config: "DendriteConfig | None" = None,
    ) -> None:
        self.queue = queue
        self.pipeline = pipeline
        self.max_batch_size = config.max_batch_size if config else 10
        self.scan_interval = config.scan_interval_seconds if config else 300.0
        self.initial_delay = config.initial_delay_seconds if config else 10.0

        self._state = WorkerState.IDLE
        self._cycle_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

        self.cycles = 0
        self.dropped_items = 0
        self.last_result: PipelineResult | None = None

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def fetch_batch(self) -> BatchEvaluationTask:
        """Pop up to ``max_batch_size`` items, dropping malformed ones."""
        tasks: list[EvaluationTask] = []
        for _ in range(self.max_batch_size):
            payload = await self.queue.pop_raw()
            if payload is None:
                break
            try:
                tasks.append(decode_task(payload))
            except DendriteError as e:
                self.dropped_items += 1
                logger.warning(f"Dropping queue item: {e} (payload: {payload[:120]!r})")
        return BatchEvaluationTask(tasks=tuple(tasks))

    async def run_cycle(self) -> PipelineResult | None:
        """
        Run one fetch+execute cycle.

        Returns:
            The pipeline result, or None when the queue held no usable task
        """
        async with self._cycle_lock:
            self.cycles += 1
            self._state = WorkerState.FETCHING
            try:
                batch = await self.fetch_batch()
                if batch.is_empty:
                    logger.debug("Worker cycle: queue empty")
                    return None

                self._state = WorkerState.PROCESSING
                logger.info(f"Worker cycle: processing {len(batch)} evaluations")
                try:
                    result = await self.pipeline.run(batch)
                except Exception as e:
                    logger.error(f"Worker cycle failed: {e}", exc_info=True)
                    result = PipelineResult(success=False, error_message=str(e))
                self.last_result = result
                return result
            finally:
                self._state = WorkerState.IDLE

    async def trigger(self) -> PipelineResult | None:
        """Manual trigger: the same cycle, run now."""
        return await self.run_cycle()

    async def _wait_or_stop(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True if stop was requested meanwhile."""
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        return self._stop_event.is_set()

    async def _run_schedule(self) -> None:
        if await self._wait_or_stop(self.initial_delay):
            return
        while True:
            try:
                await self.run_cycle()
            except Exception as e:
                # Fetch-side failures (e.g. storage) must not end the schedule.
                logger.error(f"Scheduled worker cycle failed: {e}", exc_info=True)
            if await self._wait_or_stop(self.scan_interval):
                return

    def start(self) -> None:
        """Start the schedule on the running event loop."""
        if self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_schedule(), name="dendrite-pipeline-worker")
        logger.info(
            f"Pipeline worker started (first run in {self.initial_delay}s, "
            f"every {self.scan_interval}s, batch {self.max_batch_size})"
        )

    async def stop(self) -> None:
        """Stop the schedule, letting an in-flight cycle finish first."""
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("Pipeline worker stopped")

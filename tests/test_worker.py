"""Tests for the scheduled pipeline worker."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from dendrite.config import DendriteConfig
from dendrite.ingestion.queue import EvaluationQueue
from dendrite.ingestion.worker import PipelineWorker, WorkerState
from dendrite.storage.duckdb import DuckDBBackend
from dendrite.types import EvaluationTask, PipelineResult


async def open_queue(path: Path) -> EvaluationQueue:
    backend = DuckDBBackend(path)
    await backend.initialize()
    return EvaluationQueue(backend)


async def fill(queue: EvaluationQueue, count: int, prefix: str = "E") -> None:
    for i in range(count):
        await queue.push(EvaluationTask(employee_name=f"{prefix}{i}", raw_content=f"evaluation {i}"))


@pytest.fixture
def mock_pipeline() -> MagicMock:
    pipeline = MagicMock()
    pipeline.run = AsyncMock(return_value=PipelineResult(success=True, skills_extracted=1))
    return pipeline


@pytest.fixture
def config() -> DendriteConfig:
    return DendriteConfig(max_batch_size=10, scan_interval_seconds=0.05, initial_delay_seconds=0.0)


class TestRunCycle:
    @pytest.mark.asyncio
    async def test_empty_queue_returns_none(self, tmp_path, mock_pipeline, config) -> None:
        worker = PipelineWorker(await open_queue(tmp_path / "q.duckdb"), mock_pipeline, config)

        assert await worker.run_cycle() is None
        mock_pipeline.run.assert_not_called()
        assert worker.state is WorkerState.IDLE

    @pytest.mark.asyncio
    async def test_batch_is_capped(self, tmp_path, mock_pipeline, config) -> None:
        queue = await open_queue(tmp_path / "q.duckdb")
        await fill(queue, 25)
        worker = PipelineWorker(queue, mock_pipeline, config)

        await worker.run_cycle()

        batch = mock_pipeline.run.await_args.args[0]
        assert len(batch) == 10
        assert [t.employee_name for t in batch.tasks] == [f"E{i}" for i in range(10)]
        assert await queue.size() == 15

    @pytest.mark.asyncio
    async def test_partial_batch(self, tmp_path, mock_pipeline, config) -> None:
        queue = await open_queue(tmp_path / "q.duckdb")
        await fill(queue, 3)
        worker = PipelineWorker(queue, mock_pipeline, config)

        result = await worker.trigger()

        assert result.success
        assert len(mock_pipeline.run.await_args.args[0]) == 3
        assert worker.last_result is result

    @pytest.mark.asyncio
    async def test_malformed_items_are_dropped(self, tmp_path, mock_pipeline, config) -> None:
        queue = await open_queue(tmp_path / "q.duckdb")
        await fill(queue, 1, prefix="Before")
        await queue.push_raw("{not json")
        await queue.push_raw('{"kind": "something_else", "schema_version": 1}')
        await queue.push_raw(
            '{"kind": "evaluation", "schema_version": 1, "employee_name": "   ", "raw_content": ""}'
        )
        await fill(queue, 1, prefix="After")
        worker = PipelineWorker(queue, mock_pipeline, config)

        await worker.run_cycle()

        batch = mock_pipeline.run.await_args.args[0]
        assert [t.employee_name for t in batch.tasks] == ["Before0", "After0"]
        assert worker.dropped_items == 3
        assert await queue.size() == 0

    @pytest.mark.asyncio
    async def test_only_malformed_items_counts_as_empty(self, tmp_path, mock_pipeline, config) -> None:
        queue = await open_queue(tmp_path / "q.duckdb")
        await queue.push_raw("garbage")
        worker = PipelineWorker(queue, mock_pipeline, config)

        assert await worker.run_cycle() is None
        mock_pipeline.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_tasks_are_not_redelivered(self, tmp_path, mock_pipeline, config) -> None:
        queue = await open_queue(tmp_path / "q.duckdb")
        await fill(queue, 2)
        mock_pipeline.run = AsyncMock(side_effect=RuntimeError("pipeline crashed"))
        worker = PipelineWorker(queue, mock_pipeline, config)

        result = await worker.run_cycle()

        assert result.success is False
        assert result.error_message == "pipeline crashed"
        assert await queue.size() == 0
        assert await worker.run_cycle() is None

    @pytest.mark.asyncio
    async def test_concurrent_triggers_never_share_items(
        self, tmp_path, mock_pipeline, config
    ) -> None:
        queue = await open_queue(tmp_path / "q.duckdb")
        await fill(queue, 15)
        worker = PipelineWorker(queue, mock_pipeline, config)

        await asyncio.gather(worker.trigger(), worker.trigger())

        seen = [
            t.employee_name
            for call in mock_pipeline.run.await_args_list
            for t in call.args[0].tasks
        ]
        assert sorted(seen) == sorted(f"E{i}" for i in range(15))
        assert len(seen) == len(set(seen))


class TestSchedule:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, tmp_path, mock_pipeline, config) -> None:
        queue = await open_queue(tmp_path / "q.duckdb")
        await fill(queue, 2)
        worker = PipelineWorker(queue, mock_pipeline, config)

        worker.start()
        assert worker.running
        for _ in range(100):
            if mock_pipeline.run.await_count:
                break
            await asyncio.sleep(0.01)
        await worker.stop()

        assert not worker.running
        assert mock_pipeline.run.await_count == 1
        assert worker.cycles >= 1

    @pytest.mark.asyncio
    async def test_stop_before_first_run(self, tmp_path, mock_pipeline) -> None:
        config = DendriteConfig(initial_delay_seconds=60.0)
        worker = PipelineWorker(await open_queue(tmp_path / "q.duckdb"), mock_pipeline, config)

        worker.start()
        await worker.stop()

        assert worker.cycles == 0
        mock_pipeline.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self, tmp_path, mock_pipeline, config) -> None:
        worker = PipelineWorker(await open_queue(tmp_path / "q.duckdb"), mock_pipeline, config)
        await worker.stop()
        assert not worker.running

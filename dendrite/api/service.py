"""
Dendrite - Primary Entry Point

The Dendrite class owns one database file and wires every component:

    ingestion -> EvaluationQueue -> PipelineWorker -> EvaluationPipeline
    query -> SearchEngine -> (selection) -> AttributionEngine -> RewardLedger

There is exactly one QuotaGate per instance and every embedding call made
through the instance (pipeline, real-time processing, search, attribution,
tagging) passes through it.

All public methods return ApiResponse envelopes and never raise for
business or provider failures.

Example:
    >>> async with Dendrite("./talent.duckdb") as app:
    ...     await app.submit_evaluation("Alice", "Alice debugged a Redis connection leak overnight")
    ...     await app.run_pipeline_now()
    ...     response = await app.search("redis expert")
    ...     print([hit.employee_name for hit in response.data])
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

from dendrite.api.envelope import ApiResponse
from dendrite.exceptions import DendriteError, ErrorCode
from dendrite.ingestion.validation import validate_batch, validate_evaluation
from dendrite.types.tasks import EvaluationTask
from dendrite.utils.cost_telemetry import CostCollector, telemetry_collector

if TYPE_CHECKING:
    from dendrite.config.settings import DendriteConfig
    from dendrite.ingestion import (
        EvaluationQueue,
        PipelineWorker,
        RealtimeProcessor,
        TagService,
        TaskProgressTracker,
    )
    from dendrite.providers.base import EmbeddingProvider, LLMProvider
    from dendrite.query import AttributionEngine, SearchEngine
    from dendrite.rewards import RewardLedger
    from dendrite.storage.duckdb import DuckDBBackend
    from dendrite.types import ContributorProfile, EvaluationTag, TalentProfile
    from dendrite.types.results import (
        AttributionResult,
        BatchAskItem,
        BatchSearchItem,
        CostDebugReport,
        HealthStatus,
        PipelineResult,
        QueueStatus,
        Recommendation,
        SearchHit,
        SubmissionReceipt,
        SystemStats,
    )
    from dendrite.types.records import RewardRecord
    from dendrite.types.tasks import TaskProgress
    from dendrite.utils.quota import QuotaGate

logger = logging.getLogger(__name__)

R = TypeVar("R")


class Dendrite:
    """
    Talent knowledge service.

    Args:
        path: DuckDB file (created if missing) or ":memory:"
        config: Optional configuration. Uses defaults if not provided.
        llm: LLM provider override (tests, custom providers)
        llm_fast: Fast LLM override; defaults to ``llm`` when ``llm`` is given
        embeddings: Raw embedding provider override; it is wrapped in the
            instance's QuotaGate
    """

    def __init__(
        self,
        path: str | Path = ":memory:",
        config: "DendriteConfig | None" = None,
        *,
        llm: "LLMProvider | None" = None,
        llm_fast: "LLMProvider | None" = None,
        embeddings: "EmbeddingProvider | None" = None,
    ) -> None:
        if config is None:
            from dendrite.config import DendriteConfig
            config = DendriteConfig()
        self._config = config
        self._path = str(path) if str(path) == ":memory:" else str(Path(path).resolve())

        self._llm_override = llm
        self._llm_fast_override = llm_fast
        self._embeddings_override = embeddings

        self._collector = CostCollector(warn_threshold_usd=config.cost_debug_warn_threshold_usd)
        self._background: set[asyncio.Task[Any]] = set()
        self._init_lock = asyncio.Lock()
        self._initialized = False

        # Lazy-initialized components
        self._storage: DuckDBBackend | None = None
        self._gate: QuotaGate | None = None
        self._embeddings: EmbeddingProvider | None = None
        self._queue: EvaluationQueue | None = None
        self._worker: PipelineWorker | None = None
        self._progress: TaskProgressTracker | None = None
        self._realtime: RealtimeProcessor | None = None
        self._ledger: RewardLedger | None = None
        self._tags: TagService | None = None
        self._search: SearchEngine | None = None
        self._attribution: AttributionEngine | None = None

    # === Initialization ===

    async def _ensure_initialized(self) -> None:
        """Lazy initialization of storage, providers and services on first use."""
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return

            from dendrite.ingestion import (
                EvaluationPipeline,
                EvaluationQueue,
                PipelineWorker,
                RealtimeProcessor,
                TagService,
                TaskProgressTracker,
            )
            from dendrite.providers.embedding.gated import QuotaGatedEmbeddingProvider
            from dendrite.query import AttributionEngine, SearchEngine
            from dendrite.rewards import RewardLedger
            from dendrite.storage.duckdb import DuckDBBackend
            from dendrite.utils.quota import QuotaGate

            config = self._config
            storage = DuckDBBackend(self._path)
            await storage.initialize()

            llm = self._llm_override or self._create_llm_provider(config.llm_model)
            if self._llm_fast_override is not None:
                llm_fast = self._llm_fast_override
            elif self._llm_override is not None:
                llm_fast = self._llm_override
            else:
                llm_fast = self._create_llm_provider(config.llm_model_fast)

            self._gate = QuotaGate(config.quota_interval_seconds)
            embeddings = QuotaGatedEmbeddingProvider(
                self._embeddings_override or self._create_embedding_provider(),
                self._gate,
            )

            self._storage = storage
            self._embeddings = embeddings
            self._queue = EvaluationQueue(storage, config.queue_name)
            pipeline = EvaluationPipeline(storage, llm, embeddings, config)
            self._worker = PipelineWorker(self._queue, pipeline, config)
            self._progress = TaskProgressTracker(config.progress_retention_seconds)
            self._realtime = RealtimeProcessor(storage, llm, embeddings, self._progress)
            self._ledger = RewardLedger(storage, max_retries=config.ledger_max_retries)
            self._tags = TagService(storage, llm_fast, embeddings, self._ledger)
            self._search = SearchEngine(storage, llm, embeddings, config, expansion_llm=llm_fast)
            self._attribution = AttributionEngine(storage, embeddings, self._ledger)

            self._initialized = True
            logger.info(f"Dendrite initialized at {self._path}")

    def _create_llm_provider(self, model: str) -> "LLMProvider":
        """Create LLM provider based on config."""
        provider = self._config.llm_provider.lower()
        if provider == "openai":
            from dendrite.providers.llm.openai import OpenAILLMProvider
            return OpenAILLMProvider(api_key=self._config.openai_api_key, model=model)
        raise ValueError(f"Unknown LLM provider: {provider}")

    def _create_embedding_provider(self) -> "EmbeddingProvider":
        """Create embedding provider based on config."""
        provider = self._config.embedding_provider.lower()
        if provider == "openai":
            from dendrite.providers.embedding.openai import OpenAIEmbeddingProvider
            return OpenAIEmbeddingProvider(
                api_key=self._config.openai_api_key,
                model=self._config.embedding_model,
                dimensions=self._config.embedding_dimensions,
            )
        raise ValueError(f"Unknown embedding provider: {provider}")

    async def _call(
        self,
        operation: str,
        fn: Callable[[], Awaitable[R]],
        *,
        message: str = "OK",
    ) -> ApiResponse[R]:
        """Run ``fn`` with telemetry attached and wrap the outcome in an envelope."""
        try:
            await self._ensure_initialized()
            with telemetry_collector(self._collector):
                data = await fn()
        except DendriteError as e:
            logger.info(f"{operation} rejected: {e}")
            return ApiResponse.from_exception(e)
        except Exception as e:
            logger.error(f"{operation} failed: {e}", exc_info=True)
            return ApiResponse.from_exception(e)
        return ApiResponse.ok(data, message)

    # === Lifecycle ===

    async def __aenter__(self) -> "Dendrite":
        await self._ensure_initialized()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Stop the worker, let real-time tasks finish, release storage."""
        if self._worker is not None:
            await self._worker.stop()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        if self._storage is not None:
            await self._storage.close()
        self._storage = None
        self._initialized = False

    # === Properties ===

    @property
    def path(self) -> str:
        return self._path

    @property
    def config(self) -> "DendriteConfig":
        return self._config

    @property
    def quota_gate(self) -> "QuotaGate | None":
        """The instance's QuotaGate (None before initialization)."""
        return self._gate

    @property
    def worker(self) -> "PipelineWorker | None":
        return self._worker

    # === Ingestion ===

    async def submit_evaluation(
        self,
        employee_name: str,
        content: str,
    ) -> ApiResponse["SubmissionReceipt"]:
        """Validate and enqueue one evaluation for the next worker cycle."""
        from dendrite.types.results import SubmissionReceipt

        async def _run() -> SubmissionReceipt:
            name, text = validate_evaluation(employee_name, content, self._config)
            assert self._queue is not None
            task = EvaluationTask(employee_name=name, raw_content=text)
            size = await self._queue.push(task)
            return SubmissionReceipt(queued=1, queue_size=size)

        return await self._call("submit_evaluation", _run, message="Evaluation queued")

    async def submit_evaluations(
        self,
        items: list[tuple[str, str]],
    ) -> ApiResponse["SubmissionReceipt"]:
        """
        Validate every (employee, content) pair, then enqueue them in order.

        One invalid entry rejects the whole batch; nothing is enqueued.
        """
        from dendrite.types.results import SubmissionReceipt

        async def _run() -> SubmissionReceipt:
            cleaned = validate_batch(list(items), self._config)
            assert self._queue is not None
            size = 0
            for name, text in cleaned:
                size = await self._queue.push(EvaluationTask(employee_name=name, raw_content=text))
            return SubmissionReceipt(queued=len(cleaned), queue_size=size)

        return await self._call("submit_evaluations", _run, message="Evaluations queued")

    async def process_evaluation(
        self,
        employee_name: str,
        content: str,
        *,
        wait: bool = False,
    ) -> ApiResponse["TaskProgress"]:
        """
        Process one evaluation immediately, outside the worker schedule.

        Returns the task's progress snapshot right away; poll it with
        ``task_progress``. With ``wait=True`` the call returns the final
        snapshot instead.
        """

        async def _run() -> "TaskProgress":
            name, text = validate_evaluation(employee_name, content, self._config)
            assert self._progress is not None and self._realtime is not None
            task_id = uuid.uuid4().hex
            progress = self._progress.create_task(task_id, name)
            job = asyncio.create_task(self._realtime.process(task_id, name, text))
            self._background.add(job)
            job.add_done_callback(self._background.discard)
            if wait:
                await job
                return self._progress.get(task_id) or progress
            return progress

        return await self._call("process_evaluation", _run, message="Processing started")

    async def task_progress(self, task_id: str) -> ApiResponse["TaskProgress"]:
        async def _run() -> "TaskProgress":
            assert self._progress is not None
            progress = self._progress.get(task_id)
            if progress is None:
                raise DendriteError(ErrorCode.INVALID_PARAMETER, f"unknown task {task_id}")
            return progress

        return await self._call("task_progress", _run)

    async def queue_status(self) -> ApiResponse["QueueStatus"]:
        from dendrite.types.results import QueueStatus

        async def _run() -> QueueStatus:
            assert self._queue is not None
            return QueueStatus(
                queue_size=await self._queue.size(),
                scan_interval_seconds=self._config.scan_interval_seconds,
                batch_size=self._config.max_batch_size,
            )

        return await self._call("queue_status", _run)

    async def stats(self) -> ApiResponse["SystemStats"]:
        """Profile and skill counts plus current queue depth."""
        from dendrite.types.results import SystemStats

        async def _run() -> SystemStats:
            assert self._storage is not None and self._queue is not None
            return SystemStats(
                profile_count=await self._storage.count_profiles(),
                skill_count=await self._storage.count_skills(),
                queue_size=await self._queue.size(),
                worker_running=self._worker is not None and self._worker.running,
            )

        return await self._call("stats", _run)

    async def health(self) -> ApiResponse["HealthStatus"]:
        from dendrite.types.records import utc_now
        from dendrite.types.results import HealthStatus

        async def _run() -> HealthStatus:
            assert self._storage is not None
            try:
                await self._storage.count_profiles()
                storage_ok = True
            except Exception as e:
                logger.warning(f"Storage health check failed: {e}")
                storage_ok = False
            return HealthStatus(
                status="UP" if storage_ok else "DEGRADED",
                storage=storage_ok,
                checked_at=utc_now(),
            )

        return await self._call("health", _run)

    async def run_pipeline_now(self) -> ApiResponse["PipelineResult | None"]:
        """
        Manual worker trigger.

        ``data`` is None (with message "Queue is empty") when there was
        nothing to process.
        """
        try:
            await self._ensure_initialized()
            assert self._worker is not None
            with telemetry_collector(self._collector):
                result = await self._worker.trigger()
        except Exception as e:
            logger.error(f"run_pipeline_now failed: {e}", exc_info=True)
            return ApiResponse.from_exception(e)
        if result is None:
            return ApiResponse.ok(None, "Queue is empty")
        if not result.success:
            return ApiResponse(
                success=False,
                data=result,
                error_code=ErrorCode.INTERNAL_ERROR.code,
                message=result.error_message or "Pipeline run failed",
            )
        return ApiResponse.ok(result, "Pipeline run complete")

    async def start_worker(self) -> None:
        """Start the scheduled worker on the running loop."""
        await self._ensure_initialized()
        assert self._worker is not None
        with telemetry_collector(self._collector):
            self._worker.start()

    async def stop_worker(self) -> None:
        if self._worker is not None:
            await self._worker.stop()

    # === Search ===

    def set_economy_mode(self, enabled: bool) -> None:
        """Economy mode skips query expansion (one fewer AI call per search)."""
        if self._search is not None:
            self._search.set_query_expansion(not enabled)
        else:
            self._config = self._config.with_overrides(query_expansion_enabled=not enabled)

    async def search(self, query: str, limit: int | None = None) -> ApiResponse[list["SearchHit"]]:
        async def _run() -> list["SearchHit"]:
            assert self._search is not None
            return await self._search.search(query, limit)

        return await self._call("search", _run)

    async def ask(self, query: str) -> ApiResponse["Recommendation"]:
        async def _run() -> "Recommendation":
            assert self._search is not None
            return await self._search.recommend(query)

        return await self._call("ask", _run)

    async def batch_search(
        self,
        queries: list[str],
        limit: int | None = None,
    ) -> ApiResponse[list["BatchSearchItem"]]:
        async def _run() -> list["BatchSearchItem"]:
            if not queries:
                raise DendriteError(ErrorCode.INVALID_PARAMETER, "no queries given")
            assert self._search is not None
            return await self._search.batch_search(list(queries), limit)

        return await self._call("batch_search", _run)

    async def batch_ask(self, queries: list[str]) -> ApiResponse[list["BatchAskItem"]]:
        async def _run() -> list["BatchAskItem"]:
            if not queries:
                raise DendriteError(ErrorCode.INVALID_PARAMETER, "no queries given")
            assert self._search is not None
            return await self._search.batch_ask(list(queries))

        return await self._call("batch_ask", _run)

    async def profile(self, employee_name: str) -> ApiResponse["TalentProfile"]:
        async def _run() -> "TalentProfile":
            assert self._storage is not None
            found = await self._storage.get_profile(employee_name)
            if found is None:
                raise DendriteError(ErrorCode.EMPLOYEE_NOT_FOUND, employee_name)
            return found

        return await self._call("profile", _run)

    # === Tags and Rewards ===

    async def track_search_hit(
        self,
        query: str,
        selected_employee: str,
        *,
        trigger_user: str | None = None,
    ) -> ApiResponse["AttributionResult"]:
        async def _run() -> "AttributionResult":
            assert self._attribution is not None
            return await self._attribution.track_search_hit(
                query, selected_employee, trigger_user=trigger_user
            )

        return await self._call("track_search_hit", _run)

    async def submit_tag(
        self,
        creator_employee: str,
        target_employee: str,
        raw_tag: str,
        context: str = "",
    ) -> ApiResponse["EvaluationTag"]:
        async def _run() -> "EvaluationTag":
            assert self._tags is not None
            return await self._tags.submit_tag(creator_employee, target_employee, raw_tag, context)

        return await self._call("submit_tag", _run, message="Tag submitted")

    async def contributor(self, employee_name: str) -> ApiResponse["ContributorProfile"]:
        async def _run() -> "ContributorProfile":
            assert self._ledger is not None
            found = await self._ledger.get_contributor(employee_name)
            if found is None:
                raise DendriteError(ErrorCode.EMPLOYEE_NOT_FOUND, employee_name)
            return found

        return await self._call("contributor", _run)

    async def reward_history(
        self,
        employee_name: str,
        limit: int = 50,
    ) -> ApiResponse[list["RewardRecord"]]:
        async def _run() -> list["RewardRecord"]:
            assert self._ledger is not None
            return await self._ledger.history(employee_name, limit)

        return await self._call("reward_history", _run)

    # === Telemetry ===

    def usage_report(self) -> "CostDebugReport":
        """Token and estimated-cost totals for every provider call made so far."""
        return self._collector.summary()

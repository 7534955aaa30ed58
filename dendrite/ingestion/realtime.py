"""
Real-time evaluation processing.

Processes a single submission immediately instead of waiting for the next
worker cycle. Progress is reported at fixed checkpoints:

    10%  started
    30%  skills extracted
    50%  skills saved
    80%  profile synthesized
    90%  vectors stored
    100% completed

Vectorization is still one request for ``[skills..., profile]``.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from dendrite.exceptions import DendriteError, ErrorCode
from dendrite.ingestion.extraction import SkillExtractor
from dendrite.ingestion.synthesis import ProfileSynthesizer
from dendrite.ingestion.vectorizer import BatchVectorGenerator
from dendrite.types.results import ProcessResult
from dendrite.utils.cost_telemetry import telemetry_stage

if TYPE_CHECKING:
    from dendrite.ingestion.progress import TaskProgressTracker
    from dendrite.providers.base import EmbeddingProvider, LLMProvider
    from dendrite.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class RealtimeProcessor:
    """
    Single-submission processor.

    Args:
        storage: Storage backend
        llm: LLM provider for extraction and synthesis
        embeddings: Quota-gated embedding provider
        progress: Tracker that receives checkpoint updates
    """

    def __init__(
        self,
        storage: "StorageBackend",
        llm: "LLMProvider",
        embeddings: "EmbeddingProvider",
        progress: "TaskProgressTracker",
    ) -> None:
        self.storage = storage
        self.extractor = SkillExtractor(llm)
        self.synthesizer = ProfileSynthesizer(storage, llm)
        self.vectorizer = BatchVectorGenerator(storage, embeddings)
        self.progress = progress

    async def process(self, task_id: str, employee_name: str, content: str) -> ProcessResult:
        """
        Extract, synthesize and vectorize one evaluation.

        The task must already exist in the progress tracker. Any failure marks
        it FAILED and is reported in the result rather than raised.
        """
        start = time.perf_counter_ns()
        skills_extracted = 0

        def _elapsed_ms() -> int:
            return int((time.perf_counter_ns() - start) // 1_000_000)

        try:
            self.progress.update(task_id, 10, "Extracting skills")
            with telemetry_stage("extraction"):
                extracted = await self.extractor.extract(employee_name, content)
            self.progress.update(task_id, 30, f"Extracted {len(extracted)} skills")

            stored = await self.storage.insert_skills(extracted)
            skills_extracted = len(stored)
            self.progress.update(task_id, 50, "Skills saved, synthesizing profile")

            with telemetry_stage("synthesis"):
                profile = await self.synthesizer.synthesize(employee_name)
            self.progress.update(
                task_id, 80, "Profile synthesized" if profile else "Profile unchanged"
            )

            vectors = await self.vectorizer.vectorize(
                stored, [profile] if profile is not None else []
            )
            self.progress.update(task_id, 90, "Vectors stored")

            self.progress.complete(task_id)
            logger.info(
                f"Real-time task {task_id} for {employee_name}: "
                f"{skills_extracted} skills, profile {'updated' if profile else 'unchanged'}"
            )
            return ProcessResult(
                task_id=task_id,
                employee_name=employee_name,
                success=True,
                skills_extracted=skills_extracted,
                profile_updated=profile is not None,
                vectors_stored=vectors.skill_vectors + vectors.profile_vectors,
                duration_ms=_elapsed_ms(),
            )
        except Exception as e:
            if isinstance(e, DendriteError) and e.error_code is ErrorCode.EMPLOYEE_NO_DATA:
                logger.warning(f"Real-time task {task_id}: {e}")
            else:
                logger.error(f"Real-time task {task_id} failed: {e}", exc_info=True)
            self.progress.fail(task_id, str(e))
            return ProcessResult(
                task_id=task_id,
                employee_name=employee_name,
                success=False,
                skills_extracted=skills_extracted,
                duration_ms=_elapsed_ms(),
                error_message=str(e),
            )

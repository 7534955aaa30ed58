"""
Evaluation Pipeline

Processes one BatchEvaluationTask in three stages:
    1. Extraction: one SkillExtractor call per distinct employee over that
       employee's merged evaluations; new skills are persisted unvectorized
    2. Synthesis: ProfileSynthesizer re-reads the employee's whole skill
       history and upserts the profile
    3. Vectorization: one BatchVectorGenerator call for every new skill and
       updated profile in the batch

Stages 1-2 run per employee under a semaphore; an employee's extraction
always finishes before its synthesis, and employees are independent of each
other. Failures are caught at the employee boundary, so one bad record
cannot sink the batch. Anything escaping that boundary marks the run failed
but keeps the counts already committed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from dendrite.exceptions import DendriteError, ErrorCode
from dendrite.ingestion.extraction import SkillExtractor
from dendrite.ingestion.synthesis import ProfileSynthesizer
from dendrite.ingestion.vectorizer import BatchVectorGenerator
from dendrite.types.results import PipelineResult
from dendrite.utils.cost_telemetry import telemetry_stage

if TYPE_CHECKING:
    from dendrite.config.settings import DendriteConfig
    from dendrite.providers.base import EmbeddingProvider, LLMProvider
    from dendrite.storage.base import StorageBackend
    from dendrite.types.records import SkillRecord, TalentProfile
    from dendrite.types.tasks import BatchEvaluationTask

logger = logging.getLogger(__name__)


class EvaluationPipeline:
    """
    Batch evaluation pipeline.

    Args:
        storage: Storage backend for skills and profiles
        llm: LLM provider for extraction and synthesis
        embeddings: Quota-gated embedding provider
        config: Optional configuration
    """

    def __init__(
        self,
        storage: "StorageBackend",
        llm: "LLMProvider",
        embeddings: "EmbeddingProvider",
        config: "DendriteConfig | None" = None,
    ) -> None:
        self.storage = storage
        self.extractor = SkillExtractor(llm)
        self.synthesizer = ProfileSynthesizer(storage, llm)
        self.vectorizer = BatchVectorGenerator(storage, embeddings)
        self._concurrency = config.extraction_concurrency if config else 5

    async def _extract(self, employee_name: str, content: str) -> list["SkillRecord"]:
        with telemetry_stage("extraction"):
            extracted = await self.extractor.extract(employee_name, content)
        if not extracted:
            return []
        return await self.storage.insert_skills(extracted)

    async def _synthesize(self, employee_name: str) -> "TalentProfile | None":
        with telemetry_stage("synthesis"):
            return await self.synthesizer.synthesize(employee_name)

    async def run(self, batch: "BatchEvaluationTask") -> PipelineResult:
        """
        Execute extraction, synthesis and vectorization for one batch.

        Returns:
            PipelineResult; ``success`` is False only for failures outside
            the per-employee boundary
        """
        start = time.perf_counter_ns()
        new_skills: list[SkillRecord] = []
        profiles: list[TalentProfile] = []

        def _elapsed_ms() -> int:
            return int((time.perf_counter_ns() - start) // 1_000_000)

        try:
            contents = batch.merged_contents()
            logger.info(
                f"Pipeline run: {len(batch)} evaluations for {len(contents)} employees"
            )
            semaphore = asyncio.Semaphore(self._concurrency)

            async def _process(employee_name: str, content: str) -> None:
                async with semaphore:
                    try:
                        stored = await self._extract(employee_name, content)
                        new_skills.extend(stored)
                    except Exception as e:
                        logger.error(f"Extraction failed for {employee_name}: {e}", exc_info=True)

                    try:
                        profile = await self._synthesize(employee_name)
                    except DendriteError as e:
                        if e.error_code is ErrorCode.EMPLOYEE_NO_DATA:
                            logger.warning(f"Skipping profile for {employee_name}: {e}")
                        else:
                            logger.error(f"Synthesis failed for {employee_name}: {e}")
                        return
                    except Exception as e:
                        logger.error(f"Synthesis failed for {employee_name}: {e}", exc_info=True)
                        return
                    if profile is not None:
                        profiles.append(profile)

            await asyncio.gather(*(_process(name, text) for name, text in contents.items()))

            # Vectorization never raises for provider failures.
            await self.vectorizer.vectorize(new_skills, profiles)
        except Exception as e:
            logger.error(f"Pipeline run failed: {e}", exc_info=True)
            return PipelineResult(
                success=False,
                skills_extracted=len(new_skills),
                profiles_updated=len(profiles),
                vectors_stored=len(profiles),
                duration_ms=_elapsed_ms(),
                error_message=str(e),
            )

        result = PipelineResult(
            success=True,
            skills_extracted=len(new_skills),
            profiles_updated=len(profiles),
            vectors_stored=len(profiles),
            duration_ms=_elapsed_ms(),
        )
        logger.info(
            f"Pipeline run complete: {result.skills_extracted} skills, "
            f"{result.profiles_updated} profiles in {result.duration_ms}ms"
        )
        return result

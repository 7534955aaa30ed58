"""
Batch Vector Generator

Issues exactly one embedding request for every text a pipeline run needs:
all new skills first, then one entry per profile. One request means one
QuotaGate grant, which is the whole point of batching here.

Each outgoing text carries a correlation key (("skill", id) or
("profile", employee_name)); returned vectors are assigned through those
keys rather than by re-deriving positions. A profile whose text is empty
still occupies its slot (as a blank placeholder) so the key/position pairs
stay aligned; only its vector write is skipped.

Failure policy: any error from the embedding call is logged and reported
in the result. Records simply stay unvectorized and are excluded from
similarity search until a later run fills them in. Quota cancellation
(asyncio.CancelledError) is not an error here and propagates.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from dendrite.types.results import VectorizationResult
from dendrite.utils.cost_telemetry import telemetry_stage

if TYPE_CHECKING:
    from dendrite.providers.base import EmbeddingProvider
    from dendrite.storage.base import StorageBackend
    from dendrite.types.records import SkillRecord, TalentProfile

logger = logging.getLogger(__name__)

VectorKey = tuple[str, "int | str"]


class BatchVectorGenerator:
    """
    Batch embedding for skills and profiles.

    Args:
        storage: Where vectors are written
        embeddings: Quota-gated embedding provider
    """

    def __init__(self, storage: "StorageBackend", embeddings: "EmbeddingProvider") -> None:
        self.storage = storage
        self.embeddings = embeddings

    @staticmethod
    def build_requests(
        skills: list["SkillRecord"],
        profiles: list["TalentProfile"],
    ) -> list[tuple[VectorKey, str]]:
        """
        Ordered (key, text) pairs: skills in input order, then profiles.

        Unpersisted skills (no id) and blank profile texts keep their slot.
        """
        requests: list[tuple[VectorKey, str]] = []
        for index, skill in enumerate(skills):
            key: VectorKey = ("skill", skill.id if skill.id is not None else f"unsaved-{index}")
            requests.append((key, skill.embedding_text()))
        for profile in profiles:
            requests.append((("profile", profile.employee_name), profile.embedding_text()))
        return requests

    async def vectorize(
        self,
        skills: list["SkillRecord"],
        profiles: list["TalentProfile"] | None = None,
    ) -> VectorizationResult:
        """
        Embed and persist vectors for ``skills`` and ``profiles``.

        Never raises for provider or storage failures; see VectorizationResult.error.
        """
        requests = self.build_requests(skills, profiles or [])
        if not any(text.strip() for _, text in requests):
            return VectorizationResult(requested=len(requests))

        texts = [text for _, text in requests]
        start = time.perf_counter_ns()
        try:
            with telemetry_stage("vectorization"):
                vectors = await self.embeddings.embed(texts)
        except Exception as e:
            logger.error(f"Batch vectorization failed for {len(texts)} texts: {e}")
            return VectorizationResult(requested=len(texts), error=str(e))

        if len(vectors) != len(requests):
            message = f"embedding count mismatch: sent {len(requests)}, got {len(vectors)}"
            logger.error(f"Batch vectorization aborted, {message}")
            return VectorizationResult(requested=len(texts), error=message)

        by_key: dict[VectorKey, list[float]] = {
            key: list(vector) for (key, _), vector in zip(requests, vectors)
        }
        texts_by_key = dict(requests)

        skill_count = 0
        profile_count = 0
        try:
            for (kind, ident), vector in by_key.items():
                if not vector:
                    continue
                if kind == "skill":
                    if not isinstance(ident, int):
                        continue
                    await self.storage.update_skill_embedding(ident, vector)
                    skill_count += 1
                else:
                    if not texts_by_key[(kind, ident)].strip():
                        continue
                    await self.storage.update_profile_embedding(str(ident), vector)
                    profile_count += 1
        except Exception as e:
            logger.error(f"Storing vectors failed after {skill_count + profile_count} writes: {e}")
            return VectorizationResult(
                requested=len(texts),
                skill_vectors=skill_count,
                profile_vectors=profile_count,
                error=str(e),
            )

        elapsed_ms = (time.perf_counter_ns() - start) // 1_000_000
        logger.info(
            f"Vectorized {skill_count} skills and {profile_count} profiles "
            f"in one request ({elapsed_ms}ms)"
        )
        return VectorizationResult(
            requested=len(texts),
            skill_vectors=skill_count,
            profile_vectors=profile_count,
        )

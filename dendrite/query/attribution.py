"""
Attribution Engine

When a search leads to someone being selected, the tags written about that
person are checked against the query: every tag whose own embedding is
similar enough to the query (cosine similarity strictly greater than
ATTRIBUTION_THRESHOLD) earns its creator SEARCH_HIT_REWARD points.

Tags without an embedding cannot have contributed and are skipped. Several
qualifying tags from the same creator each earn a separate credit.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from dendrite.exceptions import DendriteError, ErrorCode
from dendrite.rewards.ledger import SEARCH_HIT_REWARD
from dendrite.types.records import EvaluationTag, InteractionType, TagInteraction
from dendrite.types.results import Attribution, AttributionResult
from dendrite.utils.cost_telemetry import telemetry_stage
from dendrite.utils.vectors import cosine_similarity

if TYPE_CHECKING:
    from dendrite.providers.base import EmbeddingProvider
    from dendrite.rewards.ledger import RewardLedger
    from dendrite.storage.base import StorageBackend

logger = logging.getLogger(__name__)

ATTRIBUTION_THRESHOLD = 0.7
"""Exclusive lower bound: a similarity of exactly 0.7 earns nothing."""


def qualifies(similarity: float) -> bool:
    return similarity > ATTRIBUTION_THRESHOLD


class AttributionEngine:
    """
    Search-hit attribution.

    Args:
        storage: Backend holding tags and interactions
        embeddings: Quota-gated embedding provider
        ledger: Reward ledger that receives the credits
    """

    def __init__(
        self,
        storage: "StorageBackend",
        embeddings: "EmbeddingProvider",
        ledger: "RewardLedger",
    ) -> None:
        self.storage = storage
        self.embeddings = embeddings
        self.ledger = ledger

    async def _credit(
        self,
        tag: EvaluationTag,
        similarity: float,
        query: str,
        selected_employee: str,
        trigger_user: str | None,
    ) -> Attribution:
        assert tag.id is not None
        await self.ledger.add_points(
            tag.creator_employee,
            SEARCH_HIT_REWARD,
            f"Search assist: Your tag helped find {selected_employee}",
            stat="search_hits",
        )
        await self.storage.record_interaction(
            TagInteraction(
                tag_id=tag.id,
                interaction_type=InteractionType.SEARCH_HIT,
                trigger_user=trigger_user,
                related_query=query,
            )
        )
        return Attribution(
            tag_id=tag.id,
            creator_employee=tag.creator_employee,
            similarity=similarity,
            points=SEARCH_HIT_REWARD,
        )

    async def track_search_hit(
        self,
        query: str,
        selected_employee: str,
        *,
        trigger_user: str | None = None,
    ) -> AttributionResult:
        """
        Credit the creators of tags that match ``query``.

        Args:
            query: The search text that led to the selection
            selected_employee: The employee that was picked from the results
            trigger_user: Who performed the search, if known

        Raises:
            DendriteError(INVALID_PARAMETER): blank query or employee
        """
        if not query or not query.strip() or not selected_employee or not selected_employee.strip():
            raise DendriteError(ErrorCode.INVALID_PARAMETER, "query and employee are required")

        tags = await self.storage.get_tags_for_target(selected_employee)
        result = AttributionResult(
            query=query,
            selected_employee=selected_employee,
            tags_considered=len(tags),
        )
        embedded = [t for t in tags if t.embedding and t.id is not None]
        if not embedded:
            logger.debug(f"No embedded tags for {selected_employee}; nothing to attribute")
            return result

        with telemetry_stage("attribution"):
            query_vector = await self.embeddings.embed_single(query)

        qualifying: list[tuple[EvaluationTag, float]] = []
        for tag in embedded:
            similarity = cosine_similarity(query_vector, tag.embedding)
            if qualifies(similarity):
                qualifying.append((tag, similarity))

        outcomes = await asyncio.gather(
            *(
                self._credit(tag, sim, query, selected_employee, trigger_user)
                for tag, sim in qualifying
            ),
            return_exceptions=True,
        )
        for (tag, _), outcome in zip(qualifying, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.error(f"Crediting tag {tag.id} for {tag.creator_employee} failed: {outcome}")
            else:
                result.credited.append(outcome)

        logger.info(
            f"Search hit on {selected_employee}: {len(result.credited)}/{len(embedded)} "
            f"embedded tags credited"
        )
        return result

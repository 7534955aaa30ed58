"""
Tag Service

Contributors attach short tags to colleagues ("great at Redis firefighting").
A submitted tag is:
    1. weighted from the creator's current level (fixed forever after)
    2. standardized into a StandardCompetency by the fast model
       (anything unusable falls back to HARD_SKILL_GENERAL)
    3. embedded through the quota gate (a failure leaves it unembedded,
       which only means it can never be credited by attribution)
    4. persisted, then rewarded with TAG_SUBMIT_REWARD points
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from dendrite.exceptions import DendriteError, ErrorCode
from dendrite.rewards.ledger import TAG_SUBMIT_REWARD, weight_for_level
from dendrite.types.records import EvaluationTag, StandardCompetency
from dendrite.types.results import TagClassification
from dendrite.utils.cost_telemetry import telemetry_stage

if TYPE_CHECKING:
    from dendrite.providers.base import EmbeddingProvider, LLMProvider
    from dendrite.rewards.ledger import RewardLedger
    from dendrite.storage.base import StorageBackend

logger = logging.getLogger(__name__)

_CLASSIFY_SYSTEM_PROMPT = """\
Classify a short peer-evaluation tag into exactly one competency category:

PROBLEM_SOLVING, STRATEGIC_MINDSET, ACTION_ORIENTED, DRIVE_FOR_RESULTS,
PEER_RELATIONSHIPS, COMMUNICATION, TECHNICAL_LEARNING, RESILIENCE,
HARD_SKILL_GENERAL

Use HARD_SKILL_GENERAL for concrete technical or domain skills
(tools, languages, systems) and whenever nothing else fits."""


class TagService:
    """
    Tag submission.

    Args:
        storage: Backend for tags
        llm: Fast LLM used for classification
        embeddings: Quota-gated embedding provider
        ledger: Reward ledger used for weights and the submission reward
    """

    def __init__(
        self,
        storage: "StorageBackend",
        llm: "LLMProvider",
        embeddings: "EmbeddingProvider",
        ledger: "RewardLedger",
    ) -> None:
        self.storage = storage
        self.llm = llm
        self.embeddings = embeddings
        self.ledger = ledger

    async def classify(self, raw_tag: str, context: str = "") -> StandardCompetency:
        prompt = f"TAG: {raw_tag}"
        if context:
            prompt += f"\nCONTEXT: {context}"
        try:
            with telemetry_stage("tag_classification"):
                result = await self.llm.generate_structured(
                    prompt, TagClassification, system=_CLASSIFY_SYSTEM_PROMPT
                )
        except Exception as e:
            logger.warning(f"Tag classification failed for {raw_tag!r}: {e}")
            return StandardCompetency.HARD_SKILL_GENERAL
        if isinstance(result, TagClassification):
            return result.category
        return StandardCompetency.HARD_SKILL_GENERAL

    async def submit_tag(
        self,
        creator_employee: str,
        target_employee: str,
        raw_tag: str,
        context: str = "",
    ) -> EvaluationTag:
        """
        Create, embed and reward a tag.

        Raises:
            DendriteError(INVALID_PARAMETER): blank creator, target or tag
        """
        creator = (creator_employee or "").strip()
        target = (target_employee or "").strip()
        tag_name = (raw_tag or "").strip()
        if not creator or not target or not tag_name:
            raise DendriteError(
                ErrorCode.INVALID_PARAMETER, "creator, target and tag are required"
            )

        contributor = await self.storage.get_or_create_contributor(creator)
        category = await self.classify(tag_name, context)

        tag = EvaluationTag(
            creator_employee=creator,
            target_employee=target,
            raw_tag_name=tag_name,
            context=(context or "").strip(),
            standardized_category=category,
            weight=weight_for_level(contributor.level),
        )

        try:
            with telemetry_stage("tag_embedding"):
                tag.embedding = await self.embeddings.embed_single(tag.embedding_text())
        except Exception as e:
            logger.warning(f"Tag embedding failed for {tag_name!r}; stored without vector: {e}")

        stored = await self.storage.insert_tag(tag)
        await self.ledger.add_points(
            creator,
            TAG_SUBMIT_REWARD,
            f"Submitted tag: {tag_name}",
            stat="tags_submitted",
        )
        logger.info(
            f"{creator} tagged {target} with {tag_name!r} "
            f"({category.value}, weight {stored.weight})"
        )
        return stored

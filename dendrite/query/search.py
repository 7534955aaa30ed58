"""
Search Engine

Similarity search over talent profiles with optional AI query expansion
and AI-written recommendations.

Flow for ``search(query, limit)``:
    1. Expansion (skipped in economy mode): cached rewrite of the query
    2. Embedding: one quota-gated call for the (expanded or raw) text
    3. Ranking: cosine similarity against stored profile vectors, descending;
       profiles without a vector are never matched

Batch variants fan out one task per query under a shared semaphore. Excess
queries wait for a slot rather than being dropped; each query's failure is
reported in its own result item, and results keep input order.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from dendrite.exceptions import DendriteError, ErrorCode
from dendrite.query.expansion import QueryExpander
from dendrite.types.results import BatchAskItem, BatchSearchItem, Recommendation, SearchHit
from dendrite.utils.cost_telemetry import telemetry_stage

if TYPE_CHECKING:
    from dendrite.config.settings import DendriteConfig
    from dendrite.providers.base import EmbeddingProvider, LLMProvider
    from dendrite.storage.base import StorageBackend
    from dendrite.types.records import TalentProfile

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 5

NO_MATCH_MESSAGE = "No matching talent was found for this request."

_RECOMMEND_SYSTEM_PROMPT = """\
You recommend colleagues for a request, using only the candidate profiles
provided. For each suitable candidate, say in one or two sentences why they
fit, citing their skills. Order by fit. If none of the candidates genuinely
fits the request, say plainly that there is no matching talent; never invent
a person or a skill."""


def _format_candidates(hits: list[SearchHit]) -> str:
    blocks = []
    for rank, hit in enumerate(hits, start=1):
        tags = ", ".join(hit.skills_en) or "-"
        blocks.append(
            f"{rank}. {hit.employee_name} (similarity {hit.similarity:.2f})\n"
            f"   Summary: {hit.summary_en or hit.summary_zh}\n"
            f"   Skills: {tags}"
        )
    return "\n".join(blocks)


def _to_hit(profile: "TalentProfile", similarity: float) -> SearchHit:
    return SearchHit(
        employee_name=profile.employee_name,
        similarity=similarity,
        summary_en=profile.summary_en,
        summary_zh=profile.summary_zh,
        skills_en=profile.skills_en,
        skills_zh=profile.skills_zh,
    )


class SearchEngine:
    """
    Profile search, recommendation and batch fan-out.

    Args:
        storage: Backend holding profile vectors
        llm: Main LLM provider (recommendations)
        embeddings: Quota-gated embedding provider
        config: Optional configuration
        expansion_llm: LLM for query expansion (defaults to ``llm``)
    """

    def __init__(
        self,
        storage: "StorageBackend",
        llm: "LLMProvider",
        embeddings: "EmbeddingProvider",
        config: "DendriteConfig | None" = None,
        *,
        expansion_llm: "LLMProvider | None" = None,
    ) -> None:
        self.storage = storage
        self.llm = llm
        self.embeddings = embeddings
        self.default_limit = config.default_search_limit if config else DEFAULT_SEARCH_LIMIT
        self.expander = QueryExpander(
            expansion_llm or llm,
            max_size=config.query_cache_max_size if config else 100,
        )
        self._expansion_enabled = config.query_expansion_enabled if config else True
        self._batch_semaphore = asyncio.Semaphore(config.search_concurrency if config else 20)

    # -------------------------------------------------------------------------
    # Economy mode
    # -------------------------------------------------------------------------

    @property
    def query_expansion_enabled(self) -> bool:
        return self._expansion_enabled

    def set_query_expansion(self, enabled: bool) -> None:
        """Toggle expansion for subsequent searches (False = economy mode)."""
        self._expansion_enabled = enabled
        logger.info(f"Query expansion {'enabled' if enabled else 'disabled (economy mode)'}")

    # -------------------------------------------------------------------------
    # Single query
    # -------------------------------------------------------------------------

    async def search(self, query: str, limit: int | None = None) -> list[SearchHit]:
        """
        Rank profiles against ``query``.

        Raises:
            DendriteError(INVALID_PARAMETER): blank query or non-positive limit
        """
        if not query or not query.strip():
            raise DendriteError(ErrorCode.INVALID_PARAMETER, "query is blank")
        limit = self.default_limit if limit is None else limit
        if limit <= 0:
            raise DendriteError(ErrorCode.INVALID_PARAMETER, f"limit must be positive, got {limit}")

        start = time.perf_counter_ns()
        query = query.strip()
        text = await self.expander.expand(query) if self._expansion_enabled else query

        with telemetry_stage("search_embedding"):
            vector = await self.embeddings.embed_single(text)
        if not vector or not any(vector):
            logger.warning(f"Empty embedding for query {query!r}; no results")
            return []

        ranked = await self.storage.search_profiles(list(vector), limit)
        hits = [_to_hit(profile, similarity) for profile, similarity in ranked]

        elapsed_ms = (time.perf_counter_ns() - start) // 1_000_000
        logger.info(f"Search {query!r}: {len(hits)} hits in {elapsed_ms}ms")
        return hits

    async def recommend(self, query: str) -> Recommendation:
        """
        Top candidates plus an AI recommendation over them.

        The recommendation sees the original (unexpanded) query. With no
        candidates the model is not called and a fixed no-match message is
        returned.
        """
        hits = await self.search(query, self.default_limit)
        if not hits:
            return Recommendation(query=query, answer=NO_MATCH_MESSAGE, candidates=[])

        prompt = f"REQUEST: {query.strip()}\n\nCANDIDATES:\n{_format_candidates(hits)}"
        with telemetry_stage("recommendation"):
            answer = await self.llm.generate(prompt, system=_RECOMMEND_SYSTEM_PROMPT)
        return Recommendation(query=query, answer=answer.strip() or NO_MATCH_MESSAGE, candidates=hits)

    # -------------------------------------------------------------------------
    # Batch fan-out
    # -------------------------------------------------------------------------

    async def batch_search(
        self,
        queries: list[str],
        limit: int | None = None,
    ) -> list[BatchSearchItem]:
        """Search every query concurrently; per-query failures are isolated."""

        async def _one(query: str) -> BatchSearchItem:
            async with self._batch_semaphore:
                try:
                    return BatchSearchItem(query=query, hits=await self.search(query, limit))
                except Exception as e:
                    logger.warning(f"Batch search failed for {query!r}: {e}")
                    return BatchSearchItem(query=query, error=str(e))

        logger.info(f"Batch search: {len(queries)} queries")
        return list(await asyncio.gather(*(_one(q) for q in queries)))

    async def batch_ask(self, queries: list[str]) -> list[BatchAskItem]:
        """Recommend for every query concurrently; per-query failures are isolated."""

        async def _one(query: str) -> BatchAskItem:
            async with self._batch_semaphore:
                try:
                    rec = await self.recommend(query)
                    return BatchAskItem(query=query, answer=rec.answer, candidates=rec.candidates)
                except Exception as e:
                    logger.warning(f"Batch ask failed for {query!r}: {e}")
                    return BatchAskItem(query=query, error=str(e))

        logger.info(f"Batch ask: {len(queries)} queries")
        return list(await asyncio.gather(*(_one(q) for q in queries)))

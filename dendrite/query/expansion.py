"""
Query Expansion

Rewrites short search queries into a richer description (related skills,
tools, synonyms) before embedding. Results are cached by the literal query
text. The cache is bounded by a full flush: once an insert pushes it past
``max_size`` every entry is dropped. It is not an LRU.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from dendrite.utils.cost_telemetry import telemetry_stage

if TYPE_CHECKING:
    from dendrite.providers.base import LLMProvider

logger = logging.getLogger(__name__)

QUERY_CACHE_MAX_SIZE = 100

_EXPANSION_SYSTEM_PROMPT = """\
You expand talent-search queries for a semantic search over employee profiles.
Rewrite the query as one short paragraph that names the underlying skills,
related tools and technologies, and common synonyms. Keep the original
intent; do not add unrelated skills. Reply with the expanded text only."""


class QueryExpander:
    """
    Cached AI query rewriting.

    Args:
        llm: Fast LLM provider used for the rewrite
        max_size: Cache size that triggers a full flush when exceeded
    """

    def __init__(self, llm: "LLMProvider", max_size: int = QUERY_CACHE_MAX_SIZE) -> None:
        self.llm = llm
        self.max_size = max_size
        self._cache: dict[str, str] = {}
        self._cache_lock = asyncio.Lock()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def cached(self, query: str) -> str | None:
        return self._cache.get(query)

    def clear(self) -> None:
        self._cache.clear()

    async def _store(self, query: str, expanded: str) -> None:
        async with self._cache_lock:
            self._cache[query] = expanded
            if len(self._cache) > self.max_size:
                logger.info(f"Query expansion cache exceeded {self.max_size} entries; flushing")
                self._cache.clear()

    async def expand(self, query: str) -> str:
        """
        Expanded form of ``query``.

        Falls back to the raw query (uncached) when the rewrite fails or
        comes back empty.
        """
        hit = self._cache.get(query)
        if hit is not None:
            logger.debug(f"Query expansion cache hit: {query!r}")
            return hit

        try:
            with telemetry_stage("query_expansion"):
                expanded = await self.llm.generate(
                    f"QUERY: {query}",
                    system=_EXPANSION_SYSTEM_PROMPT,
                    max_tokens=256,
                )
        except Exception as e:
            logger.warning(f"Query expansion failed, using raw query: {e}")
            return query

        expanded = (expanded or "").strip()
        if not expanded:
            return query
        await self._store(query, expanded)
        return expanded

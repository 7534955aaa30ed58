"""
OpenAI Embedding Provider (LangChain-based)

Implements EmbeddingProvider using LangChain's OpenAIEmbeddings.

text-embedding-3 models accept a ``dimensions`` argument; Dendrite stores
768-wide vectors, so the provider requests that width explicitly.

Example:
    >>> provider = OpenAIEmbeddingProvider(model="text-embedding-3-small", dimensions=768)
    >>> vectors = await provider.embed(["Redis: fixed a connection leak", "Kafka tuning"])
    >>> len(vectors[0])
    768
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from dendrite.providers.base import EmbeddingProvider
from dendrite.types.results import CostUsageRecord
from dendrite.utils.cost_telemetry import current_stage, estimate_cost_usd, record_usage
from dendrite.utils.token_count import count_text_tokens
from dendrite.utils.vectors import VECTOR_DIMENSION

if TYPE_CHECKING:
    from langchain_openai import OpenAIEmbeddings

DEFAULT_MODEL = "text-embedding-3-small"


def _get_openai_embeddings(
    api_key: str | None = None,
    model: str = DEFAULT_MODEL,
    dimensions: int | None = None,
) -> "OpenAIEmbeddings":
    """Create an OpenAIEmbeddings client (imported lazily)."""
    from langchain_openai import OpenAIEmbeddings
    from pydantic import SecretStr

    kwargs: dict = {"model": model}
    if dimensions is not None:
        kwargs["dimensions"] = dimensions
    if api_key:
        kwargs["api_key"] = SecretStr(api_key)
    return OpenAIEmbeddings(**kwargs)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    OpenAI embedding provider implementation using LangChain.

    Args:
        api_key: OpenAI API key. If None, uses OPENAI_API_KEY environment variable.
        model: Model to use
        dimensions: Output vector width
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        dimensions: int = VECTOR_DIMENSION,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._dimensions = dimensions
        self._client: OpenAIEmbeddings | None = None

    def _get_client(self) -> "OpenAIEmbeddings":
        if self._client is None:
            self._client = _get_openai_embeddings(
                api_key=self._api_key,
                model=self._model,
                dimensions=self._dimensions,
            )
        return self._client

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return self._model

    def _record(self, operation: str, texts: list[str], started_ns: int) -> None:
        input_tokens = sum(count_text_tokens(t, self._model) for t in texts)
        cost, pricing_found = estimate_cost_usd(self._model, input_tokens)
        record_usage(
            CostUsageRecord(
                provider="openai",
                model=self._model,
                operation=operation,
                kind="embedding",
                stage=current_stage(),
                input_tokens=input_tokens,
                output_tokens=0,
                total_tokens=input_tokens,
                estimated_cost_usd=cost,
                latency_ms=int((time.perf_counter_ns() - started_ns) // 1_000_000),
                estimated=True,
                metadata={"texts": len(texts), "pricing_found": pricing_found},
            )
        )

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for multiple texts in one request.

        Blank texts are sent as a single space; the API rejects empty input
        and the caller still needs a vector in that position.
        """
        if not texts:
            return []

        start = time.perf_counter_ns()
        payload = [t if t.strip() else " " for t in texts]
        client = self._get_client()

        # LangChain's embed_documents is synchronous, run in thread pool
        embeddings = await asyncio.to_thread(client.embed_documents, payload)
        self._record("embed", payload, start)
        return embeddings

    async def embed_single(self, text: str) -> list[float]:
        start = time.perf_counter_ns()
        client = self._get_client()
        embedding = await asyncio.to_thread(client.embed_query, text if text.strip() else " ")
        self._record("embed_single", [text], start)
        return embedding

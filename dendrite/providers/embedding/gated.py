"""
Quota-gated embedding provider.

Wraps any EmbeddingProvider so each request first waits on the shared
QuotaGate. One ``embed()`` call is one request and takes exactly one grant,
whatever the number of texts, which is why batch vectorization packs all
texts into a single call.
"""

from __future__ import annotations

import logging

from dendrite.providers.base import EmbeddingProvider
from dendrite.utils.quota import QuotaGate

logger = logging.getLogger(__name__)


class QuotaGatedEmbeddingProvider(EmbeddingProvider):
    """
    Embedding provider that respects a process-wide QuotaGate.

    Args:
        inner: Provider that performs the actual request
        gate: Shared gate; pass the same instance to every wrapper in the process
    """

    def __init__(self, inner: EmbeddingProvider, gate: QuotaGate) -> None:
        self._inner = inner
        self._gate = gate

    @property
    def gate(self) -> QuotaGate:
        return self._gate

    @property
    def inner(self) -> EmbeddingProvider:
        return self._inner

    @property
    def dimensions(self) -> int:
        return self._inner.dimensions

    @property
    def model_name(self) -> str:
        return self._inner.model_name

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        await self._gate.acquire()
        logger.debug(f"Embedding batch of {len(texts)} texts")
        return await self._inner.embed(texts)

    async def embed_single(self, text: str) -> list[float]:
        await self._gate.acquire()
        return await self._inner.embed_single(text)

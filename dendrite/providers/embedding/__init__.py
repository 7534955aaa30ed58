"""Embedding providers."""

from dendrite.providers.embedding.gated import QuotaGatedEmbeddingProvider
from dendrite.providers.embedding.openai import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider", "QuotaGatedEmbeddingProvider"]

"""
Providers

LLM and embedding providers behind abstract interfaces.

Implementations:
    llm.openai.OpenAILLMProvider: LangChain ChatOpenAI
    embedding.openai.OpenAIEmbeddingProvider: LangChain OpenAIEmbeddings
    embedding.gated.QuotaGatedEmbeddingProvider: QuotaGate wrapper for any embedding provider
"""

from dendrite.providers.base import EmbeddingProvider, LLMProvider

__all__ = ["EmbeddingProvider", "LLMProvider"]

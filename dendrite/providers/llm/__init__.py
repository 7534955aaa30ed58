"""LLM providers."""

from dendrite.providers.llm.openai import OpenAILLMProvider

__all__ = ["OpenAILLMProvider"]

"""
Provider Interfaces

The ingestion pipeline, search and tagging code talk to AI services only
through these two interfaces, which keeps tests free to substitute mocks and
lets the facade wrap the embedding side with the shared quota gate.

Failure contract: providers raise on transport or parse errors. Deciding
whether a failure means "zero skills", "raw query" or "no vector" is left to
the caller.
"""

from abc import ABC, abstractmethod
from typing import TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class LLMProvider(ABC):
    """Chat model used for skill extraction, profile synthesis, tag
    classification, query expansion and recommendations."""

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> str:
        """Free-text answer (expanded queries, recommendation prose)."""
        ...

    @abstractmethod
    async def generate_structured(
        self,
        prompt: str,
        schema: type[T],
        *,
        system: str | None = None,
    ) -> T:
        """Answer parsed into ``schema``; raises if the model output does not fit."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        ...


class EmbeddingProvider(ABC):
    """
    Text embedding model.

    Vectors come back in input order with ``dimensions`` entries each; the
    batch vector generator relies on that ordering to map results back to
    skills and profiles.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """One request for the whole batch. An empty batch makes no request."""
        ...

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        ...

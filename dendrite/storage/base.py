"""
Abstract Storage Backend Interface

Defines the contract for all storage backends.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from dendrite.types import (
        ContributorProfile,
        EvaluationTag,
        RewardRecord,
        SkillRecord,
        TagInteraction,
        TalentProfile,
    )


class StorageBackend(ABC):
    """
    Abstract interface for storage backends.

    Lifecycle:
        backend = DuckDBBackend(path)
        await backend.initialize()
        # ... operations ...
        await backend.close()

    Or using context manager:
        async with DuckDBBackend(path) as backend:
            await backend.push_task(queue_name, payload)
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize storage (create tables and sequences)."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close storage and release resources."""
        ...

    async def __aenter__(self) -> "StorageBackend":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Evaluation Queue
    # -------------------------------------------------------------------------

    @abstractmethod
    async def push_task(self, queue_name: str, payload: str) -> int:
        """Append a serialized task at the tail. Returns the new queue size."""
        ...

    @abstractmethod
    async def pop_task(self, queue_name: str) -> str | None:
        """Atomically remove and return the head payload, or None when empty."""
        ...

    @abstractmethod
    async def queue_size(self, queue_name: str) -> int:
        """Number of queued payloads (non-consuming)."""
        ...

    # -------------------------------------------------------------------------
    # Skills
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_skills(self, skills: list["SkillRecord"]) -> list["SkillRecord"]:
        """Persist skills and return them with storage ids, input order preserved."""
        ...

    @abstractmethod
    async def get_skills(self, employee_name: str) -> list["SkillRecord"]:
        """All skills for an employee, oldest first."""
        ...

    @abstractmethod
    async def update_skill_embedding(self, skill_id: int, embedding: list[float]) -> None:
        ...

    @abstractmethod
    async def count_skills(self) -> int:
        ...

    # -------------------------------------------------------------------------
    # Talent Profiles
    # -------------------------------------------------------------------------

    @abstractmethod
    async def upsert_profile(self, profile: "TalentProfile") -> "TalentProfile":
        """
        Insert or update the single profile for ``profile.employee_name``.

        An existing embedding is kept; it is replaced by
        ``update_profile_embedding`` once the new text is vectorized.
        """
        ...

    @abstractmethod
    async def get_profile(self, employee_name: str) -> "TalentProfile | None":
        ...

    @abstractmethod
    async def update_profile_embedding(self, employee_name: str, embedding: list[float]) -> None:
        ...

    @abstractmethod
    async def search_profiles(
        self,
        query_vector: list[float],
        limit: int,
    ) -> list[tuple["TalentProfile", float]]:
        """Profiles with an embedding, ranked by cosine similarity descending."""
        ...

    @abstractmethod
    async def count_profiles(self) -> int:
        ...

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_tag(self, tag: "EvaluationTag") -> "EvaluationTag":
        ...

    @abstractmethod
    async def get_tags_for_target(self, employee_name: str) -> list["EvaluationTag"]:
        """Every tag written about ``employee_name``, oldest first."""
        ...

    @abstractmethod
    async def record_interaction(self, interaction: "TagInteraction") -> "TagInteraction":
        ...

    @abstractmethod
    async def get_interactions(self, tag_id: int) -> list["TagInteraction"]:
        ...

    # -------------------------------------------------------------------------
    # Contributors and Rewards
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_contributor(self, employee_name: str) -> "ContributorProfile | None":
        ...

    @abstractmethod
    async def get_or_create_contributor(self, employee_name: str) -> "ContributorProfile":
        """Return the contributor row, creating it at 0 points / level 1 if missing."""
        ...

    @abstractmethod
    async def compare_and_set_contributor(
        self,
        profile: "ContributorProfile",
        expected_version: int,
        reward: "RewardRecord",
    ) -> bool:
        """
        Write ``profile`` and append ``reward`` in one transaction.

        Succeeds only if the stored version still equals ``expected_version``;
        the stored version is then incremented. Returns False on conflict,
        leaving both tables untouched.
        """
        ...

    @abstractmethod
    async def get_rewards(self, employee_name: str, limit: int = 50) -> list["RewardRecord"]:
        """Reward audit rows, newest first."""
        ...

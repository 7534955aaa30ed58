"""
Persistent Record Types

Rows owned by the pipeline (SkillRecord, TalentProfile), by the tagging
flow (EvaluationTag, TagInteraction) and by the reward ledger
(ContributorProfile, RewardRecord).

Embeddings are plain ``list[float]`` and nullable until vectorized.
Timestamps are timezone-aware UTC datetimes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Proficiency(str, Enum):
    """Ordinal skill proficiency, lowest first."""

    NOVICE = "novice"
    COMPETENT = "competent"
    PROFICIENT = "proficient"
    EXPERT = "expert"

    @property
    def rank(self) -> int:
        return list(Proficiency).index(self)

    @classmethod
    def parse(cls, value: str | None) -> "Proficiency":
        """Lenient parse of a model-supplied label; unknown labels map to COMPETENT."""
        if not value:
            return cls.COMPETENT
        label = value.strip().lower()
        for member in cls:
            if member.value == label or member.name.lower() == label:
                return member
        aliases = {
            "beginner": cls.NOVICE,
            "basic": cls.NOVICE,
            "intermediate": cls.COMPETENT,
            "advanced": cls.PROFICIENT,
            "master": cls.EXPERT,
        }
        return aliases.get(label, cls.COMPETENT)


class StandardCompetency(str, Enum):
    """Closed set of categories an evaluation tag is standardized into."""

    PROBLEM_SOLVING = "PROBLEM_SOLVING"
    STRATEGIC_MINDSET = "STRATEGIC_MINDSET"
    ACTION_ORIENTED = "ACTION_ORIENTED"
    DRIVE_FOR_RESULTS = "DRIVE_FOR_RESULTS"
    PEER_RELATIONSHIPS = "PEER_RELATIONSHIPS"
    COMMUNICATION = "COMMUNICATION"
    TECHNICAL_LEARNING = "TECHNICAL_LEARNING"
    RESILIENCE = "RESILIENCE"
    HARD_SKILL_GENERAL = "HARD_SKILL_GENERAL"


class InteractionType(str, Enum):
    """Kinds of signal recorded against a tag."""

    SEARCH_HIT = "SEARCH_HIT"
    UPVOTE = "UPVOTE"
    AI_VALIDATED = "AI_VALIDATED"
    VIEWED = "VIEWED"
    DOWNVOTE = "DOWNVOTE"
    REJECTED = "REJECTED"


class SkillRecord(BaseModel):
    """
    One extracted skill for one employee.

    Attributes:
        id: Storage-assigned id (None until persisted)
        employee_name: Who the skill belongs to
        skill_name: Short skill label
        proficiency: Ordinal proficiency level
        evidence: Text supporting the skill, taken from the evaluation
        embedding: Vector of ``embedding_text()``; None until vectorized
        created_at: Extraction time
    """

    id: int | None = None
    employee_name: str
    skill_name: str
    proficiency: Proficiency = Proficiency.COMPETENT
    evidence: str = ""
    embedding: list[float] | None = None
    created_at: datetime = Field(default_factory=utc_now)

    def embedding_text(self) -> str:
        return f"{self.skill_name}: {self.evidence}"


class TalentProfile(BaseModel):
    """
    Synthesized per-employee profile (one row per employee).

    The embedding is written in a second pass after synthesis; a profile
    without one is valid but never matched by similarity search.
    """

    id: int | None = None
    employee_name: str
    summary_zh: str = ""
    summary_en: str = ""
    skills_zh: list[str] = Field(default_factory=list)
    skills_en: list[str] = Field(default_factory=list)
    embedding: list[float] | None = None
    last_updated: datetime = Field(default_factory=utc_now)

    def embedding_text(self) -> str:
        """Text that represents this profile in vector space ("" if unsummarized)."""
        if not self.summary_en.strip():
            return ""
        return f"{self.summary_en} {', '.join(self.skills_en)}".strip()


class EvaluationTag(BaseModel):
    """
    A tag one contributor attached to another employee.

    Weight is fixed from the creator's level at creation time.
    """

    id: int | None = None
    creator_employee: str
    target_employee: str
    raw_tag_name: str
    context: str = ""
    standardized_category: StandardCompetency = StandardCompetency.HARD_SKILL_GENERAL
    weight: float = Field(default=1.0, ge=1.0)
    embedding: list[float] | None = None
    created_at: datetime = Field(default_factory=utc_now)

    def embedding_text(self) -> str:
        return f"{self.raw_tag_name} {self.context}".strip()


class ContributorProfile(BaseModel):
    """
    Point/level state for one contributor.

    ``version`` is the optimistic-lock counter; only the reward ledger writes
    these rows.
    """

    id: int | None = None
    employee_name: str
    current_points: int = 0
    total_accumulated_points: int = 0
    level: int = Field(default=1, ge=1, le=5)
    taste_embedding: list[float] | None = None
    total_tags_submitted: int = 0
    search_hits_count: int = 0
    version: int = 0
    updated_at: datetime = Field(default_factory=utc_now)


class RewardRecord(BaseModel):
    """Append-only audit row, one per ledger transaction."""

    id: int | None = None
    employee_name: str
    points_change: int
    reason: str
    timestamp: datetime = Field(default_factory=utc_now)


class TagInteraction(BaseModel):
    """Append-only signal recorded against a tag (e.g. a credited search hit)."""

    id: int | None = None
    tag_id: int
    interaction_type: InteractionType
    trigger_user: str | None = None
    related_query: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

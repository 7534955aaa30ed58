"""
Result Types

Operation Result Models:
    - PipelineResult: Outcome of one batch pipeline run
    - ProcessResult: Outcome of one real-time submission
    - VectorizationResult: Outcome of one batch embedding call
    - SubmissionReceipt / QueueStatus: Ingestion boundary results
    - SystemStats / HealthStatus: Monitoring
    - SearchHit / Recommendation / BatchSearchItem / BatchAskItem: Search results
    - Attribution / AttributionResult: Credits granted for a search hit

LLM Structured Output Models:
    - ExtractedSkill / SkillExtractionResponse
    - ProfileSummary
    - TagClassification

Cost Telemetry Models:
    - CostUsageRecord / StageCostBreakdown / CostBreakdown / CostDebugReport
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from dendrite.types.records import StandardCompetency

# -----------------------------------------------------------------------------
# Operation Results
# -----------------------------------------------------------------------------


class PipelineResult(BaseModel):
    """
    Summary of one evaluation pipeline run.

    Attributes:
        success: False only when the run failed above the per-employee boundary
        skills_extracted: SkillRecords persisted in this run
        profiles_updated: Profiles synthesized and upserted
        vectors_stored: Same as profiles_updated (vectorization is folded in)
        duration_ms: Wall time of the run
        error_message: Set when success is False
    """

    success: bool
    skills_extracted: int = 0
    profiles_updated: int = 0
    vectors_stored: int = 0
    duration_ms: int = 0
    error_message: str | None = None


class ProcessResult(BaseModel):
    """Outcome of real-time processing for one submission."""

    task_id: str
    employee_name: str
    success: bool
    skills_extracted: int = 0
    profile_updated: bool = False
    vectors_stored: int = 0
    duration_ms: int = 0
    error_message: str | None = None


class VectorizationResult(BaseModel):
    """
    Outcome of one batch embedding call.

    ``error`` is set (and the counts are zero) when the call failed; the
    records involved simply stay unvectorized.
    """

    requested: int = 0
    skill_vectors: int = 0
    profile_vectors: int = 0
    error: str | None = None


class SubmissionReceipt(BaseModel):
    """Handle returned after enqueueing evaluations."""

    queued: int
    queue_size: int


class QueueStatus(BaseModel):
    queue_size: int
    scan_interval_seconds: float
    batch_size: int
    pipeline_description: str = (
        "extract skills -> synthesize profile -> batch vectorize (one quota-gated call)"
    )


class SystemStats(BaseModel):
    """Row counts and queue depth for monitoring."""

    profile_count: int
    skill_count: int
    queue_size: int
    worker_running: bool = False


class HealthStatus(BaseModel):
    status: Literal["UP", "DEGRADED"]
    storage: bool
    checked_at: datetime


class SearchHit(BaseModel):
    """One ranked profile returned by similarity search."""

    employee_name: str
    similarity: float
    summary_en: str = ""
    summary_zh: str = ""
    skills_en: list[str] = Field(default_factory=list)
    skills_zh: list[str] = Field(default_factory=list)


class Recommendation(BaseModel):
    """AI recommendation over the top candidates for a query."""

    query: str
    answer: str
    candidates: list[SearchHit] = Field(default_factory=list)


class BatchSearchItem(BaseModel):
    """Per-query outcome within a batch search; exactly one of hits/error is meaningful."""

    query: str
    hits: list[SearchHit] = Field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchAskItem(BaseModel):
    query: str
    answer: str | None = None
    candidates: list[SearchHit] = Field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Attribution(BaseModel):
    """One credited tag."""

    tag_id: int
    creator_employee: str
    similarity: float
    points: int


class AttributionResult(BaseModel):
    query: str
    selected_employee: str
    tags_considered: int = 0
    credited: list[Attribution] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# LLM Structured Output Models
# -----------------------------------------------------------------------------


class ExtractedSkill(BaseModel):
    """A single skill found in evaluation text."""

    skill_name: str = Field(..., description="Short skill label, e.g. 'Redis troubleshooting'")
    proficiency: str = Field(
        "competent",
        description="One of: novice, competent, proficient, expert",
    )
    evidence: str = Field(
        ...,
        description="The sentence(s) from the evaluation that demonstrate the skill, quoted verbatim",
    )


class SkillExtractionResponse(BaseModel):
    skills: list[ExtractedSkill] = Field(default_factory=list)


class ProfileSummary(BaseModel):
    """Bilingual profile synthesized from an employee's skill history."""

    summary_zh: str = Field("", description="Profile summary in Simplified Chinese")
    summary_en: str = Field("", description="Profile summary in English")
    tags_zh: list[str] = Field(default_factory=list, description="Skill tags in Chinese")
    tags_en: list[str] = Field(default_factory=list, description="Skill tags in English")


class TagClassification(BaseModel):
    category: StandardCompetency = Field(
        StandardCompetency.HARD_SKILL_GENERAL,
        description="The competency category that best fits the tag",
    )


# -----------------------------------------------------------------------------
# Cost Telemetry Models
# -----------------------------------------------------------------------------


class CostUsageRecord(BaseModel):
    """One provider call as seen by cost telemetry."""

    provider: str
    model: str
    operation: str
    kind: Literal["chat", "embedding"] = "chat"
    stage: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    estimated_cost_usd: float = 0.0
    latency_ms: int = 0
    estimated: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)


class StageCostBreakdown(BaseModel):
    stage: str
    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    estimated_cost_usd: float = 0.0
    total_latency_ms: int = 0


class CostBreakdown(BaseModel):
    total_calls: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_embedding_tokens: int = 0
    total_tokens: int = 0
    total_estimated_cost_usd: float = 0.0
    total_latency_ms: int = 0
    calls_by_operation: dict[str, int] = Field(default_factory=dict)
    by_stage: list[StageCostBreakdown] = Field(default_factory=list)


class CostDebugReport(BaseModel):
    enabled: bool = False
    pricing_version: str = ""
    breakdown: CostBreakdown = Field(default_factory=CostBreakdown)
    warnings: list[str] = Field(default_factory=list)

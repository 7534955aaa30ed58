"""
Dendrite Types

Pydantic models shared across ingestion, search and rewards.

Modules:
    records: Persistent rows (skills, profiles, tags, contributors, rewards)
    tasks: Queue messages and real-time progress
    results: Operation results, LLM output schemas, cost telemetry
"""

from dendrite.types.records import (
    ContributorProfile,
    EvaluationTag,
    InteractionType,
    Proficiency,
    RewardRecord,
    SkillRecord,
    StandardCompetency,
    TagInteraction,
    TalentProfile,
)
from dendrite.types.results import (
    Attribution,
    AttributionResult,
    BatchAskItem,
    BatchSearchItem,
    PipelineResult,
    ProcessResult,
    HealthStatus,
    QueueStatus,
    Recommendation,
    SearchHit,
    SubmissionReceipt,
    SystemStats,
    VectorizationResult,
)
from dendrite.types.tasks import (
    BatchEvaluationTask,
    EvaluationTask,
    TaskProgress,
    TaskStatus,
)

__all__ = [
    # Records
    "ContributorProfile",
    "EvaluationTag",
    "InteractionType",
    "Proficiency",
    "RewardRecord",
    "SkillRecord",
    "StandardCompetency",
    "TagInteraction",
    "TalentProfile",
    # Tasks
    "BatchEvaluationTask",
    "EvaluationTask",
    "TaskProgress",
    "TaskStatus",
    # Results
    "Attribution",
    "AttributionResult",
    "BatchAskItem",
    "BatchSearchItem",
    "PipelineResult",
    "ProcessResult",
    "HealthStatus",
    "QueueStatus",
    "Recommendation",
    "SearchHit",
    "SubmissionReceipt",
    "SystemStats",
    "VectorizationResult",
]

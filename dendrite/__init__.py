"""
Dendrite - Talent Knowledge Service

Ingests free-text performance evaluations, extracts skills, builds
per-person semantic profiles, and serves similarity search with AI-assisted
recommendations. Contributors who tag colleagues earn points whenever their
tags help a search find someone.

Example:
    >>> from dendrite import Dendrite
    >>> async with Dendrite("./talent.duckdb") as app:
    ...     await app.submit_evaluation("Alice", "Alice debugged a Redis connection leak overnight")
    ...     await app.run_pipeline_now()
    ...     result = await app.ask("Who can help with Redis outages?")
    ...     print(result.data.answer)

Main Classes:
    Dendrite: Primary entry point for all operations
    DendriteConfig: Configuration management
    ApiResponse: Uniform success/error envelope

Components (usable on their own):
    QuotaGate, EvaluationQueue, PipelineWorker, EvaluationPipeline,
    BatchVectorGenerator, SearchEngine, AttributionEngine, RewardLedger
"""

__version__ = "0.1.0"


# Public API - lazy imports to avoid loading provider dependencies
def __getattr__(name: str):
    """Lazy import public API components."""

    if name == "Dendrite":
        from dendrite.api.service import Dendrite
        return Dendrite

    if name == "ApiResponse":
        from dendrite.api.envelope import ApiResponse
        return ApiResponse

    if name == "DendriteConfig":
        from dendrite.config.settings import DendriteConfig
        return DendriteConfig

    if name in ("DendriteError", "ErrorCode"):
        from dendrite import exceptions
        return getattr(exceptions, name)

    if name == "QuotaGate":
        from dendrite.utils.quota import QuotaGate
        return QuotaGate

    if name in (
        "EvaluationQueue",
        "PipelineWorker",
        "EvaluationPipeline",
        "BatchVectorGenerator",
    ):
        from dendrite import ingestion
        return getattr(ingestion, name)

    if name in ("SearchEngine", "AttributionEngine"):
        from dendrite import query
        return getattr(query, name)

    if name == "RewardLedger":
        from dendrite.rewards import RewardLedger
        return RewardLedger

    raise AttributeError(f"module 'dendrite' has no attribute {name!r}")


__all__ = [
    # Main classes
    "Dendrite",
    "DendriteConfig",
    "ApiResponse",
    "DendriteError",
    "ErrorCode",

    # Components
    "QuotaGate",
    "EvaluationQueue",
    "PipelineWorker",
    "EvaluationPipeline",
    "BatchVectorGenerator",
    "SearchEngine",
    "AttributionEngine",
    "RewardLedger",

    # Version
    "__version__",
]

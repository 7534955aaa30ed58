"""
Cost telemetry helpers.

Telemetry is enabled by attaching a CostCollector via contextvars. Providers
read the active collector and stage label and emit usage records on every
call; with no collector attached, recording is a no-op.

The Dendrite facade keeps one collector for the lifetime of the process so
``usage_report()`` covers every AI and embedding call made through it. The
report keeps embedding tokens apart from chat tokens and counts calls per
provider operation.

Prices cover the models DendriteConfig ships with, in USD per 1M tokens.
A model missing from the table costs 0.0 and is flagged in the report.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from contextvars import ContextVar

from dendrite.types.results import (
    CostBreakdown,
    CostDebugReport,
    CostUsageRecord,
    StageCostBreakdown,
)

PRICING_VERSION = "2026-09-estimate-v1"

# model -> (input, output); embedding models have no output side
MODEL_PRICES: dict[str, tuple[float, float]] = {
    "gpt-5-mini": (0.25, 2.0),
    "gpt-4o-mini": (0.15, 0.6),
    "text-embedding-3-small": (0.02, 0.0),
    "text-embedding-3-large": (0.13, 0.0),
}

_COLLECTOR: ContextVar[CostCollector | None] = ContextVar(
    "dendrite_cost_collector",
    default=None,
)
_STAGE: ContextVar[str] = ContextVar("dendrite_cost_stage", default="unknown")


def estimate_cost_usd(
    model: str, input_tokens: int, output_tokens: int = 0
) -> tuple[float, bool]:
    """Return ``(cost_usd, priced)``; ``priced`` is False for unknown models."""
    price = MODEL_PRICES.get(model)
    if price is None:
        return 0.0, False
    input_price, output_price = price
    return (input_tokens * input_price + output_tokens * output_price) / 1_000_000.0, True


class CostCollector:
    """Accumulates provider usage records."""

    def __init__(self, *, warn_threshold_usd: float | None = None) -> None:
        self._records: list[CostUsageRecord] = []
        self._warn_threshold_usd = warn_threshold_usd
        # Embedding calls finish on worker threads.
        self._lock = threading.Lock()

    def add(self, record: CostUsageRecord) -> None:
        with self._lock:
            self._records.append(record)

    def reset(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def summary(self) -> CostDebugReport:
        """Build aggregate report across all records."""
        with self._lock:
            records = list(self._records)

        by_stage: dict[str, StageCostBreakdown] = {}
        warnings: list[str] = []
        breakdown = CostBreakdown(total_calls=len(records))

        for record in records:
            if record.kind == "embedding":
                breakdown.total_embedding_tokens += record.input_tokens
            else:
                breakdown.total_input_tokens += record.input_tokens
                breakdown.total_output_tokens += record.output_tokens
            breakdown.total_tokens += record.total_tokens
            breakdown.total_estimated_cost_usd += record.estimated_cost_usd
            breakdown.total_latency_ms += record.latency_ms
            breakdown.calls_by_operation[record.operation] = (
                breakdown.calls_by_operation.get(record.operation, 0) + 1
            )

            stage = by_stage.setdefault(record.stage, StageCostBreakdown(stage=record.stage))
            stage.calls += 1
            stage.input_tokens += record.input_tokens
            stage.output_tokens += record.output_tokens
            stage.total_tokens += record.total_tokens
            stage.estimated_cost_usd += record.estimated_cost_usd
            stage.total_latency_ms += record.latency_ms

            if record.metadata.get("pricing_found") is False:
                warnings.append(
                    f"Missing pricing for model '{record.model}' in stage '{record.stage}'. "
                    "Cost shown as 0.0 for those calls."
                )

        total_cost = breakdown.total_estimated_cost_usd
        if self._warn_threshold_usd is not None and total_cost >= self._warn_threshold_usd:
            warnings.append(
                f"Estimated cost ${total_cost:.6f} exceeded threshold "
                f"${self._warn_threshold_usd:.6f}."
            )

        breakdown.by_stage = sorted(
            by_stage.values(), key=lambda s: s.estimated_cost_usd, reverse=True
        )
        return CostDebugReport(
            enabled=True,
            pricing_version=PRICING_VERSION,
            breakdown=breakdown,
            warnings=sorted(set(warnings)),
        )


@contextmanager
def telemetry_collector(collector: CostCollector | None):
    """Set active collector for provider instrumentation."""
    token = _COLLECTOR.set(collector)
    try:
        yield
    finally:
        _COLLECTOR.reset(token)


@contextmanager
def telemetry_stage(stage: str):
    """Set stage label for provider instrumentation."""
    token = _STAGE.set(stage)
    try:
        yield
    finally:
        _STAGE.reset(token)


def current_stage() -> str:
    return _STAGE.get()


def record_usage(record: CostUsageRecord) -> None:
    """Add record to active collector if telemetry is enabled."""
    collector = _COLLECTOR.get()
    if collector is not None:
        collector.add(record)

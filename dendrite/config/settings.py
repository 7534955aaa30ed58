"""
DendriteConfig - Configuration Management

Sensible defaults with full override capability.

Example:
    >>> # Use defaults (reads from environment)
    >>> app = Dendrite("./talent.duckdb")

    >>> # Explicit configuration
    >>> config = DendriteConfig(
    ...     llm_model="gpt-5-mini",
    ...     quota_interval_seconds=12.0,
    ... )
    >>> app = Dendrite("./talent.duckdb", config=config)

    >>> # From config file
    >>> config = DendriteConfig.from_file("./dendrite.toml")

Environment Variables:
    DENDRITE_LLM_PROVIDER - LLM provider name
    DENDRITE_LLM_MODEL - Model for extraction/synthesis/recommendation
    DENDRITE_LLM_MODEL_FAST - Model for query expansion and tag classification
    DENDRITE_EMBEDDING_PROVIDER - Embedding provider name
    DENDRITE_EMBEDDING_MODEL - Embedding model name
    DENDRITE_DB_PATH - Default database file used by the CLI
    DENDRITE_QUOTA_INTERVAL_SECONDS - Minimum spacing of embedding calls
    DENDRITE_SCAN_INTERVAL_SECONDS - Worker schedule period
    DENDRITE_QUERY_EXPANSION - "0"/"false" starts in economy mode
    DENDRITE_COST_DEBUG_WARN_THRESHOLD_USD - Cost warning threshold
    OPENAI_API_KEY - OpenAI API key (standard name)
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, cast


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return cast(dict[str, Any], tomllib.load(f))


def _env_flag(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no", "off", "")


class DendriteConfig:
    """Configuration for Dendrite."""

    # === LLM Configuration ===

    llm_provider: str = "openai"
    """LLM provider: "openai" """

    llm_model: str = "gpt-5-mini"
    """Model for skill extraction, profile synthesis and recommendations"""

    llm_model_fast: str = "gpt-4o-mini"
    """Model for quick operations (query expansion, tag classification)"""

    # === Embedding Configuration ===

    embedding_provider: str = "openai"
    """Embedding provider: "openai" """

    embedding_model: str = "text-embedding-3-small"
    """Embedding model name"""

    embedding_dimensions: int = 768
    """Embedding vector dimensions; every stored vector has exactly this width"""

    # === API Keys ===

    openai_api_key: str | None = None

    # === Quota ===

    quota_interval_seconds: float = 15.0
    """Minimum seconds between two granted embedding calls, process-wide"""

    # === Queue / Worker ===

    queue_name: str = "dendrite:evaluation:queue"
    """Logical name of the evaluation queue"""

    max_batch_size: int = 10
    """Maximum tasks popped per worker cycle"""

    scan_interval_seconds: float = 300.0
    """Worker schedule period"""

    initial_delay_seconds: float = 10.0
    """Delay before the first scheduled worker cycle"""

    # === Search ===

    default_search_limit: int = 5
    """Result count for recommend() and batch ask"""

    query_cache_max_size: int = 100
    """Expansion cache is flushed completely once it grows past this size"""

    query_expansion_enabled: bool = True
    """False = economy mode (raw query is embedded directly)"""

    search_concurrency: int = 20
    """Max concurrent queries in batch search/ask"""

    # === Processing ===

    extraction_concurrency: int = 5
    """Max employees processed concurrently within one pipeline run"""

    min_content_length: int = 10
    """Minimum evaluation length in characters"""

    max_content_length: int = 5000
    """Maximum evaluation length in characters"""

    max_employee_name_length: int = 100
    """Maximum employee name length in characters"""

    progress_retention_seconds: float = 300.0
    """How long finished real-time task progress is kept in memory"""

    ledger_max_retries: int = 10
    """Optimistic-lock retry budget for a single point update"""

    # === Storage ===

    db_path: str = "./dendrite.duckdb"
    """Default DuckDB file used by the CLI"""

    # === Cost Telemetry ===

    cost_debug_warn_threshold_usd: float | None = None
    """Optional warning threshold for the process usage report"""

    def __init__(self, **kwargs: Any) -> None:
        """
        Initialize configuration.

        Args:
            **kwargs: Override any configuration option
        """
        # Load from environment first
        self._load_from_env()

        # Apply explicit overrides
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                raise ValueError(f"Unknown configuration option: {key}")

    def _load_from_env(self) -> None:
        """Load configuration from environment variables."""
        self.openai_api_key = os.getenv("OPENAI_API_KEY")

        if provider := os.getenv("DENDRITE_LLM_PROVIDER"):
            self.llm_provider = provider
        if model := os.getenv("DENDRITE_LLM_MODEL"):
            self.llm_model = model
        if model := os.getenv("DENDRITE_LLM_MODEL_FAST"):
            self.llm_model_fast = model
        if provider := os.getenv("DENDRITE_EMBEDDING_PROVIDER"):
            self.embedding_provider = provider
        if model := os.getenv("DENDRITE_EMBEDDING_MODEL"):
            self.embedding_model = model
        if db_path := os.getenv("DENDRITE_DB_PATH"):
            self.db_path = db_path
        if interval := os.getenv("DENDRITE_QUOTA_INTERVAL_SECONDS"):
            self.quota_interval_seconds = float(interval)
        if interval := os.getenv("DENDRITE_SCAN_INTERVAL_SECONDS"):
            self.scan_interval_seconds = float(interval)
        if (expansion := os.getenv("DENDRITE_QUERY_EXPANSION")) is not None:
            self.query_expansion_enabled = _env_flag(expansion)
        if threshold := os.getenv("DENDRITE_COST_DEBUG_WARN_THRESHOLD_USD"):
            self.cost_debug_warn_threshold_usd = float(threshold)

    @classmethod
    def from_file(cls, path: str | Path) -> "DendriteConfig":
        """
        Load configuration from TOML file.

        Example TOML:
            [llm]
            model = "gpt-5-mini"
            model_fast = "gpt-4o-mini"

            [embedding]
            model = "text-embedding-3-small"
            dimensions = 768

            [queue]
            max_batch_size = 10
            scan_interval_seconds = 300

            [search]
            query_cache_max_size = 100

        Raises:
            FileNotFoundError: If config file doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        data = _load_toml(path)

        flat_config: dict[str, Any] = {}

        section_mapping = {
            "llm": "llm_",
            "embedding": "embedding_",
            "api_keys": "",  # api_keys.openai -> openai_api_key
            "queue": "",
            "search": "",
            "processing": "",
            "cost_telemetry": "cost_debug_",
            "storage": "",
        }

        for section, prefix in section_mapping.items():
            if section in data:
                for key, value in data[section].items():
                    if section == "api_keys":
                        flat_config[f"{key}_api_key"] = value
                    else:
                        flat_config[f"{prefix}{key}"] = value

        # Also support flat top-level keys
        for key, value in data.items():
            if key not in section_mapping and not isinstance(value, dict):
                flat_config[key] = value

        return cls(**flat_config)

    @classmethod
    def from_env(cls) -> "DendriteConfig":
        """Load configuration from environment variables only."""
        return cls()

    def to_file(self, path: str | Path) -> None:
        """
        Save configuration to TOML file.

        API keys are never written.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        sections: dict[str, dict[str, str | int | float | bool | None]] = {
            "llm": {
                "provider": self.llm_provider,
                "model": self.llm_model,
                "model_fast": self.llm_model_fast,
            },
            "embedding": {
                "provider": self.embedding_provider,
                "model": self.embedding_model,
                "dimensions": self.embedding_dimensions,
            },
            "queue": {
                "queue_name": self.queue_name,
                "max_batch_size": self.max_batch_size,
                "scan_interval_seconds": self.scan_interval_seconds,
                "initial_delay_seconds": self.initial_delay_seconds,
                "quota_interval_seconds": self.quota_interval_seconds,
            },
            "search": {
                "default_search_limit": self.default_search_limit,
                "query_cache_max_size": self.query_cache_max_size,
                "query_expansion_enabled": self.query_expansion_enabled,
                "search_concurrency": self.search_concurrency,
            },
            "processing": {
                "extraction_concurrency": self.extraction_concurrency,
                "min_content_length": self.min_content_length,
                "max_content_length": self.max_content_length,
                "max_employee_name_length": self.max_employee_name_length,
                "progress_retention_seconds": self.progress_retention_seconds,
                "ledger_max_retries": self.ledger_max_retries,
            },
            "cost_telemetry": {
                "warn_threshold_usd": self.cost_debug_warn_threshold_usd,
            },
            "storage": {
                "db_path": self.db_path,
            },
        }

        lines = ["# Dendrite Configuration", ""]

        for section_name, section_values in sections.items():
            lines.append(f"[{section_name}]")
            for key, value in section_values.items():
                if isinstance(value, str):
                    lines.append(f'{key} = "{value}"')
                elif isinstance(value, bool):
                    lines.append(f"{key} = {str(value).lower()}")
                elif isinstance(value, (int, float)):
                    lines.append(f"{key} = {value}")
            lines.append("")

        lines.extend([
            "# API keys should be set via environment variables:",
            "# OPENAI_API_KEY",
            "",
        ])

        path.write_text("\n".join(lines))

    def with_overrides(self, **kwargs: Any) -> "DendriteConfig":
        """Return new config with specified overrides."""
        new_config = DendriteConfig.__new__(DendriteConfig)
        for key in dir(self):
            if not key.startswith("_") and not callable(getattr(self, key)):
                setattr(new_config, key, getattr(self, key))
        for key, value in kwargs.items():
            setattr(new_config, key, value)
        return new_config

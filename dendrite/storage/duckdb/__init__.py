"""DuckDB storage backend."""

from dendrite.storage.duckdb.backend import DuckDBBackend

__all__ = ["DuckDBBackend"]

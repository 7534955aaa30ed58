"""
Storage Layer

Backends:
    duckdb.DuckDBBackend: Single-file embedded storage (queue, records, ledger)
"""

from dendrite.storage.base import StorageBackend
from dendrite.storage.duckdb import DuckDBBackend

__all__ = ["DuckDBBackend", "StorageBackend"]

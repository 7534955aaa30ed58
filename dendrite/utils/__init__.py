"""
Shared utilities: vector codec, quota gate, cost telemetry, token counting.
"""

from dendrite.utils.quota import QuotaGate
from dendrite.utils.vectors import (
    VECTOR_DIMENSION,
    cosine_similarity,
    from_storage_string,
    to_list,
    to_storage_string,
)

__all__ = [
    "QuotaGate",
    "VECTOR_DIMENSION",
    "cosine_similarity",
    "from_storage_string",
    "to_list",
    "to_storage_string",
]

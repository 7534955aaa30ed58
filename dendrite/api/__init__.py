"""
Public API

    Dendrite: Primary entry point (ingestion, pipeline, search, rewards)
    ApiResponse: Success/error envelope returned by every Dendrite call
"""

from dendrite.api.envelope import ApiResponse
from dendrite.api.service import Dendrite

__all__ = ["ApiResponse", "Dendrite"]

"""
Rewards

Contributor points, levels and the reward audit trail.
"""

from dendrite.rewards.ledger import (
    MAX_LEVEL,
    POINTS_PER_LEVEL,
    SEARCH_HIT_REWARD,
    TAG_SUBMIT_REWARD,
    RewardLedger,
    level_for,
    weight_for_level,
)

__all__ = [
    "MAX_LEVEL",
    "POINTS_PER_LEVEL",
    "SEARCH_HIT_REWARD",
    "TAG_SUBMIT_REWARD",
    "RewardLedger",
    "level_for",
    "weight_for_level",
]

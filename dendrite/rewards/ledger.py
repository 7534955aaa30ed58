"""
Reward Ledger

Point/level state machine per contributor with an append-only audit trail.

Rules for ``add_points(employee, delta, reason)``:
    - current_points += delta (always, negative deltas included)
    - total_accumulated_points += delta only when delta > 0
    - level = min(MAX_LEVEL, total_accumulated_points // POINTS_PER_LEVEL + 1),
      and never moves down
    - a level-up appends " (level up to LvN)" to the audit reason
    - exactly one RewardRecord is written per successful call

Each update is a compare-and-set on the row's version (profile write and
audit insert in one transaction), retried on conflict. Within one process,
updates to the same employee are additionally queued behind a per-employee
lock so that credit fan-out does not burn through the retry budget.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Literal

from dendrite.exceptions import DendriteError, ErrorCode
from dendrite.types.records import ContributorProfile, RewardRecord, utc_now

if TYPE_CHECKING:
    from dendrite.storage.base import StorageBackend

logger = logging.getLogger(__name__)

POINTS_PER_LEVEL = 100
MAX_LEVEL = 5

BASE_WEIGHT = 1.0
LEVEL_WEIGHT_INCREMENT = 0.25

SEARCH_HIT_REWARD = 50
TAG_SUBMIT_REWARD = 5

Stat = Literal["search_hits", "tags_submitted"]


def level_for(total_accumulated_points: int) -> int:
    """Level implied by lifetime points, clamped to 1..MAX_LEVEL."""
    return max(1, min(MAX_LEVEL, total_accumulated_points // POINTS_PER_LEVEL + 1))


def weight_for_level(level: int) -> float:
    """Tag weight granted to a creator at ``level``."""
    return BASE_WEIGHT + (max(1, level) - 1) * LEVEL_WEIGHT_INCREMENT


def apply_delta(
    profile: ContributorProfile,
    delta: int,
    reason: str,
    stat: Stat | None = None,
) -> tuple[ContributorProfile, str]:
    """
    Pure state transition.

    Returns:
        (new profile state, audit reason including any level-up note)
    """
    total = profile.total_accumulated_points + (delta if delta > 0 else 0)
    level = max(profile.level, level_for(total))
    if level > profile.level:
        reason = f"{reason} (level up to Lv{level})"

    changes: dict = {
        "current_points": profile.current_points + delta,
        "total_accumulated_points": total,
        "level": level,
        "updated_at": utc_now(),
    }
    if stat == "search_hits":
        changes["search_hits_count"] = profile.search_hits_count + 1
    elif stat == "tags_submitted":
        changes["total_tags_submitted"] = profile.total_tags_submitted + 1
    return profile.model_copy(update=changes), reason


class RewardLedger:
    """
    Atomic point updates for contributors.

    Args:
        storage: Backend holding contributor rows and reward records
        max_retries: Compare-and-set attempts before giving up
    """

    def __init__(self, storage: "StorageBackend", max_retries: int = 10) -> None:
        self.storage = storage
        self.max_retries = max(1, max_retries)
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, employee_name: str) -> asyncio.Lock:
        lock = self._locks.get(employee_name)
        if lock is None:
            lock = self._locks[employee_name] = asyncio.Lock()
        return lock

    async def add_points(
        self,
        employee_name: str,
        delta: int,
        reason: str,
        *,
        stat: Stat | None = None,
    ) -> ContributorProfile:
        """
        Apply ``delta`` points to ``employee_name`` and record it.

        Args:
            employee_name: Contributor to credit (created on first use)
            delta: Signed point change
            reason: Human-readable audit reason
            stat: Optional counter to bump in the same write

        Returns:
            The contributor state after the update

        Raises:
            DendriteError(INVALID_PARAMETER): blank employee name
            DendriteError(CONCURRENT_UPDATE): retry budget exhausted
        """
        if not employee_name or not employee_name.strip():
            raise DendriteError(ErrorCode.INVALID_PARAMETER, "employee name is blank")

        async with self._lock_for(employee_name):
            for attempt in range(1, self.max_retries + 1):
                current = await self.storage.get_or_create_contributor(employee_name)
                updated, audit_reason = apply_delta(current, delta, reason, stat)
                record = RewardRecord(
                    employee_name=employee_name,
                    points_change=delta,
                    reason=audit_reason,
                )
                if await self.storage.compare_and_set_contributor(
                    updated, current.version, record
                ):
                    if updated.level > current.level:
                        logger.info(f"{employee_name} reached level {updated.level}")
                    logger.debug(
                        f"{employee_name} {delta:+d} points ({audit_reason}); "
                        f"total {updated.total_accumulated_points}"
                    )
                    return updated.model_copy(update={"version": current.version + 1})

                logger.debug(
                    f"Version conflict updating {employee_name} "
                    f"(attempt {attempt}/{self.max_retries})"
                )
                await asyncio.sleep(0.005 * attempt)

        raise DendriteError(
            ErrorCode.CONCURRENT_UPDATE,
            f"{employee_name} after {self.max_retries} attempts",
        )

    async def get_contributor(self, employee_name: str) -> ContributorProfile | None:
        return await self.storage.get_contributor(employee_name)

    async def history(self, employee_name: str, limit: int = 50) -> list[RewardRecord]:
        """Audit trail for an employee, newest first."""
        return await self.storage.get_rewards(employee_name, limit)

"""
Profile Synthesizer

Builds the bilingual TalentProfile for an employee from their full skill
history (not just the latest batch) and upserts it. The profile vector is
written later by the BatchVectorGenerator.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from dendrite.exceptions import DendriteError, ErrorCode
from dendrite.types.records import SkillRecord, TalentProfile, utc_now
from dendrite.types.results import ProfileSummary

if TYPE_CHECKING:
    from dendrite.providers.base import LLMProvider
    from dendrite.storage.base import StorageBackend

logger = logging.getLogger(__name__)


_SYNTHESIS_SYSTEM_PROMPT = """\
You write concise talent profiles for an internal expertise directory.

Given an employee's skill history, produce:
- summary_en: 2-4 sentences in English describing what this person is good at,
  grounded only in the listed skills and evidence
- summary_zh: the same summary in Simplified Chinese
- tags_en: 3-8 short skill tags in English, most distinctive first
- tags_zh: the same tags in Simplified Chinese, in the same order

Do not mention proficiency labels verbatim and do not invent experience."""

_SYNTHESIS_USER_TEMPLATE = """\
EMPLOYEE: {employee_name}

SKILL HISTORY ({count} entries):
{skills}"""


def _format_skills(skills: list[SkillRecord]) -> str:
    lines = []
    for skill in skills:
        line = f"- {skill.skill_name} [{skill.proficiency.value}]"
        if skill.evidence:
            line += f": {skill.evidence}"
        lines.append(line)
    return "\n".join(lines)


class ProfileSynthesizer:
    """
    AI-backed profile synthesis.

    Args:
        storage: Source of skill history and target of the profile upsert
        llm: Provider used for the structured summary call
    """

    def __init__(self, storage: "StorageBackend", llm: "LLMProvider") -> None:
        self.storage = storage
        self.llm = llm

    async def synthesize(self, employee_name: str) -> TalentProfile | None:
        """
        Synthesize and upsert the profile for one employee.

        Returns:
            The stored profile, or None when the AI response was unusable
            (the existing profile, if any, is left untouched)

        Raises:
            DendriteError(EMPLOYEE_NO_DATA): the employee has no skill history
        """
        skills = await self.storage.get_skills(employee_name)
        if not skills:
            raise DendriteError(ErrorCode.EMPLOYEE_NO_DATA, employee_name)

        prompt = _SYNTHESIS_USER_TEMPLATE.format(
            employee_name=employee_name,
            count=len(skills),
            skills=_format_skills(skills),
        )
        try:
            summary = await self.llm.generate_structured(
                prompt,
                ProfileSummary,
                system=_SYNTHESIS_SYSTEM_PROMPT,
            )
        except Exception as e:
            logger.warning(f"Profile synthesis failed for {employee_name}: {e}")
            return None

        if not isinstance(summary, ProfileSummary) or not (
            summary.summary_en.strip() or summary.summary_zh.strip()
        ):
            logger.warning(f"Profile synthesis for {employee_name} returned an empty summary")
            return None

        profile = await self.storage.upsert_profile(
            TalentProfile(
                employee_name=employee_name,
                summary_zh=summary.summary_zh.strip(),
                summary_en=summary.summary_en.strip(),
                skills_zh=[t.strip() for t in summary.tags_zh if t.strip()],
                skills_en=[t.strip() for t in summary.tags_en if t.strip()],
                last_updated=utc_now(),
            )
        )
        logger.info(f"Profile updated for {employee_name} ({len(skills)} skills)")
        return profile

"""
Skill Extractor

Turns an employee's (merged) evaluation text into SkillRecords using one
structured LLM call. A failed or malformed response yields zero skills; it
never aborts the caller.

Example:
    >>> extractor = SkillExtractor(llm)
    >>> skills = await extractor.extract("Alice", "Alice debugged a Redis connection leak overnight")
    >>> skills[0].skill_name
    'Redis troubleshooting'
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from dendrite.types.records import Proficiency, SkillRecord
from dendrite.types.results import SkillExtractionResponse

if TYPE_CHECKING:
    from dendrite.providers.base import LLMProvider

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Prompts
# -----------------------------------------------------------------------------

_EXTRACTION_SYSTEM_PROMPT = """\
You are an HR analyst reading peer and manager evaluations of one employee.

## Your Task
List the concrete skills the evaluation text demonstrates.

## Rules
- One entry per distinct skill; name it briefly (2-5 words), keeping product
  and technology names as written (e.g. "Redis", "Kubernetes")
- proficiency is one of: novice, competent, proficient, expert
  (judge from the scope and difficulty of what was done)
- evidence MUST quote the sentence(s) from the text that show the skill,
  verbatim, without paraphrasing
- Do not invent skills the text does not support
- Evaluations may be in Chinese or English; skill names follow the text's language
- If the text shows no skills, return an empty list"""

_EXTRACTION_USER_TEMPLATE = """\
EMPLOYEE: {employee_name}

EVALUATIONS (separated by ---):
{content}

List the skills demonstrated above."""


class SkillExtractor:
    """
    AI-backed skill extraction.

    Args:
        llm: Provider used for the structured extraction call
    """

    def __init__(self, llm: "LLMProvider") -> None:
        self.llm = llm

    async def extract(self, employee_name: str, content: str) -> list[SkillRecord]:
        """
        Extract skills from evaluation text.

        Returns:
            Unpersisted SkillRecords in response order (empty on any AI failure)
        """
        if not content.strip():
            return []

        prompt = _EXTRACTION_USER_TEMPLATE.format(employee_name=employee_name, content=content)
        try:
            response = await self.llm.generate_structured(
                prompt,
                SkillExtractionResponse,
                system=_EXTRACTION_SYSTEM_PROMPT,
            )
        except Exception as e:
            logger.warning(f"Skill extraction failed for {employee_name}: {e}")
            return []

        if not isinstance(response, SkillExtractionResponse):
            logger.warning(f"Skill extraction for {employee_name} returned no usable result")
            return []

        skills: list[SkillRecord] = []
        seen: set[str] = set()
        for item in response.skills:
            name = (item.skill_name or "").strip()
            if not name or name.lower() in seen:
                continue
            seen.add(name.lower())
            skills.append(
                SkillRecord(
                    employee_name=employee_name,
                    skill_name=name,
                    proficiency=Proficiency.parse(item.proficiency),
                    evidence=(item.evidence or "").strip(),
                )
            )

        logger.info(f"Extracted {len(skills)} skills for {employee_name}")
        return skills

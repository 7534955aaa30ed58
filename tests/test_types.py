"""Tests for record and task types."""

import pytest
from pydantic import ValidationError

from dendrite.types import (
    ContributorProfile,
    EvaluationTag,
    EvaluationTask,
    Proficiency,
    SkillRecord,
    TaskStatus,
    TalentProfile,
)


class TestProficiency:
    """Tests for Proficiency parsing and ordering."""

    @pytest.mark.parametrize(
        "label, expected",
        [
            ("expert", Proficiency.EXPERT),
            (" Expert ", Proficiency.EXPERT),
            ("NOVICE", Proficiency.NOVICE),
            ("advanced", Proficiency.PROFICIENT),
            ("beginner", Proficiency.NOVICE),
            ("grandmaster", Proficiency.COMPETENT),
            ("", Proficiency.COMPETENT),
            (None, Proficiency.COMPETENT),
        ],
    )
    def test_parse(self, label, expected):
        assert Proficiency.parse(label) is expected

    def test_rank_is_ordinal(self):
        ranks = [p.rank for p in (Proficiency.NOVICE, Proficiency.COMPETENT,
                                  Proficiency.PROFICIENT, Proficiency.EXPERT)]
        assert ranks == sorted(ranks)


class TestEmbeddingText:
    """Tests for the text each record contributes to vector space."""

    def test_skill(self):
        skill = SkillRecord(employee_name="A", skill_name="Redis", evidence="fixed the leak")
        assert skill.embedding_text() == "Redis: fixed the leak"

    def test_profile(self):
        profile = TalentProfile(employee_name="A", summary_en="Backend engineer.",
                                skills_en=["Redis", "Go"])
        assert profile.embedding_text() == "Backend engineer. Redis, Go"

    def test_unsummarized_profile_is_blank(self):
        assert TalentProfile(employee_name="A", skills_en=["Redis"]).embedding_text() == ""

    def test_tag(self):
        assert EvaluationTag(creator_employee="B", target_employee="A",
                             raw_tag_name="Redis").embedding_text() == "Redis"


class TestConstraints:
    def test_tag_weight_floor(self):
        with pytest.raises(ValidationError):
            EvaluationTag(creator_employee="B", target_employee="A", raw_tag_name="x", weight=0.5)

    def test_contributor_level_range(self):
        with pytest.raises(ValidationError):
            ContributorProfile(employee_name="B", level=6)

    @pytest.mark.parametrize("name, content", [("   ", "text"), ("A", ""), ("A", "  ")])
    def test_task_rejects_blank_fields(self, name, content):
        with pytest.raises(ValidationError):
            EvaluationTask(employee_name=name, raw_content=content)

    def test_task_is_immutable(self):
        task = EvaluationTask(employee_name="A", raw_content="text")
        with pytest.raises(ValidationError):
            task.employee_name = "B"

    def test_finished_statuses(self):
        assert TaskStatus.COMPLETED.is_finished
        assert TaskStatus.FAILED.is_finished
        assert not TaskStatus.PROCESSING.is_finished
        assert not TaskStatus.QUEUED.is_finished

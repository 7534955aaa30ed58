"""
Tests for the evaluation pipeline: extraction, synthesis, vectorization.

Storage is a real DuckDB file; LLM and embedding providers are mocks.
"""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from dendrite.config import DendriteConfig
from dendrite.exceptions import DendriteError, ErrorCode
from dendrite.ingestion.extraction import SkillExtractor
from dendrite.ingestion.pipeline import EvaluationPipeline
from dendrite.ingestion.synthesis import ProfileSynthesizer
from dendrite.storage.duckdb import DuckDBBackend
from dendrite.types import BatchEvaluationTask, EvaluationTask, Proficiency, SkillRecord
from dendrite.types.results import ExtractedSkill, ProfileSummary, SkillExtractionResponse

# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


async def open_backend(path: Path) -> DuckDBBackend:
    backend = DuckDBBackend(path)
    await backend.initialize()
    return backend


def fake_structured(failing: set[str] | None = None, no_skills: set[str] | None = None):
    """generate_structured stand-in keyed on the employee named in the prompt."""
    failing = failing or set()
    no_skills = no_skills or set()

    async def _generate(prompt: str, schema, system=None, **kwargs):
        employee = prompt.split("EMPLOYEE: ", 1)[1].split("\n", 1)[0]
        if employee in failing:
            raise RuntimeError(f"model unavailable for {employee}")
        if schema is SkillExtractionResponse:
            if employee in no_skills:
                return SkillExtractionResponse(skills=[])
            return SkillExtractionResponse(skills=[
                ExtractedSkill(
                    skill_name="Redis troubleshooting",
                    proficiency="expert",
                    evidence=f"{employee} debugged a Redis connection leak overnight",
                ),
            ])
        if schema is ProfileSummary:
            return ProfileSummary(
                summary_en=f"{employee} handles Redis incidents.",
                summary_zh=f"{employee} 擅长处理 Redis 故障。",
                tags_en=["Redis"],
                tags_zh=["Redis"],
            )
        raise AssertionError(f"unexpected schema {schema}")

    return _generate


@pytest.fixture
def mock_llm() -> MagicMock:
    llm = MagicMock()
    llm.generate_structured = AsyncMock(side_effect=fake_structured())
    llm.model_name = "test-model"
    return llm


@pytest.fixture
def mock_embeddings() -> MagicMock:
    embeddings = MagicMock()
    embeddings.embed = AsyncMock(side_effect=lambda texts: [[0.1] * 768 for _ in texts])
    embeddings.embed_single = AsyncMock(return_value=[0.1] * 768)
    embeddings.dimensions = 768
    return embeddings


@pytest.fixture
def config() -> DendriteConfig:
    return DendriteConfig(extraction_concurrency=2)


def batch(*pairs: tuple[str, str]) -> BatchEvaluationTask:
    return BatchEvaluationTask(
        tasks=tuple(EvaluationTask(employee_name=name, raw_content=text) for name, text in pairs)
    )


# -----------------------------------------------------------------------------
# SkillExtractor
# -----------------------------------------------------------------------------


class TestSkillExtractor:
    @pytest.mark.asyncio
    async def test_maps_response_to_records(self, mock_llm) -> None:
        skills = await SkillExtractor(mock_llm).extract("Alice", "some evaluation text")

        assert len(skills) == 1
        assert skills[0].employee_name == "Alice"
        assert skills[0].proficiency is Proficiency.EXPERT
        assert skills[0].id is None

    @pytest.mark.asyncio
    async def test_blank_content_skips_model(self, mock_llm) -> None:
        assert await SkillExtractor(mock_llm).extract("Alice", "   ") == []
        mock_llm.generate_structured.assert_not_called()

    @pytest.mark.asyncio
    async def test_model_failure_yields_no_skills(self, mock_llm) -> None:
        mock_llm.generate_structured = AsyncMock(side_effect=RuntimeError("boom"))
        assert await SkillExtractor(mock_llm).extract("Alice", "text") == []

    @pytest.mark.asyncio
    async def test_duplicates_and_blank_names_dropped(self, mock_llm) -> None:
        mock_llm.generate_structured = AsyncMock(return_value=SkillExtractionResponse(skills=[
            ExtractedSkill(skill_name="Redis", proficiency="advanced", evidence="a"),
            ExtractedSkill(skill_name="redis ", proficiency="expert", evidence="b"),
            ExtractedSkill(skill_name="  ", evidence="c"),
            ExtractedSkill(skill_name="Go", proficiency="wizard", evidence="d"),
        ]))
        skills = await SkillExtractor(mock_llm).extract("Alice", "text")

        assert [s.skill_name for s in skills] == ["Redis", "Go"]
        assert skills[0].proficiency is Proficiency.PROFICIENT
        assert skills[1].proficiency is Proficiency.COMPETENT


# -----------------------------------------------------------------------------
# ProfileSynthesizer
# -----------------------------------------------------------------------------


class TestProfileSynthesizer:
    @pytest.mark.asyncio
    async def test_no_history_raises_no_data(self, tmp_path, mock_llm) -> None:
        storage = await open_backend(tmp_path / "db.duckdb")
        with pytest.raises(DendriteError) as exc_info:
            await ProfileSynthesizer(storage, mock_llm).synthesize("Nobody")
        assert exc_info.value.error_code is ErrorCode.EMPLOYEE_NO_DATA

    @pytest.mark.asyncio
    async def test_uses_full_history(self, tmp_path, mock_llm) -> None:
        storage = await open_backend(tmp_path / "db.duckdb")
        await storage.insert_skills([
            SkillRecord(employee_name="Alice", skill_name="Kafka"),
            SkillRecord(employee_name="Alice", skill_name="Redis"),
        ])

        profile = await ProfileSynthesizer(storage, mock_llm).synthesize("Alice")

        prompt = mock_llm.generate_structured.await_args.args[0]
        assert "Kafka" in prompt and "Redis" in prompt
        assert profile.summary_en == "Alice handles Redis incidents."
        assert (await storage.get_profile("Alice")).skills_en == ["Redis"]

    @pytest.mark.asyncio
    async def test_empty_summary_leaves_profile_untouched(self, tmp_path, mock_llm) -> None:
        storage = await open_backend(tmp_path / "db.duckdb")
        await storage.insert_skills([SkillRecord(employee_name="Alice", skill_name="Redis")])
        mock_llm.generate_structured = AsyncMock(return_value=ProfileSummary())

        assert await ProfileSynthesizer(storage, mock_llm).synthesize("Alice") is None
        assert await storage.get_profile("Alice") is None


# -----------------------------------------------------------------------------
# EvaluationPipeline
# -----------------------------------------------------------------------------


class TestEvaluationPipeline:
    @pytest.mark.asyncio
    async def test_end_to_end(self, tmp_path, mock_llm, mock_embeddings, config) -> None:
        storage = await open_backend(tmp_path / "db.duckdb")
        pipeline = EvaluationPipeline(storage, mock_llm, mock_embeddings, config)

        result = await pipeline.run(batch(
            ("Alice", "Alice debugged a Redis connection leak overnight"),
            ("Bob", "Bob also helped"),
        ))

        assert result.success
        assert result.skills_extracted == 2
        assert result.profiles_updated == 2
        assert result.vectors_stored == 2
        # One embedding request for 2 skills + 2 profiles.
        mock_embeddings.embed.assert_awaited_once()
        assert len(mock_embeddings.embed.await_args.args[0]) == 4

        [skill] = await storage.get_skills("Alice")
        assert "Alice debugged a Redis connection leak overnight" in skill.evidence
        assert skill.embedding is not None
        assert (await storage.get_profile("Alice")).embedding is not None

    @pytest.mark.asyncio
    async def test_one_extraction_call_per_employee(
        self, tmp_path, mock_llm, mock_embeddings, config
    ) -> None:
        storage = await open_backend(tmp_path / "db.duckdb")
        pipeline = EvaluationPipeline(storage, mock_llm, mock_embeddings, config)

        await pipeline.run(batch(("Alice", "first review"), ("Alice", "second review")))

        extraction_calls = [
            c for c in mock_llm.generate_structured.await_args_list
            if c.args[1] is SkillExtractionResponse
        ]
        assert len(extraction_calls) == 1
        prompt = extraction_calls[0].args[0]
        assert "first review\n---\nsecond review" in prompt

    @pytest.mark.asyncio
    async def test_employee_failure_is_isolated(
        self, tmp_path, mock_llm, mock_embeddings, config
    ) -> None:
        mock_llm.generate_structured = AsyncMock(side_effect=fake_structured(failing={"Bob"}))
        storage = await open_backend(tmp_path / "db.duckdb")
        pipeline = EvaluationPipeline(storage, mock_llm, mock_embeddings, config)

        result = await pipeline.run(batch(("Alice", "good"), ("Bob", "bad"), ("Carol", "good")))

        assert result.success
        assert result.profiles_updated == 2
        assert await storage.get_profile("Bob") is None
        assert await storage.get_profile("Carol") is not None

    @pytest.mark.asyncio
    async def test_employee_without_skills_is_skipped(
        self, tmp_path, mock_llm, mock_embeddings, config
    ) -> None:
        mock_llm.generate_structured = AsyncMock(side_effect=fake_structured(no_skills={"Bob"}))
        storage = await open_backend(tmp_path / "db.duckdb")
        pipeline = EvaluationPipeline(storage, mock_llm, mock_embeddings, config)

        result = await pipeline.run(batch(("Alice", "good"), ("Bob", "nothing here")))

        assert result.success
        assert result.skills_extracted == 1
        assert result.profiles_updated == 1

    @pytest.mark.asyncio
    async def test_embedding_failure_keeps_records(
        self, tmp_path, mock_llm, mock_embeddings, config
    ) -> None:
        mock_embeddings.embed = AsyncMock(side_effect=RuntimeError("quota exceeded"))
        storage = await open_backend(tmp_path / "db.duckdb")
        pipeline = EvaluationPipeline(storage, mock_llm, mock_embeddings, config)

        result = await pipeline.run(batch(("Alice", "good")))

        assert result.success
        [skill] = await storage.get_skills("Alice")
        assert skill.embedding is None
        assert (await storage.get_profile("Alice")).embedding is None
        assert await storage.search_profiles([0.1] * 768, 5) == []

    @pytest.mark.asyncio
    async def test_failure_outside_employee_boundary(
        self, tmp_path, mock_llm, mock_embeddings, config
    ) -> None:
        storage = await open_backend(tmp_path / "db.duckdb")
        pipeline = EvaluationPipeline(storage, mock_llm, mock_embeddings, config)
        pipeline.vectorizer.vectorize = AsyncMock(side_effect=RuntimeError("storage gone"))

        result = await pipeline.run(batch(("Alice", "good")))

        assert result.success is False
        assert result.error_message == "storage gone"
        assert result.skills_extracted == 1
        assert result.profiles_updated == 1

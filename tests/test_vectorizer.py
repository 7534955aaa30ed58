"""Tests for BatchVectorGenerator."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from dendrite.ingestion.vectorizer import BatchVectorGenerator
from dendrite.types import SkillRecord, TalentProfile


def vec(value: float, dim: int = 4) -> list[float]:
    return [value] * dim


@pytest.fixture
def mock_storage() -> MagicMock:
    storage = MagicMock()
    storage.update_skill_embedding = AsyncMock()
    storage.update_profile_embedding = AsyncMock()
    return storage


@pytest.fixture
def mock_embeddings() -> MagicMock:
    embeddings = MagicMock()
    embeddings.embed = AsyncMock(side_effect=lambda texts: [vec(i + 1.0) for i in range(len(texts))])
    embeddings.dimensions = 4
    return embeddings


def skill(skill_id: int | None, name: str = "Redis") -> SkillRecord:
    return SkillRecord(id=skill_id, employee_name="Alice", skill_name=name, evidence="fixed it")


class TestBuildRequests:
    def test_skills_then_profiles_with_keys(self) -> None:
        requests = BatchVectorGenerator.build_requests(
            [skill(11), skill(None, "Go")],
            [TalentProfile(employee_name="Alice", summary_en="Redis person", skills_en=["Redis"])],
        )
        assert [key for key, _ in requests] == [
            ("skill", 11),
            ("skill", "unsaved-1"),
            ("profile", "Alice"),
        ]
        assert requests[0][1] == "Redis: fixed it"
        assert requests[2][1] == "Redis person Redis"

    def test_blank_profile_keeps_its_slot(self) -> None:
        requests = BatchVectorGenerator.build_requests(
            [], [TalentProfile(employee_name="Empty"), TalentProfile(employee_name="B", summary_en="x")]
        )
        assert [key for key, _ in requests] == [("profile", "Empty"), ("profile", "B")]
        assert requests[0][1] == ""


class TestVectorize:
    @pytest.mark.asyncio
    async def test_one_call_for_everything(self, mock_storage, mock_embeddings) -> None:
        generator = BatchVectorGenerator(mock_storage, mock_embeddings)
        result = await generator.vectorize(
            [skill(1), skill(2, "Go")],
            [TalentProfile(employee_name="Alice", summary_en="Backend engineer")],
        )

        mock_embeddings.embed.assert_awaited_once()
        assert len(mock_embeddings.embed.await_args.args[0]) == 3
        assert result.requested == 3
        assert result.skill_vectors == 2
        assert result.profile_vectors == 1
        assert result.error is None

    @pytest.mark.asyncio
    async def test_vectors_follow_their_keys(self, mock_storage, mock_embeddings) -> None:
        generator = BatchVectorGenerator(mock_storage, mock_embeddings)
        await generator.vectorize(
            [skill(7), skill(9, "Go")],
            [TalentProfile(employee_name="Alice", summary_en="Backend engineer")],
        )

        skill_calls = {c.args[0]: c.args[1] for c in mock_storage.update_skill_embedding.await_args_list}
        assert skill_calls == {7: vec(1.0), 9: vec(2.0)}
        mock_storage.update_profile_embedding.assert_awaited_once_with("Alice", vec(3.0))

    @pytest.mark.asyncio
    async def test_blank_profile_text_is_not_written(self, mock_storage, mock_embeddings) -> None:
        generator = BatchVectorGenerator(mock_storage, mock_embeddings)
        result = await generator.vectorize(
            [skill(1)],
            [TalentProfile(employee_name="Empty"), TalentProfile(employee_name="Bob", summary_en="x")],
        )

        # The blank profile still occupies index 1, so Bob gets the third vector.
        assert len(mock_embeddings.embed.await_args.args[0]) == 3
        mock_storage.update_profile_embedding.assert_awaited_once_with("Bob", vec(3.0))
        assert result.profile_vectors == 1

    @pytest.mark.asyncio
    async def test_nothing_to_embed_skips_call(self, mock_storage, mock_embeddings) -> None:
        generator = BatchVectorGenerator(mock_storage, mock_embeddings)
        result = await generator.vectorize([], [TalentProfile(employee_name="Empty")])

        mock_embeddings.embed.assert_not_awaited()
        assert result.skill_vectors == 0 and result.profile_vectors == 0
        assert result.error is None

    @pytest.mark.asyncio
    async def test_unsaved_skills_are_not_written(self, mock_storage, mock_embeddings) -> None:
        generator = BatchVectorGenerator(mock_storage, mock_embeddings)
        result = await generator.vectorize([skill(None)])

        mock_embeddings.embed.assert_awaited_once()
        mock_storage.update_skill_embedding.assert_not_awaited()
        assert result.skill_vectors == 0

    @pytest.mark.asyncio
    async def test_provider_failure_leaves_records_unvectorized(
        self, mock_storage, mock_embeddings
    ) -> None:
        mock_embeddings.embed = AsyncMock(side_effect=RuntimeError("rate limited"))
        generator = BatchVectorGenerator(mock_storage, mock_embeddings)

        result = await generator.vectorize([skill(1)], [TalentProfile(employee_name="A", summary_en="x")])

        assert result.error == "rate limited"
        assert result.skill_vectors == 0 and result.profile_vectors == 0
        mock_storage.update_skill_embedding.assert_not_awaited()
        mock_storage.update_profile_embedding.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_count_mismatch_writes_nothing(self, mock_storage, mock_embeddings) -> None:
        mock_embeddings.embed = AsyncMock(return_value=[vec(1.0)])
        generator = BatchVectorGenerator(mock_storage, mock_embeddings)

        result = await generator.vectorize([skill(1), skill(2, "Go")])

        assert "mismatch" in result.error
        mock_storage.update_skill_embedding.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_storage_failure_reports_partial_counts(self, mock_storage, mock_embeddings) -> None:
        mock_storage.update_skill_embedding = AsyncMock(side_effect=[None, RuntimeError("disk full")])
        generator = BatchVectorGenerator(mock_storage, mock_embeddings)

        result = await generator.vectorize([skill(1), skill(2, "Go")])

        assert result.skill_vectors == 1
        assert result.error == "disk full"

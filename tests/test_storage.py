"""Tests for the DuckDB storage backend."""

import asyncio
from pathlib import Path

import pytest

from dendrite.storage.duckdb import DuckDBBackend
from dendrite.types import (
    ContributorProfile,
    EvaluationTag,
    InteractionType,
    Proficiency,
    RewardRecord,
    SkillRecord,
    StandardCompetency,
    TagInteraction,
    TalentProfile,
)


async def open_backend(path: Path) -> DuckDBBackend:
    backend = DuckDBBackend(path)
    await backend.initialize()
    return backend


def basis(index: int, dim: int = 8) -> list[float]:
    vector = [0.0] * dim
    vector[index] = 1.0
    return vector


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_uninitialized_backend_raises(self, tmp_path: Path) -> None:
        backend = DuckDBBackend(tmp_path / "db.duckdb")
        with pytest.raises(RuntimeError):
            await backend.count_skills()

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, tmp_path: Path) -> None:
        backend = await open_backend(tmp_path / "db.duckdb")
        await backend.initialize()
        assert await backend.count_profiles() == 0

    @pytest.mark.asyncio
    async def test_async_context_manager(self, tmp_path: Path) -> None:
        async with DuckDBBackend(tmp_path / "db.duckdb") as backend:
            assert await backend.count_skills() == 0


class TestSkills:
    @pytest.mark.asyncio
    async def test_insert_assigns_ids_and_reads_back(self, tmp_path: Path) -> None:
        backend = await open_backend(tmp_path / "db.duckdb")
        stored = await backend.insert_skills([
            SkillRecord(employee_name="Alice", skill_name="Redis", proficiency=Proficiency.EXPERT,
                        evidence="Fixed the leak"),
            SkillRecord(employee_name="Alice", skill_name="Go"),
        ])

        assert all(s.id is not None for s in stored)
        assert stored[0].id != stored[1].id

        skills = await backend.get_skills("Alice")
        assert [s.skill_name for s in skills] == ["Redis", "Go"]
        assert skills[0].proficiency is Proficiency.EXPERT
        assert skills[0].embedding is None

    @pytest.mark.asyncio
    async def test_insert_empty_list(self, tmp_path: Path) -> None:
        backend = await open_backend(tmp_path / "db.duckdb")
        assert await backend.insert_skills([]) == []

    @pytest.mark.asyncio
    async def test_embedding_is_stored_losslessly(self, tmp_path: Path) -> None:
        backend = await open_backend(tmp_path / "db.duckdb")
        [skill] = await backend.insert_skills([SkillRecord(employee_name="A", skill_name="S")])
        vector = [0.123456789012345, -1e-9, 3.0]
        await backend.update_skill_embedding(skill.id, vector)

        [reloaded] = await backend.get_skills("A")
        assert reloaded.embedding == vector


class TestProfiles:
    @pytest.mark.asyncio
    async def test_upsert_keeps_one_row_per_employee(self, tmp_path: Path) -> None:
        backend = await open_backend(tmp_path / "db.duckdb")
        first = await backend.upsert_profile(TalentProfile(employee_name="Alice", summary_en="v1"))
        second = await backend.upsert_profile(TalentProfile(employee_name="Alice", summary_en="v2"))

        assert first.id == second.id
        assert second.summary_en == "v2"
        assert await backend.count_profiles() == 1

    @pytest.mark.asyncio
    async def test_upsert_preserves_existing_embedding(self, tmp_path: Path) -> None:
        backend = await open_backend(tmp_path / "db.duckdb")
        await backend.upsert_profile(TalentProfile(employee_name="Alice", summary_en="v1"))
        await backend.update_profile_embedding("Alice", basis(0))

        updated = await backend.upsert_profile(
            TalentProfile(employee_name="Alice", summary_en="v2", skills_en=["Redis"])
        )
        assert updated.embedding == basis(0)
        assert updated.skills_en == ["Redis"]

    @pytest.mark.asyncio
    async def test_get_missing_profile(self, tmp_path: Path) -> None:
        backend = await open_backend(tmp_path / "db.duckdb")
        assert await backend.get_profile("Nobody") is None

    @pytest.mark.asyncio
    async def test_search_ranks_by_similarity(self, tmp_path: Path) -> None:
        backend = await open_backend(tmp_path / "db.duckdb")
        for name, vector in [
            ("Exact", basis(0)),
            ("Close", [0.9, 0.1] + [0.0] * 6),
            ("Far", basis(1)),
        ]:
            await backend.upsert_profile(TalentProfile(employee_name=name, summary_en=name))
            await backend.update_profile_embedding(name, vector)

        results = await backend.search_profiles(basis(0), limit=2)

        assert [p.employee_name for p, _ in results] == ["Exact", "Close"]
        assert results[0][1] == pytest.approx(1.0)
        assert results[0][1] >= results[1][1]

    @pytest.mark.asyncio
    async def test_search_skips_unvectorized_and_mismatched(self, tmp_path: Path) -> None:
        backend = await open_backend(tmp_path / "db.duckdb")
        await backend.upsert_profile(TalentProfile(employee_name="NoVector", summary_en="x"))
        await backend.upsert_profile(TalentProfile(employee_name="Short", summary_en="x"))
        await backend.update_profile_embedding("Short", [1.0, 0.0])
        await backend.upsert_profile(TalentProfile(employee_name="Zero", summary_en="x"))
        await backend.update_profile_embedding("Zero", [0.0] * 8)

        assert await backend.search_profiles(basis(0), limit=5) == []

    @pytest.mark.asyncio
    async def test_search_with_empty_vector(self, tmp_path: Path) -> None:
        backend = await open_backend(tmp_path / "db.duckdb")
        assert await backend.search_profiles([], limit=5) == []


class TestTags:
    @pytest.mark.asyncio
    async def test_insert_and_fetch_by_target(self, tmp_path: Path) -> None:
        backend = await open_backend(tmp_path / "db.duckdb")
        tag = await backend.insert_tag(EvaluationTag(
            creator_employee="Bob",
            target_employee="Alice",
            raw_tag_name="Redis firefighter",
            standardized_category=StandardCompetency.PROBLEM_SOLVING,
            weight=1.25,
            embedding=basis(2),
        ))
        assert tag.id is not None

        tags = await backend.get_tags_for_target("Alice")
        assert len(tags) == 1
        assert tags[0].standardized_category is StandardCompetency.PROBLEM_SOLVING
        assert tags[0].weight == 1.25
        assert tags[0].embedding == basis(2)
        assert await backend.get_tags_for_target("Bob") == []

    @pytest.mark.asyncio
    async def test_interactions(self, tmp_path: Path) -> None:
        backend = await open_backend(tmp_path / "db.duckdb")
        await backend.record_interaction(TagInteraction(
            tag_id=7,
            interaction_type=InteractionType.SEARCH_HIT,
            trigger_user="Carol",
            related_query="redis",
        ))
        [interaction] = await backend.get_interactions(7)
        assert interaction.interaction_type is InteractionType.SEARCH_HIT
        assert interaction.trigger_user == "Carol"


class TestContributors:
    @pytest.mark.asyncio
    async def test_get_or_create_is_idempotent(self, tmp_path: Path) -> None:
        backend = await open_backend(tmp_path / "db.duckdb")
        first = await backend.get_or_create_contributor("Bob")
        second = await backend.get_or_create_contributor("Bob")

        assert first.id == second.id
        assert first.level == 1 and first.current_points == 0 and first.version == 0
        assert await backend.get_contributor("Nobody") is None

    @pytest.mark.asyncio
    async def test_compare_and_set(self, tmp_path: Path) -> None:
        backend = await open_backend(tmp_path / "db.duckdb")
        current = await backend.get_or_create_contributor("Bob")
        updated = current.model_copy(update={"current_points": 50, "total_accumulated_points": 50})
        reward = RewardRecord(employee_name="Bob", points_change=50, reason="test")

        assert await backend.compare_and_set_contributor(updated, 0, reward) is True
        # Stale version loses and writes nothing.
        assert await backend.compare_and_set_contributor(updated, 0, reward) is False

        stored = await backend.get_contributor("Bob")
        assert stored.current_points == 50
        assert stored.version == 1
        assert len(await backend.get_rewards("Bob")) == 1

    @pytest.mark.asyncio
    async def test_compare_and_set_unknown_contributor(self, tmp_path: Path) -> None:
        backend = await open_backend(tmp_path / "db.duckdb")
        profile = ContributorProfile(employee_name="Ghost")
        reward = RewardRecord(employee_name="Ghost", points_change=1, reason="x")
        assert await backend.compare_and_set_contributor(profile, 0, reward) is False

    @pytest.mark.asyncio
    async def test_concurrent_writers_from_threads(self, tmp_path: Path) -> None:
        backend = await open_backend(tmp_path / "db.duckdb")
        await asyncio.gather(*(
            backend.push_task("q", f"payload-{i}") for i in range(20)
        ))
        assert await backend.queue_size("q") == 20

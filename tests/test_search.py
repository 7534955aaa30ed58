"""Tests for query expansion, similarity search and recommendations."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from dendrite.config import DendriteConfig
from dendrite.exceptions import DendriteError, ErrorCode
from dendrite.query.expansion import QueryExpander
from dendrite.query.search import NO_MATCH_MESSAGE, SearchEngine
from dendrite.types import TalentProfile

# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def mock_llm() -> MagicMock:
    llm = MagicMock()
    llm.generate = AsyncMock(return_value="Alice is the best fit: she fixed the Redis leak.")
    llm.model_name = "test-model"
    return llm


@pytest.fixture
def mock_fast_llm() -> MagicMock:
    llm = MagicMock()
    llm.generate = AsyncMock(side_effect=lambda prompt, **kw: f"expanded {prompt}")
    llm.model_name = "test-fast-model"
    return llm


@pytest.fixture
def mock_embeddings() -> MagicMock:
    embeddings = MagicMock()
    embeddings.embed_single = AsyncMock(return_value=[0.1] * 768)
    embeddings.dimensions = 768
    return embeddings


@pytest.fixture
def mock_storage() -> MagicMock:
    storage = MagicMock()
    storage.search_profiles = AsyncMock(return_value=[
        (TalentProfile(employee_name="Alice", summary_en="Redis expert", skills_en=["Redis"]), 0.91),
        (TalentProfile(employee_name="Bob", summary_en="Kafka", skills_en=["Kafka"]), 0.42),
    ])
    return storage


@pytest.fixture
def config() -> DendriteConfig:
    return DendriteConfig(query_expansion_enabled=True, search_concurrency=2)


@pytest.fixture
def engine(mock_storage, mock_llm, mock_embeddings, mock_fast_llm, config) -> SearchEngine:
    return SearchEngine(mock_storage, mock_llm, mock_embeddings, config, expansion_llm=mock_fast_llm)


# -----------------------------------------------------------------------------
# QueryExpander
# -----------------------------------------------------------------------------


class TestQueryExpander:
    @pytest.mark.asyncio
    async def test_cache_hit_skips_model(self, mock_fast_llm) -> None:
        expander = QueryExpander(mock_fast_llm)

        first = await expander.expand("redis")
        second = await expander.expand("redis")

        assert first == second
        assert mock_fast_llm.generate.await_count == 1
        assert expander.cache_size == 1

    @pytest.mark.asyncio
    async def test_cache_flushes_completely_past_max(self, mock_fast_llm) -> None:
        expander = QueryExpander(mock_fast_llm, max_size=100)
        for i in range(100):
            await expander.expand(f"query {i}")
        assert expander.cache_size == 100

        await expander.expand("query 100")

        assert expander.cache_size == 0
        assert expander.cached("query 0") is None

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_raw_query(self, mock_fast_llm) -> None:
        mock_fast_llm.generate = AsyncMock(side_effect=RuntimeError("timeout"))
        expander = QueryExpander(mock_fast_llm)

        assert await expander.expand("redis") == "redis"
        assert expander.cache_size == 0

    @pytest.mark.asyncio
    async def test_empty_expansion_falls_back(self, mock_fast_llm) -> None:
        mock_fast_llm.generate = AsyncMock(return_value="   ")
        expander = QueryExpander(mock_fast_llm)

        assert await expander.expand("redis") == "redis"
        assert expander.cache_size == 0


# -----------------------------------------------------------------------------
# SearchEngine.search
# -----------------------------------------------------------------------------


class TestSearch:
    @pytest.mark.asyncio
    async def test_returns_ranked_hits(self, engine, mock_storage) -> None:
        hits = await engine.search("redis", limit=2)

        assert [h.employee_name for h in hits] == ["Alice", "Bob"]
        assert hits[0].similarity == 0.91
        mock_storage.search_profiles.assert_awaited_once()
        assert mock_storage.search_profiles.await_args.args[1] == 2

    @pytest.mark.asyncio
    async def test_expanded_text_is_embedded(self, engine, mock_embeddings) -> None:
        await engine.search("redis")
        mock_embeddings.embed_single.assert_awaited_once_with("expanded QUERY: redis")

    @pytest.mark.asyncio
    async def test_economy_mode_skips_expansion(self, engine, mock_fast_llm, mock_embeddings) -> None:
        engine.set_query_expansion(False)

        await engine.search("redis")

        mock_fast_llm.generate.assert_not_called()
        mock_embeddings.embed_single.assert_awaited_once_with("redis")
        assert engine.query_expansion_enabled is False

    @pytest.mark.asyncio
    async def test_zero_vector_yields_no_hits(self, engine, mock_embeddings, mock_storage) -> None:
        mock_embeddings.embed_single = AsyncMock(return_value=[0.0] * 768)

        assert await engine.search("redis") == []
        mock_storage.search_profiles.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query, limit", [("", 5), ("   ", 5), ("redis", 0), ("redis", -1)])
    async def test_invalid_input(self, engine, query, limit) -> None:
        with pytest.raises(DendriteError) as exc_info:
            await engine.search(query, limit)
        assert exc_info.value.error_code is ErrorCode.INVALID_PARAMETER

    @pytest.mark.asyncio
    async def test_default_limit(self, engine, mock_storage) -> None:
        await engine.search("redis")
        assert mock_storage.search_profiles.await_args.args[1] == 5


# -----------------------------------------------------------------------------
# SearchEngine.recommend
# -----------------------------------------------------------------------------


class TestRecommend:
    @pytest.mark.asyncio
    async def test_recommendation_uses_original_query(self, engine, mock_llm) -> None:
        rec = await engine.recommend("who knows redis?")

        assert rec.answer.startswith("Alice is the best fit")
        assert [c.employee_name for c in rec.candidates] == ["Alice", "Bob"]
        prompt = mock_llm.generate.await_args.args[0]
        assert "REQUEST: who knows redis?" in prompt
        assert "expanded" not in prompt

    @pytest.mark.asyncio
    async def test_no_candidates_skips_model(self, engine, mock_llm, mock_storage) -> None:
        mock_storage.search_profiles = AsyncMock(return_value=[])

        rec = await engine.recommend("who knows cobol?")

        assert rec.answer == NO_MATCH_MESSAGE
        assert rec.candidates == []
        mock_llm.generate.assert_not_called()


# -----------------------------------------------------------------------------
# Batch fan-out
# -----------------------------------------------------------------------------


class TestBatch:
    @pytest.mark.asyncio
    async def test_batch_search_keeps_order_and_isolates_errors(self, engine) -> None:
        items = await engine.batch_search(["redis", "", "kafka"])

        assert [i.query for i in items] == ["redis", "", "kafka"]
        assert items[0].ok and items[2].ok
        assert not items[1].ok
        assert "Invalid parameter" in items[1].error

    @pytest.mark.asyncio
    async def test_batch_respects_concurrency_limit(self, engine, mock_embeddings) -> None:
        in_flight = 0
        peak = 0

        async def slow_embed(text):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return [0.1] * 768

        mock_embeddings.embed_single = AsyncMock(side_effect=slow_embed)
        engine.set_query_expansion(False)

        items = await engine.batch_search([f"q{i}" for i in range(6)])

        assert len(items) == 6 and all(i.ok for i in items)
        assert peak <= 2

    @pytest.mark.asyncio
    async def test_batch_ask_isolates_model_failures(self, engine, mock_llm) -> None:
        mock_llm.generate = AsyncMock(side_effect=["answer one", RuntimeError("model down")])
        engine.set_query_expansion(False)

        items = await engine.batch_ask(["first", "second"])

        assert [i.query for i in items] == ["first", "second"]
        assert sum(1 for i in items if i.ok) == 1
        failed = next(i for i in items if not i.ok)
        assert failed.error == "model down"
        assert failed.answer is None

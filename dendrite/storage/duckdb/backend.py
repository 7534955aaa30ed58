"""
DuckDB Storage Backend

Single-file embedded storage for the queue, skills, profiles, tags and the
reward ledger.

Thread safety:
    DuckDB connections are not thread-safe and asyncio.to_thread() may run
    on different threads, so each thread gets its own cursor on one shared
    database connection. All writes go through one lock.

Schema notes:
    - Ids come from sequences. Tables carry no PRIMARY KEY/UNIQUE
      constraints (DuckDB rejects updates of list columns on indexed tables),
      so one-row-per-employee is enforced by select-then-insert under the
      write lock.
    - Embeddings are DOUBLE[]; timestamps are ISO-8601 UTC strings.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

import duckdb

from dendrite.storage.base import StorageBackend
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
from dendrite.types.records import utc_now

logger = logging.getLogger(__name__)

_SCHEMA = [
    "CREATE SEQUENCE IF NOT EXISTS queue_seq START 1",
    "CREATE SEQUENCE IF NOT EXISTS skill_seq START 1",
    "CREATE SEQUENCE IF NOT EXISTS profile_seq START 1",
    "CREATE SEQUENCE IF NOT EXISTS tag_seq START 1",
    "CREATE SEQUENCE IF NOT EXISTS interaction_seq START 1",
    "CREATE SEQUENCE IF NOT EXISTS contributor_seq START 1",
    "CREATE SEQUENCE IF NOT EXISTS reward_seq START 1",
    """
    CREATE TABLE IF NOT EXISTS evaluation_queue (
        id BIGINT DEFAULT nextval('queue_seq'),
        queue_name VARCHAR NOT NULL,
        payload VARCHAR NOT NULL,
        enqueued_at VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS skill_records (
        id BIGINT DEFAULT nextval('skill_seq'),
        employee_name VARCHAR NOT NULL,
        skill_name VARCHAR NOT NULL,
        proficiency VARCHAR NOT NULL,
        evidence VARCHAR,
        embedding DOUBLE[],
        created_at VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS talent_profiles (
        id BIGINT DEFAULT nextval('profile_seq'),
        employee_name VARCHAR NOT NULL,
        summary_zh VARCHAR,
        summary_en VARCHAR,
        skills_zh VARCHAR[],
        skills_en VARCHAR[],
        embedding DOUBLE[],
        last_updated VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS evaluation_tags (
        id BIGINT DEFAULT nextval('tag_seq'),
        creator_employee VARCHAR NOT NULL,
        target_employee VARCHAR NOT NULL,
        raw_tag_name VARCHAR NOT NULL,
        context VARCHAR,
        standardized_category VARCHAR NOT NULL,
        weight DOUBLE NOT NULL,
        embedding DOUBLE[],
        created_at VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tag_interactions (
        id BIGINT DEFAULT nextval('interaction_seq'),
        tag_id BIGINT NOT NULL,
        interaction_type VARCHAR NOT NULL,
        trigger_user VARCHAR,
        related_query VARCHAR,
        created_at VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS contributor_profiles (
        id BIGINT DEFAULT nextval('contributor_seq'),
        employee_name VARCHAR NOT NULL,
        current_points BIGINT NOT NULL,
        total_accumulated_points BIGINT NOT NULL,
        level INTEGER NOT NULL,
        taste_embedding DOUBLE[],
        total_tags_submitted INTEGER NOT NULL,
        search_hits_count INTEGER NOT NULL,
        version BIGINT NOT NULL,
        updated_at VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS reward_records (
        id BIGINT DEFAULT nextval('reward_seq'),
        employee_name VARCHAR NOT NULL,
        points_change BIGINT NOT NULL,
        reason VARCHAR NOT NULL,
        timestamp VARCHAR NOT NULL
    )
    """,
]


def _ts(value: datetime) -> str:
    return value.isoformat()


def _parse_ts(value: str | None) -> datetime:
    return datetime.fromisoformat(value) if value else utc_now()


def _rows_as_dicts(cursor: duckdb.DuckDBPyConnection, rows: list[tuple]) -> list[dict[str, Any]]:
    columns = [desc[0] for desc in cursor.description]
    return [dict(zip(columns, row)) for row in rows]


class DuckDBBackend(StorageBackend):
    """
    DuckDB-backed storage.

    Args:
        db_path: Database file, or ":memory:" for an in-process database
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self._db_path = str(db_path)
        self._root: duckdb.DuckDBPyConnection | None = None
        self._local = threading.local()
        self._write_lock = threading.Lock()

    @property
    def db_path(self) -> str:
        return self._db_path

    async def initialize(self) -> None:
        if self._root is not None:
            return

        def _init() -> None:
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            root = duckdb.connect(self._db_path)
            for statement in _SCHEMA:
                root.execute(statement)
            self._root = root

        await asyncio.to_thread(_init)
        logger.info(f"DuckDB storage ready at {self._db_path}")

    async def close(self) -> None:
        if self._root is not None:
            self._root.close()
            self._root = None
        self._local = threading.local()

    def _cursor(self) -> duckdb.DuckDBPyConnection:
        """Get thread-local cursor, creating if needed."""
        if self._root is None:
            raise RuntimeError("DuckDB not initialized. Call initialize() first.")
        owner = getattr(self._local, "owner", None)
        cursor = getattr(self._local, "cursor", None)
        if cursor is None or owner is not self._root:
            cursor = self._root.cursor()
            self._local.cursor = cursor
            self._local.owner = self._root
        return cursor

    def _in_transaction(self, work):
        """Run ``work(cursor)`` inside one transaction under the write lock."""
        with self._write_lock:
            cursor = self._cursor()
            cursor.begin()
            try:
                result = work(cursor)
            except Exception:
                cursor.rollback()
                raise
            cursor.commit()
            return result

    # -------------------------------------------------------------------------
    # Evaluation Queue
    # -------------------------------------------------------------------------

    async def push_task(self, queue_name: str, payload: str) -> int:
        def _push(cursor: duckdb.DuckDBPyConnection) -> int:
            cursor.execute(
                "INSERT INTO evaluation_queue (queue_name, payload, enqueued_at) VALUES (?, ?, ?)",
                [queue_name, payload, _ts(utc_now())],
            )
            row = cursor.execute(
                "SELECT count(*) FROM evaluation_queue WHERE queue_name = ?", [queue_name]
            ).fetchone()
            return int(row[0]) if row else 0

        return await asyncio.to_thread(self._in_transaction, _push)

    async def pop_task(self, queue_name: str) -> str | None:
        def _pop(cursor: duckdb.DuckDBPyConnection) -> str | None:
            row = cursor.execute(
                "SELECT id, payload FROM evaluation_queue WHERE queue_name = ? "
                "ORDER BY id LIMIT 1",
                [queue_name],
            ).fetchone()
            if row is None:
                return None
            cursor.execute("DELETE FROM evaluation_queue WHERE id = ?", [row[0]])
            return str(row[1])

        return await asyncio.to_thread(self._in_transaction, _pop)

    async def queue_size(self, queue_name: str) -> int:
        def _size() -> int:
            row = self._cursor().execute(
                "SELECT count(*) FROM evaluation_queue WHERE queue_name = ?", [queue_name]
            ).fetchone()
            return int(row[0]) if row else 0

        return await asyncio.to_thread(_size)

    # -------------------------------------------------------------------------
    # Skills
    # -------------------------------------------------------------------------

    @staticmethod
    def _row_to_skill(row: dict[str, Any]) -> SkillRecord:
        return SkillRecord(
            id=row["id"],
            employee_name=row["employee_name"],
            skill_name=row["skill_name"],
            proficiency=Proficiency(row["proficiency"]),
            evidence=row["evidence"] or "",
            embedding=list(row["embedding"]) if row["embedding"] is not None else None,
            created_at=_parse_ts(row["created_at"]),
        )

    async def insert_skills(self, skills: list[SkillRecord]) -> list[SkillRecord]:
        if not skills:
            return []

        def _insert(cursor: duckdb.DuckDBPyConnection) -> list[SkillRecord]:
            stored: list[SkillRecord] = []
            for skill in skills:
                row = cursor.execute(
                    """
                    INSERT INTO skill_records
                        (employee_name, skill_name, proficiency, evidence, embedding, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    RETURNING id
                    """,
                    [
                        skill.employee_name,
                        skill.skill_name,
                        skill.proficiency.value,
                        skill.evidence,
                        skill.embedding,
                        _ts(skill.created_at),
                    ],
                ).fetchone()
                stored.append(skill.model_copy(update={"id": int(row[0])}))
            return stored

        return await asyncio.to_thread(self._in_transaction, _insert)

    async def get_skills(self, employee_name: str) -> list[SkillRecord]:
        def _query() -> list[SkillRecord]:
            cursor = self._cursor()
            rows = cursor.execute(
                "SELECT * FROM skill_records WHERE employee_name = ? ORDER BY id",
                [employee_name],
            ).fetchall()
            return [self._row_to_skill(r) for r in _rows_as_dicts(cursor, rows)]

        return await asyncio.to_thread(_query)

    async def update_skill_embedding(self, skill_id: int, embedding: list[float]) -> None:
        def _update(cursor: duckdb.DuckDBPyConnection) -> None:
            cursor.execute(
                "UPDATE skill_records SET embedding = ? WHERE id = ?",
                [embedding, skill_id],
            )

        await asyncio.to_thread(self._in_transaction, _update)

    async def count_skills(self) -> int:
        def _count() -> int:
            row = self._cursor().execute("SELECT count(*) FROM skill_records").fetchone()
            return int(row[0]) if row else 0

        return await asyncio.to_thread(_count)

    # -------------------------------------------------------------------------
    # Talent Profiles
    # -------------------------------------------------------------------------

    @staticmethod
    def _row_to_profile(row: dict[str, Any]) -> TalentProfile:
        return TalentProfile(
            id=row["id"],
            employee_name=row["employee_name"],
            summary_zh=row["summary_zh"] or "",
            summary_en=row["summary_en"] or "",
            skills_zh=list(row["skills_zh"] or []),
            skills_en=list(row["skills_en"] or []),
            embedding=list(row["embedding"]) if row["embedding"] is not None else None,
            last_updated=_parse_ts(row["last_updated"]),
        )

    async def upsert_profile(self, profile: TalentProfile) -> TalentProfile:
        def _upsert(cursor: duckdb.DuckDBPyConnection) -> TalentProfile:
            existing = cursor.execute(
                "SELECT id FROM talent_profiles WHERE employee_name = ? ORDER BY id LIMIT 1",
                [profile.employee_name],
            ).fetchone()
            values = [
                profile.summary_zh,
                profile.summary_en,
                profile.skills_zh,
                profile.skills_en,
                _ts(profile.last_updated),
            ]
            if existing is None:
                cursor.execute(
                    """
                    INSERT INTO talent_profiles
                        (summary_zh, summary_en, skills_zh, skills_en, last_updated,
                         employee_name, embedding)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    values + [profile.employee_name, profile.embedding],
                )
            else:
                cursor.execute(
                    """
                    UPDATE talent_profiles
                    SET summary_zh = ?, summary_en = ?, skills_zh = ?, skills_en = ?,
                        last_updated = ?
                    WHERE id = ?
                    """,
                    values + [existing[0]],
                )
            rows = cursor.execute(
                "SELECT * FROM talent_profiles WHERE employee_name = ? ORDER BY id LIMIT 1",
                [profile.employee_name],
            ).fetchall()
            return self._row_to_profile(_rows_as_dicts(cursor, rows)[0])

        return await asyncio.to_thread(self._in_transaction, _upsert)

    async def get_profile(self, employee_name: str) -> TalentProfile | None:
        def _query() -> TalentProfile | None:
            cursor = self._cursor()
            rows = cursor.execute(
                "SELECT * FROM talent_profiles WHERE employee_name = ? ORDER BY id LIMIT 1",
                [employee_name],
            ).fetchall()
            if not rows:
                return None
            return self._row_to_profile(_rows_as_dicts(cursor, rows)[0])

        return await asyncio.to_thread(_query)

    async def update_profile_embedding(self, employee_name: str, embedding: list[float]) -> None:
        def _update(cursor: duckdb.DuckDBPyConnection) -> None:
            cursor.execute(
                "UPDATE talent_profiles SET embedding = ? WHERE employee_name = ?",
                [embedding, employee_name],
            )

        await asyncio.to_thread(self._in_transaction, _update)

    async def search_profiles(
        self,
        query_vector: list[float],
        limit: int,
    ) -> list[tuple[TalentProfile, float]]:
        if not query_vector or limit <= 0:
            return []

        def _search() -> list[tuple[TalentProfile, float]]:
            cursor = self._cursor()
            rows = cursor.execute(
                """
                SELECT *,
                       list_cosine_similarity(embedding, CAST(? AS DOUBLE[])) AS similarity
                FROM talent_profiles
                WHERE embedding IS NOT NULL
                  AND len(embedding) = ?
                  AND list_dot_product(embedding, embedding) > 0
                ORDER BY similarity DESC, id
                LIMIT ?
                """,
                [query_vector, len(query_vector), limit],
            ).fetchall()
            results: list[tuple[TalentProfile, float]] = []
            for row in _rows_as_dicts(cursor, rows):
                similarity = row.pop("similarity")
                if similarity is None or math.isnan(similarity):
                    continue
                results.append((self._row_to_profile(row), float(similarity)))
            return results

        return await asyncio.to_thread(_search)

    async def count_profiles(self) -> int:
        def _count() -> int:
            row = self._cursor().execute("SELECT count(*) FROM talent_profiles").fetchone()
            return int(row[0]) if row else 0

        return await asyncio.to_thread(_count)

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    @staticmethod
    def _row_to_tag(row: dict[str, Any]) -> EvaluationTag:
        return EvaluationTag(
            id=row["id"],
            creator_employee=row["creator_employee"],
            target_employee=row["target_employee"],
            raw_tag_name=row["raw_tag_name"],
            context=row["context"] or "",
            standardized_category=StandardCompetency(row["standardized_category"]),
            weight=row["weight"],
            embedding=list(row["embedding"]) if row["embedding"] is not None else None,
            created_at=_parse_ts(row["created_at"]),
        )

    async def insert_tag(self, tag: EvaluationTag) -> EvaluationTag:
        def _insert(cursor: duckdb.DuckDBPyConnection) -> EvaluationTag:
            row = cursor.execute(
                """
                INSERT INTO evaluation_tags
                    (creator_employee, target_employee, raw_tag_name, context,
                     standardized_category, weight, embedding, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING id
                """,
                [
                    tag.creator_employee,
                    tag.target_employee,
                    tag.raw_tag_name,
                    tag.context,
                    tag.standardized_category.value,
                    tag.weight,
                    tag.embedding,
                    _ts(tag.created_at),
                ],
            ).fetchone()
            return tag.model_copy(update={"id": int(row[0])})

        return await asyncio.to_thread(self._in_transaction, _insert)

    async def get_tags_for_target(self, employee_name: str) -> list[EvaluationTag]:
        def _query() -> list[EvaluationTag]:
            cursor = self._cursor()
            rows = cursor.execute(
                "SELECT * FROM evaluation_tags WHERE target_employee = ? ORDER BY id",
                [employee_name],
            ).fetchall()
            return [self._row_to_tag(r) for r in _rows_as_dicts(cursor, rows)]

        return await asyncio.to_thread(_query)

    async def record_interaction(self, interaction: TagInteraction) -> TagInteraction:
        def _insert(cursor: duckdb.DuckDBPyConnection) -> TagInteraction:
            row = cursor.execute(
                """
                INSERT INTO tag_interactions
                    (tag_id, interaction_type, trigger_user, related_query, created_at)
                VALUES (?, ?, ?, ?, ?)
                RETURNING id
                """,
                [
                    interaction.tag_id,
                    interaction.interaction_type.value,
                    interaction.trigger_user,
                    interaction.related_query,
                    _ts(interaction.created_at),
                ],
            ).fetchone()
            return interaction.model_copy(update={"id": int(row[0])})

        return await asyncio.to_thread(self._in_transaction, _insert)

    async def get_interactions(self, tag_id: int) -> list[TagInteraction]:
        def _query() -> list[TagInteraction]:
            cursor = self._cursor()
            rows = cursor.execute(
                "SELECT * FROM tag_interactions WHERE tag_id = ? ORDER BY id", [tag_id]
            ).fetchall()
            return [
                TagInteraction(
                    id=r["id"],
                    tag_id=r["tag_id"],
                    interaction_type=InteractionType(r["interaction_type"]),
                    trigger_user=r["trigger_user"],
                    related_query=r["related_query"],
                    created_at=_parse_ts(r["created_at"]),
                )
                for r in _rows_as_dicts(cursor, rows)
            ]

        return await asyncio.to_thread(_query)

    # -------------------------------------------------------------------------
    # Contributors and Rewards
    # -------------------------------------------------------------------------

    @staticmethod
    def _row_to_contributor(row: dict[str, Any]) -> ContributorProfile:
        taste = row["taste_embedding"]
        return ContributorProfile(
            id=row["id"],
            employee_name=row["employee_name"],
            current_points=row["current_points"],
            total_accumulated_points=row["total_accumulated_points"],
            level=row["level"],
            taste_embedding=list(taste) if taste is not None else None,
            total_tags_submitted=row["total_tags_submitted"],
            search_hits_count=row["search_hits_count"],
            version=row["version"],
            updated_at=_parse_ts(row["updated_at"]),
        )

    def _select_contributor(
        self, cursor: duckdb.DuckDBPyConnection, employee_name: str
    ) -> ContributorProfile | None:
        rows = cursor.execute(
            "SELECT * FROM contributor_profiles WHERE employee_name = ? ORDER BY id LIMIT 1",
            [employee_name],
        ).fetchall()
        if not rows:
            return None
        return self._row_to_contributor(_rows_as_dicts(cursor, rows)[0])

    async def get_contributor(self, employee_name: str) -> ContributorProfile | None:
        def _query() -> ContributorProfile | None:
            return self._select_contributor(self._cursor(), employee_name)

        return await asyncio.to_thread(_query)

    async def get_or_create_contributor(self, employee_name: str) -> ContributorProfile:
        def _get_or_create(cursor: duckdb.DuckDBPyConnection) -> ContributorProfile:
            existing = self._select_contributor(cursor, employee_name)
            if existing is not None:
                return existing
            cursor.execute(
                """
                INSERT INTO contributor_profiles
                    (employee_name, current_points, total_accumulated_points, level,
                     taste_embedding, total_tags_submitted, search_hits_count, version,
                     updated_at)
                VALUES (?, 0, 0, 1, NULL, 0, 0, 0, ?)
                """,
                [employee_name, _ts(utc_now())],
            )
            created = self._select_contributor(cursor, employee_name)
            assert created is not None
            return created

        return await asyncio.to_thread(self._in_transaction, _get_or_create)

    async def compare_and_set_contributor(
        self,
        profile: ContributorProfile,
        expected_version: int,
        reward: RewardRecord,
    ) -> bool:
        def _cas(cursor: duckdb.DuckDBPyConnection) -> bool:
            # The write lock is held, so the version read here cannot move
            # before the update below.
            current = cursor.execute(
                "SELECT version FROM contributor_profiles WHERE employee_name = ? "
                "ORDER BY id LIMIT 1",
                [profile.employee_name],
            ).fetchone()
            if current is None or int(current[0]) != expected_version:
                return False
            cursor.execute(
                """
                UPDATE contributor_profiles
                SET current_points = ?,
                    total_accumulated_points = ?,
                    level = ?,
                    total_tags_submitted = ?,
                    search_hits_count = ?,
                    updated_at = ?,
                    version = version + 1
                WHERE employee_name = ? AND version = ?
                """,
                [
                    profile.current_points,
                    profile.total_accumulated_points,
                    profile.level,
                    profile.total_tags_submitted,
                    profile.search_hits_count,
                    _ts(utc_now()),
                    profile.employee_name,
                    expected_version,
                ],
            )
            cursor.execute(
                "INSERT INTO reward_records (employee_name, points_change, reason, timestamp) "
                "VALUES (?, ?, ?, ?)",
                [
                    reward.employee_name,
                    reward.points_change,
                    reward.reason,
                    _ts(reward.timestamp),
                ],
            )
            return True

        return await asyncio.to_thread(self._in_transaction, _cas)

    async def get_rewards(self, employee_name: str, limit: int = 50) -> list[RewardRecord]:
        def _query() -> list[RewardRecord]:
            cursor = self._cursor()
            rows = cursor.execute(
                """
                SELECT * FROM reward_records
                WHERE employee_name = ?
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
                """,
                [employee_name, limit],
            ).fetchall()
            return [
                RewardRecord(
                    id=r["id"],
                    employee_name=r["employee_name"],
                    points_change=r["points_change"],
                    reason=r["reason"],
                    timestamp=_parse_ts(r["timestamp"]),
                )
                for r in _rows_as_dicts(cursor, rows)
            ]

        return await asyncio.to_thread(_query)

"""Tests for batch cloning of groups/sections and program version cloning."""
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, call

import pytest

from gym_tracker.core.exceptions import NotFoundError
from gym_tracker.core.locks import LockNamespace, namespaced_key
from gym_tracker.services.grouping import clone_batch, ensure_day_groupings
from gym_tracker.services.program_versions import ProgramVersionService
from tests.conftest import FakeResult


def _id_map(pairs):
    return FakeResult(rows=[{"old_id": old, "new_id": new} for old, new in pairs])


class TestCloneBatch:
    @pytest.mark.asyncio
    async def test_returns_the_old_to_new_map_from_one_statement(self, fake_session):
        fake_session.on("with src as", _id_map([(1, 11), (2, 12), (3, 13)]))

        id_map = await clone_batch(
            fake_session, "group",
            "program_exercise_groups", "session_exercise_groups",
            "day_id", "session_id",
            4, 40,
        )

        assert id_map == {1: 11, 2: 12, 3: 13}
        assert len(fake_session.statements) == 1
        sql = fake_session.statements[0]
        assert "insert into session_exercise_groups (session_id, group_type, label, notes, rest_seconds, sort_order)" in sql
        assert "join ins using (sort_order)" in sql
        assert fake_session.params[0] == {"source_parent_id": 4, "target_parent_id": 40}

    @pytest.mark.asyncio
    async def test_sections_copy_their_own_columns(self, fake_session):
        fake_session.on("with src as", _id_map([(i, 100 + i) for i in range(1, 6)]))

        id_map = await clone_batch(
            fake_session, "section",
            "program_sections", "program_sections",
            "day_id", "day_id",
            4, 5,
        )

        assert len(id_map) == 5
        assert "insert into program_sections (day_id, label, notes, sort_order)" in fake_session.statements[0]

    @pytest.mark.asyncio
    async def test_empty_source_gives_an_empty_map(self, fake_session):
        id_map = await clone_batch(
            fake_session, "group",
            "program_exercise_groups", "program_exercise_groups",
            "day_id", "day_id",
            4, 5,
        )
        assert id_map == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kind,source_table,source_col",
        [
            ("group", "users", "day_id"),
            ("group", "program_exercise_groups", "session_id"),
            ("group", "program_sections", "day_id"),
            ("widget", "program_exercise_groups", "day_id"),
        ],
    )
    async def test_rejects_unknown_tables_and_columns(self, fake_session, kind, source_table, source_col):
        with pytest.raises(ValueError):
            await clone_batch(
                fake_session, kind,
                source_table, "program_exercise_groups",
                source_col, "day_id",
                1, 2,
            )
        assert fake_session.statements == []


class TestEnsureDayGroupings:
    @pytest.mark.asyncio
    async def test_one_statement_per_kind(self, fake_session):
        fake_session.on("insert into session_exercise_groups", _id_map([(1, 31), (2, 32)]))
        fake_session.on("insert into session_sections", _id_map([(7, 41)]))

        group_map, section_map = await ensure_day_groupings(fake_session, 4, 40)

        assert group_map == {1: 31, 2: 32}
        assert section_map == {7: 41}
        assert len(fake_session.statements) == 2
        assert fake_session.params == [{"day_id": 4, "session_id": 40}] * 2

    @pytest.mark.asyncio
    async def test_rows_are_matched_by_their_source_not_by_position(self, fake_session):
        await ensure_day_groupings(fake_session, 4, 40)

        sql = fake_session.statements[0]
        assert "join program_exercise_groups p on p.id = s.source_id" in sql
        assert "p.day_id = :day_id" in sql
        assert "insert into session_exercise_groups (session_id, source_id, group_type, label, notes, rest_seconds, sort_order)" in sql
        # appended after whatever the session already holds
        assert "coalesce(max(sort_order) + 1, 0) as next_order" in sql
        assert "base.next_order + p.sort_order" in sql
        assert "p.id not in (select old_id from existing)" in sql


def make_service(fake_session, days):
    svc = ProgramVersionService(fake_session, user_id=7)
    svc._repo.get_version_number = AsyncMock(return_value=3)
    svc._repo.max_version_number = AsyncMock(return_value=3)
    svc._repo.insert_version = AsyncMock(return_value=500)
    svc._repo.list_days_for_clone = AsyncMock(return_value=days)
    svc._repo.clone_day = AsyncMock(side_effect=[600 + i for i in range(len(days))])
    svc._repo.clone_day_exercises = AsyncMock()
    return svc


class TestCloneVersion:
    @pytest.mark.asyncio
    async def test_program_lock_is_taken_first(self, fake_session):
        svc = make_service(fake_session, [])

        await svc.clone_version(42, 9)

        assert "pg_advisory_xact_lock(:key)" in fake_session.statements[0]
        assert fake_session.params[0] == {"key": namespaced_key(LockNamespace.PROGRAM, 42)}
        assert fake_session.commits == 1

    @pytest.mark.asyncio
    async def test_days_and_groupings_are_remapped(self, fake_session):
        fake_session.on("insert into program_exercise_groups", _id_map([(1, 11), (2, 12)]))
        fake_session.on("insert into program_sections", _id_map([(5, 15)]))
        days = [
            {"id": 10, "group_count": 2, "section_count": 1},
            {"id": 20, "group_count": 0, "section_count": 0},
        ]
        svc = make_service(fake_session, days)

        cloned = await svc.clone_version(42, 9, "Swap squat for front squat")

        assert cloned.version_id == 500
        assert cloned.version_number == 4
        assert cloned.day_map == {10: 600, 20: 601}
        svc._repo.insert_version.assert_awaited_once_with(42, 4, "Swap squat for front squat")
        assert svc._repo.clone_day_exercises.await_args_list == [
            call(10, 600, {1: 11, 2: 12}, {5: 15}),
            call(20, 601, {}, {}),
        ]
        # days without groups or sections skip the copy statements
        assert len(fake_session.executed("with src as")) == 2

    @pytest.mark.asyncio
    async def test_unknown_source_version(self, fake_session):
        svc = make_service(fake_session, [])
        svc._repo.get_version_number = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError) as exc_info:
            await svc.clone_version(42, 999)

        assert exc_info.value.code == "NF_PROGRAMVERSION_001"
        svc._repo.insert_version.assert_not_awaited()
        assert fake_session.rollbacks == 1

    @pytest.mark.asyncio
    async def test_joins_the_callers_transaction(self, fake_session):
        svc = make_service(fake_session, [])

        async with fake_session.begin():
            await svc.clone_version(42, 9)

        assert fake_session.begins == 1


class TestInferTodayDay:
    @pytest.mark.asyncio
    async def test_looks_up_the_weekday_in_the_latest_version(self, fake_session):
        svc = ProgramVersionService(fake_session, user_id=7)
        svc._repo.get_latest_version = AsyncMock(return_value=SimpleNamespace(id=77))
        push = SimpleNamespace(id=1, day_label="Push")
        svc._repo.find_day_for_weekday = AsyncMock(return_value=push)
        monday = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)

        day = await svc.infer_today_day(42, "UTC", now=monday)

        assert day is push
        svc._repo.find_day_for_weekday.assert_awaited_once_with(77, 1)

    @pytest.mark.asyncio
    async def test_program_without_versions(self, fake_session):
        svc = ProgramVersionService(fake_session, user_id=7)
        svc._repo.get_latest_version = AsyncMock(return_value=None)

        assert await svc.infer_today_day(42, "UTC") is None

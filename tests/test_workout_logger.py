"""Tests for log_workout: session handling, set numbering and PR detection."""
import json
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from gym_tracker.core.exceptions import NotFoundError
from gym_tracker.core.locks import LockNamespace, namespaced_key
from gym_tracker.schemas.workout import LogWorkoutParams
from gym_tracker.services.exercise_resolver import ResolvedExercise
from gym_tracker.services.workout_logger import WorkoutLogger
from tests.conftest import FakeResult

STARTED = datetime(2026, 10, 19, 7, 30, tzinfo=timezone.utc)
BENCH = ResolvedExercise(id=5, name="Bench Press", display_name="Bench Press", is_new=False, exercise_type="strength")
ROW = ResolvedExercise(id=6, name="Barbell Row", display_name="Barbell Row", is_new=True, exercise_type="strength")
SQUAT = ResolvedExercise(id=9, name="Squat", display_name="Squat", is_new=False, exercise_type="strength")


def _inserted(rows):
    return [{"id": 100 + row["set_number"], "set_number": row["set_number"]} for row in rows]


def make_logger(fake_session, *, active=None, requires_validation=False) -> WorkoutLogger:
    svc = WorkoutLogger(fake_session, user_id=7)
    svc._profile.get_user_locale = AsyncMock(return_value="en")
    svc._profile.get_user_timezone = AsyncMock(return_value="UTC")
    svc._profile.requires_validation = AsyncMock(return_value=requires_validation)
    svc._sessions.get_active = AsyncMock(return_value=active)
    svc._sessions.create_session = AsyncMock(return_value={"id": 10, "started_at": STARTED})
    svc._sessions.find_session_exercise = AsyncMock(return_value=None)
    svc._sessions.backfill_session_exercise = AsyncMock()
    svc._sessions.create_session_exercise = AsyncMock(return_value=20)
    svc._sessions.insert_sets = AsyncMock(side_effect=_inserted)
    svc._resolver.resolve = AsyncMock(return_value=BENCH)
    return svc


@pytest.mark.asyncio
async def test_single_exercise_creates_session_and_records_prs(fake_session):
    svc = make_logger(fake_session)

    result = await svc.log_workout(LogWorkoutParams(exercise="bench", sets=3, reps=8, weight=80))

    assert result["session_id"] == 10
    assert result["exercise_name"] == "Bench Press"
    assert [s["set_number"] for s in result["logged_sets"]] == [1, 2, 3]
    assert [s["set_id"] for s in result["logged_sets"]] == [101, 102, 103]
    assert all(s["weight"] == 80 and s["reps"] == 8 for s in result["logged_sets"])
    assert {p["record_type"]: p["value"] for p in result["new_prs"]} == {
        "max_weight": 80.0,
        "max_reps_at_80": 8.0,
        "estimated_1rm": 101.3,
    }
    assert svc._sessions.create_session.await_args.kwargs["is_validated"] is True


@pytest.mark.asyncio
async def test_everything_runs_in_one_transaction_behind_the_user_lock(fake_session):
    svc = make_logger(fake_session)

    await svc.log_workout(LogWorkoutParams(exercise="bench", reps=5, weight=100))

    assert fake_session.begins == 1
    assert fake_session.commits == 1
    assert "pg_advisory_xact_lock(:key)" in fake_session.statements[0]
    assert fake_session.params[0] == {"key": namespaced_key(LockNamespace.USER_SESSION, 7)}
    pr_lock = fake_session.executed("pg_advisory_xact_lock(:first, :second)")
    assert [fake_session.params[i] for i in pr_lock] == [{"first": 7, "second": 5}]


@pytest.mark.asyncio
async def test_unvalidated_session_skips_pr_detection(fake_session):
    svc = make_logger(fake_session, requires_validation=True)

    result = await svc.log_workout(LogWorkoutParams(exercise="bench", reps=5, weight=100))

    assert "new_prs" not in result
    assert fake_session.executed("personal_records") == []
    assert svc._sessions.create_session.await_args.kwargs["is_validated"] is False


@pytest.mark.asyncio
async def test_existing_session_exercise_continues_set_numbers(fake_session):
    active = SimpleNamespace(
        id=10, started_at=STARTED, program_version_id=None, program_day_id=None, is_validated=True
    )
    svc = make_logger(fake_session, active=active)
    svc._sessions.find_session_exercise = AsyncMock(return_value={"id": 20, "max_set_number": 3})

    result = await svc.log_workout(LogWorkoutParams(exercise="bench", reps=[10, 8], weight=60))

    assert [s["set_number"] for s in result["logged_sets"]] == [4, 5]
    assert [s["reps"] for s in result["logged_sets"]] == [10, 8]
    svc._sessions.create_session.assert_not_awaited()
    svc._sessions.create_session_exercise.assert_not_awaited()


@pytest.mark.asyncio
async def test_bulk_logging_shares_one_session_and_transaction(fake_session):
    svc = make_logger(fake_session)
    svc._resolver.resolve = AsyncMock(side_effect=[BENCH, ROW])
    svc._sessions.create_session_exercise = AsyncMock(side_effect=[20, 21])
    exercises = json.dumps(
        [
            {"exercise": "bench", "sets": 2, "reps": 5, "weight": 100},
            {"exercise": "row", "reps": 10, "weight": 60},
        ]
    )

    result = await svc.log_workout(LogWorkoutParams(exercises=exercises))

    assert fake_session.begins == 1
    svc._sessions.create_session.assert_awaited_once()
    assert [e["exercise_name"] for e in result["exercises_logged"]] == ["Bench Press", "Barbell Row"]
    assert result["exercises_logged"][1]["is_new_exercise"] is True
    assert {p["exercise"] for p in result["new_prs"]} == {"Bench Press", "Barbell Row"}


@pytest.mark.asyncio
async def test_drop_sets_reduce_the_weight(fake_session):
    svc = make_logger(fake_session)

    result = await svc.log_workout(
        LogWorkoutParams(exercise="bench", sets=3, reps=8, weight=100, set_type="drop", drop_percent=20)
    )

    assert [s["weight"] for s in result["logged_sets"]] == [100.0, 80.0, 60.0]
    assert {s["set_type"] for s in result["logged_sets"]} == {"drop"}


@pytest.mark.asyncio
async def test_minimal_response(fake_session):
    svc = make_logger(fake_session)

    result = await svc.log_workout(
        LogWorkoutParams(exercise="bench", reps=5, weight=100, minimal_response=True)
    )

    assert result["success"] is True
    assert result["session_id"] == 10
    assert result["exercises_logged"] == 1
    assert "logged_sets" not in result


@pytest.mark.asyncio
async def test_session_only_call_without_a_program(fake_session):
    svc = make_logger(fake_session)
    svc._programs.get_active = AsyncMock(return_value=None)

    result = await svc.log_workout(LogWorkoutParams())

    assert result == {"session_id": 10, "session_created": True}


@pytest.mark.asyncio
async def test_unknown_program_day_fails_before_writing(fake_session):
    svc = make_logger(fake_session)
    svc._programs.get_active = AsyncMock(return_value=None)

    with pytest.raises(NotFoundError) as exc_info:
        await svc.log_workout(LogWorkoutParams(program_day="Push"))

    assert exc_info.value.code == "NF_PROGRAM_001"
    svc._sessions.create_session.assert_not_awaited()
    assert fake_session.rollbacks == 1


@pytest.mark.asyncio
async def test_program_day_with_override_and_skip(fake_session):
    svc = make_logger(fake_session)
    svc._programs.get_active = AsyncMock(return_value={"id": 1, "version_id": 2, "name": "PPL"})
    svc._programs.get_day_by_label = AsyncMock(return_value=SimpleNamespace(id=30, day_label="Push"))
    svc._resolver.find = AsyncMock(return_value=SQUAT)

    def day_exercise(exercise_id, name, sets, reps, weight):
        return {
            "exercise_id": exercise_id,
            "exercise_name": name,
            "exercise_names": None,
            "exercise_type": "strength",
            "target_sets": sets,
            "target_reps": reps,
            "target_weight": weight,
            "target_rpe": None,
            "target_reps_per_set": None,
            "target_weight_per_set": None,
            "rest_seconds": 120,
            "group_id": None,
            "section_id": None,
        }

    svc._programs.list_day_exercises = AsyncMock(
        return_value=[day_exercise(9, "Squat", 3, 5, 100.0), day_exercise(12, "Curl", 3, 12, 15.0)]
    )

    result = await svc.log_workout(
        LogWorkoutParams(program_day="Push", overrides=[{"exercise": "squat", "weight": 110}], skip="curl")
    )

    assert result["day_label"] == "Push"
    assert result["routine_exercises"] == [{"exercise": "Squat", "sets": 3, "reps": 5, "weight": 110}]
    assert result["total_routine_sets"] == 3
    assert result["total_routine_volume_kg"] == 1650
    assert result["new_prs"][0]["exercise"] == "Squat"
    kwargs = svc._sessions.create_session.await_args.kwargs
    assert (kwargs["program_day_id"], kwargs["program_version_id"]) == (30, 2)
    # groups and sections were copied into the new session
    assert len(fake_session.executed("insert into session_exercise_groups")) == 1
    assert len(fake_session.executed("insert into session_sections")) == 1


@pytest.mark.asyncio
async def test_second_program_day_in_a_session_gets_its_own_groupings(fake_session):
    # session was started on Push (day 30); Pull (day 31) is logged into it
    active = SimpleNamespace(id=10, started_at=STARTED, program_version_id=2, program_day_id=30, is_validated=True)
    svc = make_logger(fake_session, active=active)
    svc._sessions.link_program_day = AsyncMock()
    svc._programs.get_active = AsyncMock(return_value={"id": 1, "version_id": 2, "name": "PPL"})
    svc._programs.get_day_by_label = AsyncMock(return_value=SimpleNamespace(id=31, day_label="Pull"))
    svc._programs.list_day_exercises = AsyncMock(
        return_value=[
            {
                "exercise_id": 6,
                "exercise_name": "Barbell Row",
                "exercise_names": None,
                "exercise_type": "strength",
                "target_sets": 2,
                "target_reps": 8,
                "target_weight": 60.0,
                "target_rpe": None,
                "target_reps_per_set": None,
                "target_weight_per_set": None,
                "rest_seconds": 90,
                "group_id": 70,
                "section_id": None,
            }
        ]
    )
    fake_session.on("insert into session_exercise_groups", FakeResult(rows=[{"old_id": 70, "new_id": 55}]))

    result = await svc.log_workout(LogWorkoutParams(program_day="Pull"))

    groupings = fake_session.executed("insert into session_exercise_groups")
    assert [fake_session.params[i] for i in groupings] == [{"day_id": 31, "session_id": 10}]
    assert svc._sessions.create_session_exercise.await_args.kwargs["group_id"] == 55
    svc._sessions.create_session.assert_not_awaited()
    svc._sessions.link_program_day.assert_not_awaited()
    assert result["day_label"] == "Pull"

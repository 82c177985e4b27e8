"""Tests for the session lifecycle, stats, today's plan and body measurements."""
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from gym_tracker.core.exceptions import BusinessRuleError, ConflictError, NotFoundError
from gym_tracker.schemas.stats import GetStatsParams, ManageBodyMeasurementsParams, TodayPlanParams
from gym_tracker.schemas.workout import EndSessionParams, StartSessionParams, ValidateSessionParams
from gym_tracker.services.exercise_resolver import ResolvedExercise
from gym_tracker.services.measurements import MeasurementService, summarize_values
from gym_tracker.services.sessions import SessionService
from gym_tracker.services.stats import StatsService, period_start

STARTED = datetime(2026, 10, 19, 7, 30, tzinfo=timezone.utc)
BENCH = ResolvedExercise(id=5, name="Bench Press", display_name="Press de banca", is_new=False, exercise_type="strength")


def make_sessions(fake_session, active=None) -> SessionService:
    svc = SessionService(fake_session, user_id=7)
    svc._profile.get_user_locale = AsyncMock(return_value="en")
    svc._profile.get_user_timezone = AsyncMock(return_value="UTC")
    svc._profile.requires_validation = AsyncMock(return_value=False)
    svc._sessions.get_active = AsyncMock(return_value=active)
    svc._sessions.create_session = AsyncMock(return_value={"id": 10, "started_at": STARTED})
    svc._programs.get_active = AsyncMock(return_value=None)
    return svc


class TestStartSession:
    @pytest.mark.asyncio
    async def test_second_open_session_conflicts(self, fake_session):
        svc = make_sessions(fake_session, active=SimpleNamespace(id=4, started_at=STARTED))

        with pytest.raises(ConflictError) as exc_info:
            await svc.start_session(StartSessionParams())

        assert exc_info.value.details["session_id"] == 4
        svc._sessions.create_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_without_a_program(self, fake_session):
        svc = make_sessions(fake_session)

        result = await svc.start_session(StartSessionParams(notes="early"))

        assert result == {"session_id": 10, "started_at": STARTED.isoformat()}
        assert svc._sessions.create_session.await_args.kwargs["notes"] == "early"

    @pytest.mark.asyncio
    async def test_program_day_groupings_are_copied(self, fake_session):
        svc = make_sessions(fake_session)
        svc._programs.get_active = AsyncMock(return_value={"id": 1, "version_id": 2, "name": "PPL"})
        svc._programs.get_day_by_label = AsyncMock(return_value=SimpleNamespace(id=30, day_label="Push"))
        svc._logger._programs.list_day_exercises = AsyncMock(return_value=[])
        svc._logger._sessions.last_completed_for_day = AsyncMock(return_value=None)

        result = await svc.start_session(StartSessionParams(program_day="Push", date="2026-10-17"))

        kwargs = svc._sessions.create_session.await_args.kwargs
        assert kwargs["program_day_id"] == 30
        assert kwargs["started_at"] == datetime(2026, 10, 17, tzinfo=timezone.utc)
        assert result["program_day"] == {"label": "Push", "exercises": []}
        assert len(fake_session.executed("insert into session_exercise_groups")) == 1
        assert len(fake_session.executed("insert into session_sections")) == 1


class TestEndSession:
    @pytest.mark.asyncio
    async def test_summary(self, fake_session):
        svc = make_sessions(fake_session, active=SimpleNamespace(id=10, started_at=STARTED))
        svc._sessions.end_session = AsyncMock()
        svc._sessions.summarize = AsyncMock(
            return_value={"duration_minutes": 61.6, "exercises_count": 2, "total_sets": 7, "total_volume_kg": 4520.4}
        )
        svc._sessions.list_exercise_details = AsyncMock(
            return_value=[{"name": "Bench Press", "names": None, "group_id": None, "section_id": None, "sets": []}]
        )

        result = await svc.end_session(EndSessionParams(notes="good"))

        svc._sessions.end_session.assert_awaited_once_with(10, "good")
        assert result["duration_minutes"] == 62
        assert result["total_volume_kg"] == 4520
        assert result["exercises"][0]["name"] == "Bench Press"

    @pytest.mark.asyncio
    async def test_nothing_open(self, fake_session):
        svc = make_sessions(fake_session)

        with pytest.raises(NotFoundError):
            await svc.end_session(EndSessionParams())


class TestValidateSession:
    @pytest.mark.asyncio
    async def test_runs_the_skipped_pr_checks(self, fake_session):
        target = SimpleNamespace(id=10, started_at=STARTED, is_validated=False)
        svc = make_sessions(fake_session, active=target)
        svc._sessions.mark_validated = AsyncMock()
        svc._sessions.list_exercise_details = AsyncMock(
            return_value=[
                {
                    "exercise_id": 5,
                    "exercise_type": "strength",
                    "name": "Bench Press",
                    "names": None,
                    "sets": [{"set_id": 1, "reps": 5, "weight": 100.0}],
                }
            ]
        )

        result = await svc.validate_session(ValidateSessionParams())

        svc._sessions.mark_validated.assert_awaited_once_with(10)
        assert result["validated"] is True
        assert {p["record_type"] for p in result["new_prs"]} == {"max_weight", "max_reps_at_100", "estimated_1rm"}
        history = fake_session.executed("insert into pr_history")
        assert fake_session.params[history[0]]["achieved_at"] == STARTED

    @pytest.mark.asyncio
    async def test_already_validated(self, fake_session):
        svc = make_sessions(fake_session)
        svc._sessions.get_owned = AsyncMock(return_value=SimpleNamespace(id=10, started_at=STARTED, is_validated=True))

        with pytest.raises(BusinessRuleError):
            await svc.validate_session(ValidateSessionParams(session_id=10))


def test_period_start():
    now = datetime(2026, 10, 19, tzinfo=timezone.utc)

    assert period_start("week", now) == now - timedelta(days=7)
    assert period_start("3months", now) == now - timedelta(days=90)
    assert period_start("all", now) is None


def make_stats(fake_session) -> StatsService:
    svc = StatsService(fake_session, user_id=7)
    svc._profile.get_user_locale = AsyncMock(return_value="es")
    svc._profile.get_user_timezone = AsyncMock(return_value="UTC")
    return svc


class TestGetStats:
    @pytest.mark.asyncio
    async def test_report(self, fake_session):
        svc = make_stats(fake_session)
        svc._resolver.find = AsyncMock(return_value=BENCH)
        svc._records.list_current = AsyncMock(
            return_value=[{"record_type": "max_weight", "value": 100.0, "achieved_at": STARTED}]
        )
        svc._stats.progression = AsyncMock(return_value=[{"date": date(2026, 10, 19), "weight": 100.0, "reps": 5}])
        svc._stats.weekly_volume = AsyncMock(return_value=[{"week": date(2026, 10, 19), "total_volume_kg": 1500.4}])
        svc._stats.frequency = AsyncMock(return_value={"total_sessions": 6, "span_days": 21})
        svc._records.timeline = AsyncMock(return_value=[])

        result = await svc.get_stats(GetStatsParams(exercise="banca", period="month"))

        assert result["exercise"] == "Press de banca"
        assert result["personal_records"]["max_weight"] == {"value": 100.0, "achieved_at": STARTED.isoformat()}
        assert result["progression"][0]["estimated_1rm"] == 116.7
        assert result["volume_trend"] == [{"week": "2026-10-19", "total_volume_kg": 1500}]
        assert result["frequency"] == {"total_sessions": 6, "sessions_per_week": 2.0}

    @pytest.mark.asyncio
    async def test_unknown_exercise(self, fake_session):
        svc = make_stats(fake_session)
        svc._resolver.find = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError):
            await svc.get_stats(GetStatsParams(exercise="nothing"))


class TestTodayPlan:
    @pytest.mark.asyncio
    async def test_rest_day(self, fake_session):
        svc = make_stats(fake_session)
        svc._programs.get_active = AsyncMock(return_value={"id": 1, "version_id": 2, "name": "PPL"})
        svc._versions.infer_today_day = AsyncMock(return_value=None)

        result = await svc.get_today_plan(TodayPlanParams())

        assert result["rest_day"] is True
        assert result["program"] == "PPL"

    @pytest.mark.asyncio
    async def test_no_active_program(self, fake_session):
        svc = make_stats(fake_session)
        svc._programs.get_active = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError) as exc_info:
            await svc.get_today_plan(TodayPlanParams())

        assert exc_info.value.code == "NF_PROGRAM_001"

    @pytest.mark.asyncio
    async def test_plan_with_last_workout(self, fake_session):
        svc = make_stats(fake_session)
        svc._programs.get_active = AsyncMock(return_value={"id": 1, "version_id": 2, "name": "PPL"})
        svc._versions.infer_today_day = AsyncMock(return_value=SimpleNamespace(id=30, day_label="Push"))
        svc._programs.list_day_exercises = AsyncMock(
            return_value=[
                {
                    "exercise_name": "Bench Press",
                    "exercise_names": {"es": "Press de banca"},
                    "rep_type": "reps",
                    "exercise_type": "strength",
                    "target_sets": 3,
                    "target_reps": 8,
                    "target_weight": 80.0,
                    "target_rpe": None,
                    "target_reps_per_set": None,
                    "target_weight_per_set": None,
                    "rest_seconds": 120,
                    "notes": None,
                    "group_id": None,
                    "section_id": None,
                }
            ]
        )
        svc._sessions.last_completed_for_day = AsyncMock(return_value=SimpleNamespace(id=9, started_at=STARTED))
        svc._sessions.list_exercise_details = AsyncMock(
            return_value=[
                {"name": "Bench Press", "names": None, "sets": [{"set_type": "working", "weight": 77.5, "reps": 8}] * 3},
                {"name": "Dips", "names": None, "sets": []},
            ]
        )

        result = await svc.get_today_plan(TodayPlanParams())

        assert result["day"] == "Push"
        assert result["exercises"][0]["name"] == "Press de banca"
        assert result["last_workout"]["exercises"] == [
            {
                "name": "Bench Press",
                "sets": [{"set_type": "working", "weight": 77.5, "reps": 8}] * 3,
                "summary": "3x8@77.5kg (working)",
            }
        ]


def test_summarize_values():
    assert summarize_values([]) is None
    assert summarize_values([82.0, 81.0, 80.5]) == {
        "min": 80.5,
        "max": 82.0,
        "average": 81.17,
        "change": -1.5,
        "data_points": 3,
    }


def make_measurements(fake_session) -> MeasurementService:
    svc = MeasurementService(fake_session, user_id=7)
    svc._profile.get_user_timezone = AsyncMock(return_value="UTC")
    return svc


class TestMeasurements:
    @pytest.mark.asyncio
    async def test_log_reports_change_from_previous(self, fake_session):
        svc = make_measurements(fake_session)
        svc._repo.latest = AsyncMock(
            return_value=SimpleNamespace(value=82.0, measured_at=STARTED - timedelta(days=7))
        )

        result = await svc.manage(
            ManageBodyMeasurementsParams(action="log", measurement_type=" Weight ", value=81.2, measured_at="2026-10-19")
        )

        logged = fake_session.added[0]
        assert (logged.user_id, logged.measurement_type, logged.value) == (7, "weight", 81.2)
        assert logged.measured_at == datetime(2026, 10, 19, tzinfo=timezone.utc)
        assert result["logged"]["id"] == 1000
        assert result["previous"]["change"] == -0.8

    @pytest.mark.asyncio
    async def test_latest_of_unknown_type(self, fake_session):
        svc = make_measurements(fake_session)
        svc._repo.latest = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError):
            await svc.manage(ManageBodyMeasurementsParams(action="latest", measurement_type="waist"))

    @pytest.mark.asyncio
    async def test_history(self, fake_session):
        svc = make_measurements(fake_session)
        rows = [
            SimpleNamespace(id=1, measurement_type="waist", value=90.0, measured_at=STARTED, notes=None),
            SimpleNamespace(id=2, measurement_type="waist", value=88.0, measured_at=STARTED, notes="after cut"),
        ]
        svc._repo.history = AsyncMock(return_value=rows)

        result = await svc.manage(ManageBodyMeasurementsParams(action="history", measurement_type="waist", period="all"))

        svc._repo.history.assert_awaited_once_with(7, "waist", None)
        assert result["stats"]["change"] == -2.0
        assert [h["id"] for h in result["history"]] == [1, 2]

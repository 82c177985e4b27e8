"""Tests for the tool boundary: validation, user binding, transactions and error payloads."""
from datetime import date

import pytest
import structlog
from sqlalchemy.exc import OperationalError

from gym_tracker.core.context import get_user_id
from gym_tracker.core.exceptions import BusinessRuleError
from gym_tracker.schemas.stats import GetStatsParams
from gym_tracker.schemas.workout import ExerciseEntry
from gym_tracker.tools import registry
from gym_tracker.tools.dispatcher import dispatch, list_tools
from gym_tracker.tools.registry import ToolSpec

TOOL_NAMES = {
    "log_workout",
    "start_session",
    "end_session",
    "validate_session",
    "edit_log",
    "manage_program",
    "manage_exercises",
    "manage_profile",
    "manage_body_measurements",
    "get_stats",
    "get_today_plan",
}


def replace_tool(monkeypatch, handler):
    monkeypatch.setitem(
        registry.TOOLS,
        "get_stats",
        ToolSpec("get_stats", GetStatsParams, handler, "stats", read_only=True),
    )


def test_every_tool_is_listed_with_its_schema():
    tools = {t["name"]: t for t in list_tools()}

    assert set(tools) == TOOL_NAMES
    assert "exercise" in tools["get_stats"]["input_schema"]["properties"]
    assert tools["get_today_plan"]["read_only"] is True
    assert tools["log_workout"]["read_only"] is False


@pytest.mark.asyncio
async def test_unknown_tool(session_factory, fake_session):
    payload = await dispatch("drop_tables", {}, 1, session_factory)

    assert payload["code"] == "NF_TOOL_001"
    assert payload["status"] == 404
    assert payload["tool"] == "drop_tables"
    assert fake_session.begins == 0


@pytest.mark.asyncio
async def test_invalid_params_never_reach_the_database(session_factory, fake_session):
    payload = await dispatch("log_workout", {"exercise": "bench"}, 1, session_factory)

    assert payload["code"] == "VAL_PARAMS_001"
    assert payload["error"] == "Validation failed for params: reps required when logging an exercise"
    assert fake_session.statements == []
    assert fake_session.begins == 0


@pytest.mark.asyncio
async def test_field_errors_name_the_field(session_factory):
    payload = await dispatch("get_stats", {"exercise": ""}, 1, session_factory)

    assert payload["code"] == "VAL_EXERCISE_001"
    assert payload["field"] == "exercise"


@pytest.mark.asyncio
async def test_blank_exercise_name_is_rejected_before_any_write(session_factory, fake_session):
    payload = await dispatch("log_workout", {"exercise": "   ", "reps": 5}, 7, session_factory)

    assert payload["code"] == "VAL_EXERCISE_001"
    assert payload["status"] == 400
    assert fake_session.statements == []
    assert fake_session.begins == 0


@pytest.mark.asyncio
async def test_models_built_inside_a_handler_fail_as_payloads(monkeypatch, session_factory, fake_session):
    async def handler(session, params):
        ExerciseEntry(exercise="   ", reps=5)

    replace_tool(monkeypatch, handler)

    payload = await dispatch("get_stats", {"exercise": "bench"}, 42, session_factory)

    assert payload["code"] == "VAL_EXERCISE_001"
    assert fake_session.rollbacks == 1
    assert fake_session.closed is True


@pytest.mark.asyncio
async def test_handler_runs_as_the_caller_in_one_transaction(monkeypatch, session_factory, fake_session):
    seen = {}

    async def handler(session, params):
        seen["user_id"] = get_user_id()
        seen["in_transaction"] = session.in_transaction()
        return {"exercise": params.exercise, "since": date(2026, 10, 19)}

    replace_tool(monkeypatch, handler)

    result = await dispatch("get_stats", {"exercise": "bench"}, 42, session_factory)

    assert result == {"exercise": "bench", "since": "2026-10-19"}
    assert seen == {"user_id": 42, "in_transaction": True}
    assert fake_session.commits == 1
    assert fake_session.closed is True
    assert structlog.contextvars.get_contextvars() == {}


@pytest.mark.asyncio
async def test_domain_errors_become_payloads_and_roll_back(monkeypatch, session_factory, fake_session):
    async def handler(session, params):
        raise BusinessRuleError("Session is already validated", details={"session_id": 3})

    replace_tool(monkeypatch, handler)

    payload = await dispatch("get_stats", {"exercise": "bench"}, 42, session_factory)

    assert payload["code"] == "BR_001"
    assert payload["status"] == 422
    assert payload["session_id"] == 3
    assert fake_session.rollbacks == 1
    assert fake_session.closed is True


@pytest.mark.asyncio
async def test_storage_failures_become_storage_payloads(monkeypatch, session_factory):
    async def handler(session, params):
        raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))

    replace_tool(monkeypatch, handler)

    payload = await dispatch("get_stats", {"exercise": "bench"}, 42, session_factory)

    assert payload["code"] == "DB_001"
    assert payload["status"] == 500
    assert payload["reason"] == "OperationalError"

"""Tests for e1RM, volume and personal-record detection."""
import pytest

from gym_tracker.services.stats_calculator import (
    PRCheck,
    calculate_volume,
    check_prs,
    estimate_e1rm,
    evaluate_prs,
    max_reps_record,
    round_half_up,
    weight_bucket,
)
from tests.conftest import FakeResult


class TestEstimateE1rm:
    def test_epley_rounded_half_up(self):
        assert estimate_e1rm(100, 5) == 116.7
        assert estimate_e1rm(80, 8) == 101.3

    def test_single_rep_is_the_weight(self):
        assert estimate_e1rm(140, 1) == 140.0

    @pytest.mark.parametrize("weight,reps", [(None, 5), (100, None), (0, 5), (100, 0), (-5, 3)])
    def test_missing_or_non_positive_inputs(self, weight, reps):
        assert estimate_e1rm(weight, reps) is None


def test_round_half_up_does_not_bank():
    assert round_half_up(0.25, 1) == 0.3
    assert round_half_up(2.45, 1) == 2.5


def test_volume_skips_warmups_and_missing_weight():
    sets = [
        {"weight": 100, "reps": 5, "set_type": "warmup"},
        {"weight": 80, "reps": 10, "set_type": "working"},
        {"weight": None, "reps": 10, "set_type": "working"},
        {"weight": 60, "reps": 8, "set_type": "drop"},
    ]
    assert calculate_volume(sets) == 1280.0


def test_volume_of_nothing_is_zero():
    assert calculate_volume([]) == 0.0


@pytest.mark.parametrize(
    "weight,expected",
    [(80.0, "80"), (82.5, "82.5"), (100, "100"), (0.25, "0.25"), (22.75, "22.75")],
)
def test_weight_bucket(weight, expected):
    assert weight_bucket(weight) == expected


def test_max_reps_record_name():
    assert max_reps_record(80.0) == "max_reps_at_80"


class TestEvaluatePrs:
    def test_first_ever_set_sets_every_record(self):
        steps, prs = evaluate_prs({}, [{"weight": 80, "reps": 8, "set_id": 1}])

        assert [p.record_type for p in prs] == ["max_weight", "max_reps_at_80", "estimated_1rm"]
        assert [p.value for p in prs] == [80.0, 8.0, 101.3]
        assert all(p.previous is None for p in prs)
        assert len(steps) == 3

    def test_records_compare_against_the_running_best(self):
        current = {}
        sets = [
            {"weight": 80, "reps": 5, "set_id": 1},
            {"weight": 90, "reps": 5, "set_id": 2},
            {"weight": 85, "reps": 5, "set_id": 3},
        ]
        steps, prs = evaluate_prs(current, sets)
        by_type = {p.record_type: p for p in prs}

        assert by_type["max_weight"].value == 90.0
        assert by_type["max_weight"].set_id == 2
        assert by_type["estimated_1rm"].value == 105.0
        # 85 never beats 90, but it is the first set at that weight
        assert "max_reps_at_85" in by_type
        assert [s.value for s in steps if s.record_type == "max_weight"] == [80.0, 90.0]
        assert current["max_weight"] == 90.0

    def test_previous_is_the_value_before_the_batch(self):
        _, prs = evaluate_prs(
            {"max_weight": 70.0},
            [{"weight": 75, "reps": 3}, {"weight": 80, "reps": 3}],
        )
        max_weight = next(p for p in prs if p.record_type == "max_weight")

        assert max_weight.value == 80.0
        assert max_weight.previous == 70.0

    def test_equal_value_is_not_a_record(self):
        steps, prs = evaluate_prs(
            {"max_weight": 100.0, "max_reps_at_100": 5.0, "estimated_1rm": 116.7},
            [{"weight": 100, "reps": 5}],
        )
        assert steps == []
        assert prs == []

    def test_sets_without_weight_are_ignored(self):
        steps, prs = evaluate_prs({}, [{"weight": None, "reps": 12}, {"weight": 0, "reps": 10}])
        assert steps == [] and prs == []

    def test_weight_without_reps_only_counts_for_max_weight(self):
        _, prs = evaluate_prs({}, [{"weight": 60, "reps": None}])
        assert [p.record_type for p in prs] == ["max_weight"]


def test_prcheck_to_dict():
    assert PRCheck("max_weight", 100.0, 95.0, 3).to_dict() == {
        "record_type": "max_weight",
        "value": 100.0,
        "previous": 95.0,
        "set_id": 3,
    }


class TestCheckPrs:
    @pytest.mark.asyncio
    async def test_lock_is_the_first_statement_and_each_step_is_persisted(self, fake_session):
        fake_session.on(
            "select record_type, value from personal_records",
            FakeResult(rows=[{"record_type": "max_weight", "value": 85.0}]),
        )

        prs = await check_prs(
            7,
            3,
            [{"weight": 80, "reps": 8, "set_id": 1}, {"weight": 90, "reps": 3, "set_id": 2}],
            exercise_type="strength",
            session=fake_session,
        )

        assert "pg_advisory_xact_lock(:first, :second)" in fake_session.statements[0]
        assert fake_session.params[0] == {"first": 7, "second": 3}
        by_type = {p.record_type: p for p in prs}
        assert by_type["max_weight"].value == 90.0
        assert by_type["max_weight"].previous == 85.0
        assert by_type["estimated_1rm"].value == 101.3
        assert set(by_type) == {"max_weight", "max_reps_at_80", "max_reps_at_90", "estimated_1rm"}
        assert len(fake_session.executed("insert into personal_records")) == 4
        assert len(fake_session.executed("insert into pr_history")) == 4

    @pytest.mark.asyncio
    async def test_owns_the_transaction_when_none_is_open(self, fake_session):
        await check_prs(1, 2, [{"weight": 50, "reps": 5}], session=fake_session)

        assert fake_session.begins == 1
        assert fake_session.commits == 1

    @pytest.mark.asyncio
    async def test_joins_an_open_transaction(self, fake_session):
        async with fake_session.begin():
            await check_prs(1, 2, [{"weight": 50, "reps": 5}], session=fake_session)
            assert fake_session.commits == 0

        assert fake_session.begins == 1
        assert fake_session.commits == 1

    @pytest.mark.asyncio
    async def test_history_insert_is_deduplicated_per_minute(self, fake_session):
        await check_prs(1, 2, [{"weight": 50, "reps": 5}], session=fake_session)

        history = fake_session.statements[fake_session.executed("insert into pr_history")[0]]
        assert "where not exists" in history
        assert "date_trunc('minute', achieved_at)" in history

    @pytest.mark.asyncio
    async def test_non_strength_exercise_is_a_no_op(self, fake_session):
        prs = await check_prs(1, 2, [{"weight": 50, "reps": 5}], exercise_type="cardio", session=fake_session)

        assert prs == []
        assert fake_session.statements == []

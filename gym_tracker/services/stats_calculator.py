"""
Estimated 1RM, training volume and personal-record detection.

PR evaluation for one (user, exercise) pair is serialized with a
transaction-scoped advisory lock taken as the first statement of the
transaction, so overlapping requests never double-record a PR. Unrelated
pairs are not blocked.
"""
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from gym_tracker.core.logging import get_logger
from gym_tracker.core.transactions import transaction
from gym_tracker.db.database import session_scope
from gym_tracker.models.enums import ExerciseType, RecordType, SetType
from gym_tracker.repositories.record_repository import RecordRepository

logger = get_logger(__name__)


@dataclass
class PRCheck:
    record_type: str
    value: float
    previous: float | None
    set_id: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def round_half_up(value: float, digits: int = 1) -> float:
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def estimate_e1rm(weight: float | None, reps: int | None) -> float | None:
    """Epley one-rep max. None when either input is missing or not positive."""
    if weight is None or reps is None or weight <= 0 or reps <= 0:
        return None
    if reps == 1:
        return float(weight)
    return round_half_up(weight * (1 + reps / 30), 1)


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def calculate_volume(sets: Iterable[Any]) -> float:
    """Sum of weight x reps, warmups excluded, missing weight counted as 0."""
    total = 0.0
    for s in sets:
        if _field(s, "set_type") == SetType.WARMUP.value:
            continue
        total += (_field(s, "weight") or 0) * (_field(s, "reps") or 0)
    return total


def weight_bucket(weight: float) -> str:
    """Literal weight as used in max_reps_at_<weight>: 80.0 -> "80", 82.5 -> "82.5"."""
    return f"{float(weight):.4f}".rstrip("0").rstrip(".")


def max_reps_record(weight: float) -> str:
    return f"{RecordType.MAX_REPS_AT.value}{weight_bucket(weight)}"


def evaluate_prs(current: dict[str, float], new_sets: Iterable[Any]) -> tuple[list[PRCheck], list[PRCheck]]:
    """Compare sets against `current` in order, updating it as records fall.

    Returns (every improvement in order, best improvement per record type). The
    per-type entries carry `previous` from the records as they were before this
    batch.
    """
    original = dict(current)
    steps: list[PRCheck] = []
    improved: dict[str, PRCheck] = {}

    for s in new_sets:
        weight = _field(s, "weight")
        reps = _field(s, "reps")
        if not weight or weight <= 0:
            continue

        candidates = [(RecordType.MAX_WEIGHT.value, float(weight))]
        if reps and reps > 0:
            candidates.append((max_reps_record(weight), float(reps)))
            e1rm = estimate_e1rm(weight, reps)
            if e1rm is not None:
                candidates.append((RecordType.ESTIMATED_1RM.value, e1rm))

        for record_type, value in candidates:
            if value > current.get(record_type, 0):
                steps.append(PRCheck(record_type, value, current.get(record_type), _field(s, "set_id")))
                current[record_type] = value
                improved[record_type] = PRCheck(
                    record_type=record_type,
                    value=value,
                    previous=original.get(record_type),
                    set_id=_field(s, "set_id"),
                )

    return steps, list(improved.values())


async def check_prs(
    user_id: int,
    exercise_id: int,
    new_sets: list[Any],
    exercise_type: str | None = None,
    session: AsyncSession | None = None,
    achieved_at: datetime | None = None,
) -> list[PRCheck]:
    """Detect and persist personal records for freshly logged sets.

    Joins the transaction already open on `session` (the owner commits), begins
    and owns one when `session` has none, or uses a pooled session of its own
    when `session` is None.
    """
    if exercise_type is not None and exercise_type != ExerciseType.STRENGTH.value:
        return []

    if session is None:
        async with session_scope() as own_session:
            return await check_prs(user_id, exercise_id, new_sets, exercise_type, own_session, achieved_at)

    async with transaction(session):
        repo = RecordRepository(session)
        await repo.lock(user_id, exercise_id)
        current = await repo.load_current(user_id, exercise_id)

        steps, prs = evaluate_prs(current, new_sets)
        for step in steps:
            await repo.upsert(user_id, exercise_id, step.record_type, step.value, step.set_id, achieved_at)
        for pr in prs:
            logger.info(
                "pr_detected",
                exercise_id=exercise_id,
                record_type=pr.record_type,
                value=pr.value,
                previous=pr.previous,
            )
        return prs

from __future__ import annotations
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from gym_tracker.core.locks import lock_pair
from gym_tracker.repositories.base import Repository


_UPSERT_RECORD = text(
    """
    INSERT INTO personal_records (user_id, exercise_id, record_type, value, achieved_at, set_id)
    VALUES (:user_id, :exercise_id, :record_type, :value,
            COALESCE(CAST(:achieved_at AS timestamptz), now()), :set_id)
    ON CONFLICT (user_id, exercise_id, record_type) DO UPDATE
       SET value = EXCLUDED.value,
           achieved_at = EXCLUDED.achieved_at,
           set_id = EXCLUDED.set_id
     WHERE personal_records.value < EXCLUDED.value
    """
)

_APPEND_HISTORY = text(
    """
    INSERT INTO pr_history (user_id, exercise_id, record_type, value, achieved_at, set_id)
    SELECT CAST(:user_id AS integer), CAST(:exercise_id AS integer), CAST(:record_type AS varchar),
           CAST(:value AS double precision),
           COALESCE(CAST(:achieved_at AS timestamptz), now()), CAST(:set_id AS integer)
    WHERE NOT EXISTS (
        SELECT 1 FROM pr_history
         WHERE user_id = :user_id
           AND exercise_id = :exercise_id
           AND record_type = :record_type
           AND value = :value
           AND date_trunc('minute', achieved_at)
               = date_trunc('minute', COALESCE(CAST(:achieved_at AS timestamptz), now()))
    )
    """
)


class RecordRepository(Repository[dict, tuple]):
    """Personal records and their history.

    Writes here assume the caller already holds the (user, exercise) lock
    taken by `lock()`.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def lock(self, user_id: int, exercise_id: int) -> None:
        await lock_pair(self._session, user_id, exercise_id)

    async def load_current(self, user_id: int, exercise_id: int) -> dict[str, float]:
        result = await self._session.execute(
            text(
                "SELECT record_type, value FROM personal_records "
                "WHERE user_id = :user_id AND exercise_id = :exercise_id"
            ),
            {"user_id": user_id, "exercise_id": exercise_id},
        )
        return {row["record_type"]: float(row["value"]) for row in result.mappings().all()}

    async def upsert(
        self,
        user_id: int,
        exercise_id: int,
        record_type: str,
        value: float,
        set_id: int | None,
        achieved_at: datetime | None = None,
    ) -> None:
        params = {
            "user_id": user_id,
            "exercise_id": exercise_id,
            "record_type": record_type,
            "value": value,
            "set_id": set_id,
            "achieved_at": achieved_at,
        }
        await self._session.execute(_UPSERT_RECORD, params)
        await self._session.execute(_APPEND_HISTORY, params)

    async def list_current(self, user_id: int, exercise_id: int | None = None) -> list[dict]:
        sql = (
            "SELECT pr.exercise_id, e.name AS exercise_name, pr.record_type, pr.value, pr.achieved_at "
            "FROM personal_records pr JOIN exercises e ON e.id = pr.exercise_id "
            "WHERE pr.user_id = :user_id"
        )
        params: dict = {"user_id": user_id}
        if exercise_id is not None:
            sql += " AND pr.exercise_id = :exercise_id"
            params["exercise_id"] = exercise_id
        sql += " ORDER BY e.name, pr.record_type"
        result = await self._session.execute(text(sql), params)
        return [dict(row) for row in result.mappings().all()]

    async def timeline(self, user_id: int, exercise_id: int, since: datetime | None = None) -> list[dict]:
        sql = (
            "SELECT record_type, value, achieved_at FROM pr_history "
            "WHERE user_id = :user_id AND exercise_id = :exercise_id"
        )
        params: dict = {"user_id": user_id, "exercise_id": exercise_id}
        if since is not None:
            sql += " AND achieved_at >= :since"
            params["since"] = since
        sql += " ORDER BY achieved_at, record_type"
        result = await self._session.execute(text(sql), params)
        return [dict(row) for row in result.mappings().all()]

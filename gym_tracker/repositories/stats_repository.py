from __future__ import annotations
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text


class StatsRepository:
    """Read-only aggregates over logged sets for one (user, exercise)."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _since_filter(column: str, since: datetime | None, params: dict) -> str:
        if since is None:
            return ""
        params["since"] = since
        return f" AND {column} >= :since"

    async def progression(self, user_id: int, exercise_id: int, since: datetime | None = None) -> list[dict]:
        """Per session: heaviest working weight and the most reps done at it."""
        params: dict = {"user_id": user_id, "exercise_id": exercise_id}
        sql = (
            """
            SELECT DATE(s.started_at) AS date,
                   MAX(st.weight) AS weight,
                   MAX(st.reps) FILTER (
                       WHERE st.weight = (SELECT MAX(st2.weight) FROM sets st2
                                           WHERE st2.session_exercise_id = se.id
                                             AND st2.set_type <> 'warmup')
                   ) AS reps
              FROM sets st
              JOIN session_exercises se ON se.id = st.session_exercise_id
              JOIN sessions s ON s.id = se.session_id
             WHERE s.user_id = :user_id AND se.exercise_id = :exercise_id
               AND st.set_type <> 'warmup' AND st.weight IS NOT NULL AND s.deleted_at IS NULL
            """
            + self._since_filter("s.started_at", since, params)
            + " GROUP BY DATE(s.started_at), se.id ORDER BY date"
        )
        result = await self._session.execute(text(sql), params)
        return [dict(row) for row in result.mappings().all()]

    async def weekly_volume(self, user_id: int, exercise_id: int, since: datetime | None = None) -> list[dict]:
        params: dict = {"user_id": user_id, "exercise_id": exercise_id}
        sql = (
            """
            SELECT DATE_TRUNC('week', s.started_at) AS week,
                   COALESCE(SUM(COALESCE(st.weight, 0) * st.reps), 0) AS total_volume_kg
              FROM sets st
              JOIN session_exercises se ON se.id = st.session_exercise_id
              JOIN sessions s ON s.id = se.session_id
             WHERE s.user_id = :user_id AND se.exercise_id = :exercise_id
               AND st.set_type <> 'warmup' AND s.deleted_at IS NULL
            """
            + self._since_filter("s.started_at", since, params)
            + " GROUP BY week ORDER BY week"
        )
        result = await self._session.execute(text(sql), params)
        return [dict(row) for row in result.mappings().all()]

    async def frequency(self, user_id: int, exercise_id: int, since: datetime | None = None) -> dict:
        params: dict = {"user_id": user_id, "exercise_id": exercise_id}
        sql = (
            """
            SELECT COUNT(DISTINCT s.id) AS total_sessions,
                   EXTRACT(EPOCH FROM (now() - MIN(s.started_at))) / 86400 AS span_days
              FROM sessions s
              JOIN session_exercises se ON se.session_id = s.id
             WHERE s.user_id = :user_id AND se.exercise_id = :exercise_id AND s.deleted_at IS NULL
            """
            + self._since_filter("s.started_at", since, params)
        )
        result = await self._session.execute(text(sql), params)
        return dict(result.mappings().one())

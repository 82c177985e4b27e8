from __future__ import annotations
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from gym_tracker.models.user import BodyMeasurement, UserProfile
from gym_tracker.repositories.base import Repository


class ProfileRepository(Repository[UserProfile, int]):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, id: int) -> UserProfile | None:
        return await self._session.get(UserProfile, id)

    async def get_data(self, user_id: int) -> dict:
        result = await self._session.execute(
            select(UserProfile.data).where(UserProfile.user_id == user_id)
        )
        return dict(result.scalar_one_or_none() or {})

    async def get_field(self, user_id: int, key: str) -> str | None:
        result = await self._session.execute(
            select(UserProfile.data[key].astext).where(UserProfile.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def save_data(self, user_id: int, data: dict) -> dict:
        stmt = pg_insert(UserProfile).values(user_id=user_id, data=data)
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserProfile.user_id],
            set_={"data": stmt.excluded.data, "updated_at": func.now()},
        ).returning(UserProfile.data)
        result = await self._session.execute(stmt)
        return dict(result.scalar_one())


class MeasurementRepository(Repository[BodyMeasurement, int]):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, id: int) -> BodyMeasurement | None:
        return await self._session.get(BodyMeasurement, id)

    async def latest(self, user_id: int, measurement_type: str) -> BodyMeasurement | None:
        result = await self._session.execute(
            select(BodyMeasurement)
            .where(
                and_(
                    BodyMeasurement.user_id == user_id,
                    BodyMeasurement.measurement_type == measurement_type,
                )
            )
            .order_by(BodyMeasurement.measured_at.desc(), BodyMeasurement.id.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def latest_per_type(self, user_id: int) -> list[BodyMeasurement]:
        result = await self._session.execute(
            select(BodyMeasurement)
            .distinct(BodyMeasurement.measurement_type)
            .where(BodyMeasurement.user_id == user_id)
            .order_by(
                BodyMeasurement.measurement_type,
                BodyMeasurement.measured_at.desc(),
                BodyMeasurement.id.desc(),
            )
        )
        return list(result.scalars().all())

    async def history(self, user_id: int, measurement_type: str, since: datetime | None = None) -> list[BodyMeasurement]:
        stmt = select(BodyMeasurement).where(
            and_(
                BodyMeasurement.user_id == user_id,
                BodyMeasurement.measurement_type == measurement_type,
            )
        )
        if since is not None:
            stmt = stmt.where(BodyMeasurement.measured_at >= since)
        result = await self._session.execute(stmt.order_by(BodyMeasurement.measured_at, BodyMeasurement.id))
        return list(result.scalars().all())

from sqlalchemy.ext.asyncio import AsyncSession

from gym_tracker.core.exceptions import NotFoundError
from gym_tracker.core.logging import get_logger
from gym_tracker.core.transactions import transactional
from gym_tracker.models.user import BodyMeasurement
from gym_tracker.repositories.profile_repository import MeasurementRepository
from gym_tracker.schemas.stats import ManageBodyMeasurementsParams
from gym_tracker.services.base import BaseService
from gym_tracker.services.profile import ProfileService
from gym_tracker.services.stats import period_start
from gym_tracker.services.workout_logger import session_start_for

logger = get_logger(__name__)


def _to_dict(m: BodyMeasurement) -> dict:
    return {
        "id": m.id,
        "measurement_type": m.measurement_type,
        "value": m.value,
        "measured_at": m.measured_at.isoformat() if m.measured_at else None,
        "notes": m.notes,
    }


def summarize_values(values: list[float]) -> dict | None:
    """min/max/average and change from first to last, for values in chronological order."""
    if not values:
        return None
    return {
        "min": min(values),
        "max": max(values),
        "average": round(sum(values) / len(values), 2),
        "change": round(values[-1] - values[0], 2),
        "data_points": len(values),
    }


class MeasurementService(BaseService):
    def __init__(self, session: AsyncSession, user_id: int | None = None):
        super().__init__(session, user_id)
        self._repo = MeasurementRepository(session)
        self._profile = ProfileService(session, user_id)

    @transactional()
    async def manage(self, params: ManageBodyMeasurementsParams) -> dict:
        if params.action == "log":
            return await self._log(params)
        if params.action == "history":
            return await self._history(params)
        return await self._latest(params)

    async def _log(self, params: ManageBodyMeasurementsParams) -> dict:
        previous = await self._repo.latest(self.user_id, params.measurement_type)

        measurement = BodyMeasurement(
            user_id=self.user_id,
            measurement_type=params.measurement_type,
            value=params.value,
            notes=params.notes,
        )
        if params.measured_at:
            measurement.measured_at = session_start_for(params.measured_at, await self._profile.get_user_timezone())
        await self._repo.create(measurement)
        await self._session.refresh(measurement)

        logger.info("measurement_logged", measurement_type=params.measurement_type)
        result = {"logged": _to_dict(measurement)}
        if previous is not None:
            result["previous"] = {
                "value": previous.value,
                "measured_at": previous.measured_at.isoformat() if previous.measured_at else None,
                "change": round(params.value - previous.value, 2),
            }
        return result

    async def _latest(self, params: ManageBodyMeasurementsParams) -> dict:
        if params.measurement_type:
            latest = await self._repo.latest(self.user_id, params.measurement_type)
            if latest is None:
                raise NotFoundError(
                    "Measurement",
                    f'No "{params.measurement_type}" measurements logged',
                    {"measurement_type": params.measurement_type},
                )
            return {"latest": _to_dict(latest)}
        return {"latest": [_to_dict(m) for m in await self._repo.latest_per_type(self.user_id)]}

    async def _history(self, params: ManageBodyMeasurementsParams) -> dict:
        rows = await self._repo.history(self.user_id, params.measurement_type, period_start(params.period))
        return {
            "measurement_type": params.measurement_type,
            "period": params.period,
            "stats": summarize_values([m.value for m in rows]),
            "history": [_to_dict(m) for m in rows],
        }

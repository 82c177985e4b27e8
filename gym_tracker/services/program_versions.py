"""
Program versioning.

A program is never edited in place once it has a version: each structural edit
deep-copies the latest version (days, groups, sections, day exercises) into
version MAX+1 and changes the copy. Older versions stay untouched, so sessions
that point at them keep a stable history. "Latest" is always resolved with
MAX(version_number) at query time.
"""
from dataclasses import dataclass, field
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.ext.asyncio import AsyncSession

from gym_tracker.core.exceptions import NotFoundError
from gym_tracker.core.locks import LockNamespace, lock_namespaced
from gym_tracker.core.logging import get_logger
from gym_tracker.core.transactions import transactional
from gym_tracker.models.program import ProgramDay, ProgramVersion
from gym_tracker.repositories.program_repository import ProgramRepository
from gym_tracker.services.base import BaseService
from gym_tracker.services.grouping import clone_batch
from gym_tracker.services.profile import get_localized_name

logger = get_logger(__name__)


@dataclass
class ClonedVersion:
    version_id: int
    version_number: int
    # source day id -> cloned day id
    day_map: dict[int, int] = field(default_factory=dict)


def resolve_zone(timezone: str | None) -> ZoneInfo | None:
    """IANA zone for `timezone`, or None (with a warning when the name is invalid)."""
    if not timezone:
        return None
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("timezone_invalid", timezone=timezone)
        return None


def current_iso_weekday(timezone: str | None, now: datetime | None = None) -> int:
    """ISO weekday (1=Mon..7=Sun) in `timezone`; server local time when it is missing or invalid."""
    zone = resolve_zone(timezone)
    if now is None:
        now = datetime.now(zone) if zone else datetime.now()
    elif zone is not None and now.tzinfo is not None:
        now = now.astimezone(zone)
    return now.isoweekday()


class ProgramVersionService(BaseService):
    def __init__(self, session: AsyncSession, user_id: int | None = None):
        super().__init__(session, user_id)
        self._repo = ProgramRepository(session)

    @transactional()
    async def clone_version(
        self,
        program_id: int,
        current_version_id: int,
        change_description: str | None = None,
    ) -> ClonedVersion:
        """Copy `current_version_id` into a new latest version of `program_id`."""
        # Serializes concurrent clones of the same program
        await lock_namespaced(self._session, LockNamespace.PROGRAM, program_id)

        current_number = await self._repo.get_version_number(current_version_id, program_id, self.user_id)
        if current_number is None:
            raise NotFoundError(
                "ProgramVersion",
                f"Version {current_version_id} not found for program {program_id}",
                {"program_id": program_id, "version_id": current_version_id},
            )

        version_number = await self._repo.max_version_number(program_id) + 1
        version_id = await self._repo.insert_version(program_id, version_number, change_description)

        cloned = ClonedVersion(version_id=version_id, version_number=version_number)
        for day in await self._repo.list_days_for_clone(current_version_id):
            new_day_id = await self._repo.clone_day(day["id"], version_id)

            group_map: dict[int, int] = {}
            if day["group_count"]:
                group_map = await clone_batch(
                    self._session, "group",
                    "program_exercise_groups", "program_exercise_groups",
                    "day_id", "day_id",
                    day["id"], new_day_id,
                )
            section_map: dict[int, int] = {}
            if day["section_count"]:
                section_map = await clone_batch(
                    self._session, "section",
                    "program_sections", "program_sections",
                    "day_id", "day_id",
                    day["id"], new_day_id,
                )

            await self._repo.clone_day_exercises(day["id"], new_day_id, group_map, section_map)
            cloned.day_map[day["id"]] = new_day_id

        logger.info(
            "version_cloned",
            program_id=program_id,
            from_version=current_number,
            to_version=version_number,
            days=len(cloned.day_map),
        )
        return cloned

    async def get_latest_version(self, program_id: int) -> ProgramVersion | None:
        return await self._repo.get_latest_version(program_id)

    async def get_days_with_exercises(self, version_id: int, locale: str | None = None) -> list[dict]:
        """Days of a version in order, each with its exercises, groups and sections."""
        days = await self._repo.list_days(version_id)
        day_ids = [day.id for day in days]
        exercises = await self._repo.list_day_exercises(day_ids)
        groups = await self._repo.list_groups(day_ids)
        sections = await self._repo.list_sections(day_ids)

        result = []
        for day in days:
            result.append(
                {
                    "id": day.id,
                    "day_label": day.day_label,
                    "weekdays": list(day.weekdays or []),
                    "sort_order": day.sort_order,
                    "exercises": [
                        {
                            "id": ex["id"],
                            "exercise_id": ex["exercise_id"],
                            "exercise": get_localized_name(ex["exercise_names"], locale, ex["exercise_name"]),
                            "exercise_type": ex["exercise_type"],
                            "sort_order": ex["sort_order"],
                            "target_sets": ex["target_sets"],
                            "target_reps": ex["target_reps"],
                            "target_weight": ex["target_weight"],
                            "target_rpe": ex["target_rpe"],
                            "target_reps_per_set": ex["target_reps_per_set"],
                            "target_weight_per_set": ex["target_weight_per_set"],
                            "rest_seconds": ex["rest_seconds"],
                            "notes": ex["notes"],
                            "group_id": ex["group_id"],
                            "section_id": ex["section_id"],
                        }
                        for ex in exercises
                        if ex["day_id"] == day.id
                    ],
                    "groups": [
                        {
                            "id": g.id,
                            "group_type": g.group_type,
                            "label": g.label,
                            "notes": g.notes,
                            "rest_seconds": g.rest_seconds,
                            "sort_order": g.sort_order,
                        }
                        for g in groups
                        if g.day_id == day.id
                    ],
                    "sections": [
                        {"id": s.id, "label": s.label, "notes": s.notes, "sort_order": s.sort_order}
                        for s in sections
                        if s.day_id == day.id
                    ],
                }
            )
        return result

    async def infer_today_day(
        self,
        program_id: int,
        timezone: str | None = None,
        now: datetime | None = None,
    ) -> ProgramDay | None:
        """First day of the latest version scheduled on today's weekday, or None for a rest day."""
        latest = await self._repo.get_latest_version(program_id)
        if latest is None:
            return None
        weekday = current_iso_weekday(timezone, now)
        return await self._repo.find_day_for_weekday(latest.id, weekday)

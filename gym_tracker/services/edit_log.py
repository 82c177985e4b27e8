"""Corrections to already-logged sets: update or delete, by set number, id, or type."""
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from gym_tracker.core.exceptions import NotFoundError, ValidationError
from gym_tracker.core.logging import get_logger
from gym_tracker.core.transactions import transactional
from gym_tracker.repositories.session_repository import SessionRepository
from gym_tracker.schemas.workout import EditEntry, EditLogParams, SetUpdates
from gym_tracker.services.base import BaseService
from gym_tracker.services.exercise_resolver import ExerciseResolver

logger = get_logger(__name__)


def select_sets(
    sets: list[dict],
    set_numbers: list[int] | None = None,
    set_ids: list[int] | None = None,
    set_type_filter: str | None = None,
) -> list[dict]:
    """Sets matched by ids, else by numbers (negative numbers count from the end), then by type."""
    if set_ids:
        wanted_ids = set(set_ids)
        selected = [s for s in sets if s["set_id"] in wanted_ids]
    elif set_numbers:
        ordered = sorted(sets, key=lambda s: s["set_number"])
        wanted = set()
        for n in set_numbers:
            if n < 0:
                if -n <= len(ordered):
                    wanted.add(ordered[n]["set_number"])
            else:
                wanted.add(n)
        selected = [s for s in ordered if s["set_number"] in wanted]
    else:
        selected = list(sets)

    if set_type_filter:
        selected = [s for s in selected if s["set_type"] == set_type_filter]
    return selected


class EditLogService(BaseService):
    def __init__(self, session: AsyncSession, user_id: int | None = None):
        super().__init__(session, user_id)
        self._sessions = SessionRepository(session)
        self._resolver = ExerciseResolver(session, user_id)

    @transactional()
    async def edit(self, params: EditLogParams) -> dict:
        if params.bulk:
            results = []
            for entry in params.bulk:
                try:
                    results.append(await self._edit_entry(params.session, entry, params))
                except NotFoundError as e:
                    results.append({"exercise": entry.exercise, "error": e.message})
            return {"bulk_results": results}

        entry = EditEntry(
            exercise=params.exercise,
            action=params.action,
            set_numbers=params.set_numbers,
            set_ids=params.set_ids,
            set_type_filter=params.set_type_filter,
            updates=params.updates,
        )
        return await self._edit_entry(params.session, entry, params)

    async def _edit_entry(self, scope: str, entry: EditEntry, defaults: EditLogParams) -> dict:
        action = entry.action or defaults.action or "update"
        updates = entry.updates or defaults.updates

        resolved = await self._resolver.find(entry.exercise)
        if resolved is None:
            raise NotFoundError("Exercise", f'Exercise "{entry.exercise}" not found', {"exercise": entry.exercise})

        lookup: str | date = scope if scope in ("today", "last") else date.fromisoformat(scope)
        session_id = await self._sessions.find_for_edit(self.user_id, resolved.id, lookup)
        if session_id is None:
            raise NotFoundError(
                "Session",
                f"No sets found for {resolved.name} in the specified session",
                {"exercise": resolved.name, "session": scope},
            )
        session_exercise_ids = await self._sessions.list_session_exercise_ids(session_id, resolved.id)

        if action == "delete":
            return await self._delete(resolved.name, session_exercise_ids, entry)
        return await self._update(resolved.name, session_exercise_ids, entry, updates)

    async def _delete(self, name: str, session_exercise_ids: list[int], entry: EditEntry) -> dict:
        filtered = bool(entry.set_ids or entry.set_numbers or entry.set_type_filter)
        deleted = 0
        for se_id in session_exercise_ids:
            sets = await self._sessions.list_sets(se_id)
            targets = select_sets(sets, entry.set_numbers, entry.set_ids, entry.set_type_filter)
            deleted += await self._sessions.delete_sets([s["set_id"] for s in targets])
            # Nothing left: the exercise goes too
            if len(targets) == len(sets):
                await self._sessions.delete_session_exercise(se_id)

        logger.info("sets_deleted", exercise=name, count=deleted)
        result: dict[str, Any] = {
            "deleted": True,
            "exercise": name,
            "sets_deleted": deleted,
            "scope": "filtered" if filtered else "all",
        }
        if entry.set_numbers:
            result["set_numbers"] = entry.set_numbers
        if entry.set_ids:
            result["set_ids"] = entry.set_ids
        if entry.set_type_filter:
            result["set_type_filter"] = entry.set_type_filter
        return result

    async def _update(
        self,
        name: str,
        session_exercise_ids: list[int],
        entry: EditEntry,
        updates: SetUpdates | None,
    ) -> dict:
        values = updates.model_dump(exclude_unset=True) if updates else {}
        if not values:
            raise ValidationError("updates", "No updates provided")

        updated = 0
        updated_sets: list[dict] = []
        for se_id in session_exercise_ids:
            targets = select_sets(
                await self._sessions.list_sets(se_id), entry.set_numbers, entry.set_ids, entry.set_type_filter
            )
            target_ids = [s["set_id"] for s in targets]
            updated += await self._sessions.update_sets(target_ids, values)
            if target_ids:
                updated_sets.extend(s for s in await self._sessions.list_sets(se_id) if s["set_id"] in target_ids)

        logger.info("sets_updated", exercise=name, count=updated)
        return {
            "updated": True,
            "exercise": name,
            "sets_updated": updated,
            "updated_sets": updated_sets,
        }

"""
Set logging.

Everything one `log_workout` call writes (session, session exercises, sets,
personal records) happens in a single transaction. The user's open session is
looked up under a per-user advisory lock so two concurrent calls cannot both
create one.
"""
from datetime import datetime, time, timezone as dt_timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from gym_tracker.core.exceptions import NotFoundError
from gym_tracker.core.locks import LockNamespace, lock_namespaced
from gym_tracker.core.logging import get_logger
from gym_tracker.core.transactions import transactional
from gym_tracker.models.enums import SetType
from gym_tracker.repositories.program_repository import ProgramRepository
from gym_tracker.repositories.session_repository import SessionRepository
from gym_tracker.schemas.workout import ExerciseEntry, LogWorkoutParams
from gym_tracker.services.base import BaseService
from gym_tracker.services.exercise_resolver import ExerciseResolver
from gym_tracker.services.grouping import ensure_day_groupings
from gym_tracker.services.profile import ProfileService, get_localized_name
from gym_tracker.services.program_versions import ProgramVersionService, resolve_zone
from gym_tracker.services.stats_calculator import calculate_volume, check_prs, round_half_up, weight_bucket

logger = get_logger(__name__)


def expand_reps(reps: int | list[int], sets: int = 1) -> list[int]:
    """One reps value per set: a list is taken as-is, a scalar is repeated `sets` times."""
    if isinstance(reps, list):
        return list(reps)
    return [reps] * max(sets, 1)


def expand_set_notes(set_notes: str | list[str] | None, count: int) -> list[str | None]:
    if not set_notes:
        return [None] * count
    if isinstance(set_notes, str):
        return [set_notes] * count
    notes = [n or None for n in set_notes[:count]]
    return notes + [None] * (count - len(notes))


def drop_set_weights(
    weight: float | None,
    count: int,
    set_type: str = SetType.WORKING.value,
    drop_percent: float | None = None,
) -> list[float | None]:
    """Per-set weights. Drop sets lose `drop_percent` of the starting weight per set."""
    if set_type != SetType.DROP.value or not weight or not drop_percent:
        return [weight or None] * count
    return [max(0.0, round_half_up(weight * (1 - i * drop_percent / 100), 1)) for i in range(count)]


def summarize_sets(sets: list[dict]) -> str:
    """Compact description of logged sets: "3x10@80kg (working), 12,10 (warmup)"."""
    groups: dict[tuple[str, Any], dict] = {}
    for s in sets or []:
        key = (s.get("set_type") or SetType.WORKING.value, s.get("weight") or None)
        group = groups.setdefault(key, {"reps": [], "weight": s.get("weight")})
        group["reps"].append(s.get("reps"))

    parts = []
    for (set_type, _), group in groups.items():
        reps = group["reps"]
        reps_text = f"{len(reps)}x{reps[0]}" if all(r == reps[0] for r in reps) else ",".join(str(r) for r in reps)
        weight_text = f"@{weight_bucket(group['weight'])}kg" if group["weight"] else ""
        parts.append(f"{reps_text}{weight_text} ({set_type})")
    return ", ".join(parts)


def session_start_for(day, timezone: str | None) -> datetime:
    """Midnight of `day` in the user's zone (UTC when unknown), used for backdated sessions."""
    zone = resolve_zone(timezone) or dt_timezone.utc
    return datetime.combine(day, time.min, tzinfo=zone)


class WorkoutLogger(BaseService):
    def __init__(self, session: AsyncSession, user_id: int | None = None):
        super().__init__(session, user_id)
        self._sessions = SessionRepository(session)
        self._programs = ProgramRepository(session)
        self._resolver = ExerciseResolver(session, user_id)
        self._profile = ProfileService(session, user_id)
        self._versions = ProgramVersionService(session, user_id)

    async def get_or_create_active_session(
        self,
        program_version_id: int | None = None,
        program_day_id: int | None = None,
        notes: str | None = None,
        tags: list[str] | None = None,
        started_at: datetime | None = None,
    ) -> tuple[dict, bool]:
        """The user's open session, created when there is none. Returns (session, created).

        Must run inside a transaction: the per-user lock is held until it ends.
        """
        await lock_namespaced(self._session, LockNamespace.USER_SESSION, self.user_id)

        active = await self._sessions.get_active(self.user_id)
        if active is not None:
            return (
                {
                    "id": active.id,
                    "started_at": active.started_at,
                    "program_version_id": active.program_version_id,
                    "program_day_id": active.program_day_id,
                    "is_validated": active.is_validated,
                },
                False,
            )

        is_validated = not await self._profile.requires_validation()
        created = await self._sessions.create_session(
            self.user_id,
            program_version_id=program_version_id,
            program_day_id=program_day_id,
            notes=notes,
            tags=tags,
            started_at=started_at,
            is_validated=is_validated,
        )
        logger.info("session_created", session_id=created["id"], program_day_id=program_day_id)
        return (
            {
                "id": created["id"],
                "started_at": created["started_at"],
                "program_version_id": program_version_id,
                "program_day_id": program_day_id,
                "is_validated": is_validated,
            },
            True,
        )

    async def log_single_exercise(
        self,
        session_id: int,
        entry: ExerciseEntry,
        session_validated: bool = True,
        locale: str | None = None,
        achieved_at: datetime | None = None,
    ) -> dict:
        """Log the sets of one exercise into an open session. Runs in the caller's transaction."""
        resolved = await self._resolver.resolve(
            entry.exercise,
            muscle_group=entry.muscle_group,
            equipment=entry.equipment,
            rep_type=entry.rep_type,
            exercise_type=entry.exercise_type,
            locale=locale,
        )
        session_exercise_id, start = await self._attach_exercise(
            session_id,
            resolved.id,
            notes=entry.notes,
            rest_seconds=entry.rest_seconds,
            group_id=entry.group_id,
            section_id=entry.section_id,
        )

        reps = expand_reps(entry.reps, entry.sets)
        logged, prs = await self._insert_sets(
            session_exercise_id,
            start,
            exercise_id=resolved.id,
            exercise_type=resolved.exercise_type,
            reps=reps,
            weights=drop_set_weights(entry.weight, len(reps), entry.set_type, entry.drop_percent),
            rpe=entry.rpe,
            set_type=entry.set_type,
            notes=expand_set_notes(entry.set_notes, len(reps)),
            session_validated=session_validated,
            achieved_at=achieved_at,
        )

        result: dict[str, Any] = {
            "exercise_name": resolved.display_name,
            "exercise_id": resolved.id,
            "is_new_exercise": resolved.is_new,
            "logged_sets": logged,
        }
        if prs:
            result["new_prs"] = [pr.to_dict() for pr in prs]
        if entry.rest_seconds:
            result["rest_seconds"] = entry.rest_seconds
            result["rest_reminder"] = f"Rest {entry.rest_seconds}s before next set"
        return result

    @transactional()
    async def log_workout(self, params: LogWorkoutParams) -> dict:
        has_bulk = bool(params.exercises)
        has_single = bool(params.exercise) and not has_bulk
        has_program_day = bool(params.program_day)
        # built before any write so a bad entry fails the call up front
        if has_bulk:
            entries = params.exercises
        elif has_single:
            entries = [params.single_entry()]
        else:
            entries = []

        locale = await self._profile.get_user_locale()
        timezone = await self._profile.get_user_timezone()

        # Program day: explicit label, or inferred for session-only calls
        active_program = None
        day = None
        if has_program_day or not (has_bulk or has_single):
            active_program = await self._programs.get_active(self.user_id)
            if active_program is not None:
                if params.program_day:
                    day = await self._programs.get_day_by_label(active_program["version_id"], params.program_day)
                else:
                    day = await self._versions.infer_today_day(active_program["id"], timezone)
            if has_program_day and day is None:
                if active_program is None:
                    raise NotFoundError("Program", "No active program found")
                raise NotFoundError(
                    "ProgramDay",
                    f"No program day '{params.program_day}' in the active program",
                    {"program_day": params.program_day},
                )

        started_at = session_start_for(params.date, timezone) if params.date else None
        session, created = await self.get_or_create_active_session(
            program_version_id=active_program["version_id"] if active_program and day else None,
            program_day_id=day.id if day else None,
            notes=params.notes,
            tags=params.tags,
            started_at=started_at,
        )
        session_id = session["id"]
        if not created:
            if day is not None and not session["program_day_id"]:
                await self._sessions.link_program_day(session_id, day.id, active_program["version_id"])
            if params.tags:
                await self._sessions.set_tags(session_id, params.tags)
            if params.notes:
                await self._sessions.append_notes(session_id, params.notes)

        validated = bool(session["is_validated"])
        achieved_at = session["started_at"] if params.date else None
        all_prs: list[dict] = []

        routine: list[dict] = []
        routine_sets: list[dict] = []
        if has_program_day:
            routine, routine_sets = await self._log_program_day(
                session_id, day.id, params, validated, locale, achieved_at, all_prs
            )

        explicit: list[dict] = []
        for entry in entries:
            result = await self.log_single_exercise(session_id, entry, validated, locale, achieved_at)
            explicit.append(result)
            all_prs.extend({"exercise": result["exercise_name"], **pr} for pr in result.get("new_prs", []))

        if not routine and not explicit:
            return await self.session_overview(
                session_id, created, day, params.include_last_workout, locale
            )

        if params.minimal_response:
            response = {
                "success": True,
                "session_id": session_id,
                "exercises_logged": len(routine) + len(explicit),
            }
            if all_prs:
                response["new_prs"] = all_prs
            return response

        response: dict[str, Any] = {"session_id": session_id}
        if routine:
            response["day_label"] = day.day_label
            response["routine_exercises"] = routine
            response["total_routine_sets"] = len(routine_sets)
            response["total_routine_volume_kg"] = round(calculate_volume(routine_sets))
        if has_single:
            response.update(explicit[0])
        elif explicit:
            response["exercises_logged"] = explicit
        if all_prs:
            response["new_prs"] = all_prs
        return response

    async def _log_program_day(
        self,
        session_id: int,
        day_id: int,
        params: LogWorkoutParams,
        validated: bool,
        locale: str | None,
        achieved_at: datetime | None,
        all_prs: list[dict],
    ) -> tuple[list[dict], list[dict]]:
        skip = {s.strip().lower() for s in params.skip or []}
        overrides: dict[Any, Any] = {}
        for override in params.overrides or []:
            found = await self._resolver.find(override.exercise, locale)
            overrides[found.id if found else override.exercise.strip().lower()] = override

        group_map, section_map = await ensure_day_groupings(self._session, day_id, session_id)

        routine: list[dict] = []
        routine_sets: list[dict] = []
        for dex in await self._programs.list_day_exercises([day_id]):
            name = get_localized_name(dex["exercise_names"], locale, dex["exercise_name"])
            if {dex["exercise_name"].lower(), name.lower(), str(dex["exercise_id"])} & skip:
                continue

            override = overrides.get(dex["exercise_id"]) or overrides.get(dex["exercise_name"].lower())
            sets = (override.sets if override and override.sets else None) or dex["target_sets"] or 1
            weight = override.weight if override and override.weight is not None else dex["target_weight"]
            rpe = override.rpe if override and override.rpe is not None else dex["target_rpe"]
            if override and override.reps:
                reps = expand_reps(override.reps, sets)
            elif dex["target_reps_per_set"] and not (override and override.sets):
                reps = list(dex["target_reps_per_set"])
            else:
                reps = expand_reps(dex["target_reps"] or 1, sets)

            weights = [weight] * len(reps)
            per_set_weights = dex["target_weight_per_set"]
            if per_set_weights and not (override and override.weight is not None) and len(per_set_weights) >= len(reps):
                weights = [float(w) if w is not None else None for w in per_set_weights[: len(reps)]]

            session_exercise_id, start = await self._attach_exercise(
                session_id,
                dex["exercise_id"],
                rest_seconds=dex["rest_seconds"],
                group_id=group_map.get(dex["group_id"]) if dex["group_id"] else None,
                section_id=section_map.get(dex["section_id"]) if dex["section_id"] else None,
            )
            logged, prs = await self._insert_sets(
                session_exercise_id,
                start,
                exercise_id=dex["exercise_id"],
                exercise_type=dex["exercise_type"],
                reps=reps,
                weights=weights,
                rpe=rpe,
                set_type=SetType.WORKING.value,
                notes=[None] * len(reps),
                session_validated=validated,
                achieved_at=achieved_at,
            )
            routine_sets.extend(logged)
            if prs:
                all_prs.append({"exercise": name, "prs": [pr.to_dict() for pr in prs]})

            item: dict[str, Any] = {"exercise": name, "sets": len(reps), "reps": reps[0] if len(set(reps)) == 1 else reps}
            if weight:
                item["weight"] = weight
            if rpe:
                item["rpe"] = rpe
            routine.append(item)
        return routine, routine_sets

    async def _attach_exercise(
        self,
        session_id: int,
        exercise_id: int,
        notes: str | None = None,
        rest_seconds: int | None = None,
        group_id: int | None = None,
        section_id: int | None = None,
    ) -> tuple[int, int]:
        """Session exercise to log into and the set number to continue from."""
        existing = await self._sessions.find_session_exercise(session_id, exercise_id, self.user_id)
        if existing is not None:
            await self._sessions.backfill_session_exercise(
                existing["id"], notes=notes, rest_seconds=rest_seconds, group_id=group_id
            )
            return existing["id"], int(existing["max_set_number"] or 0)

        session_exercise_id = await self._sessions.create_session_exercise(
            session_id,
            exercise_id,
            notes=notes or None,
            rest_seconds=rest_seconds,
            group_id=group_id,
            section_id=section_id,
        )
        return session_exercise_id, 0

    async def _insert_sets(
        self,
        session_exercise_id: int,
        start: int,
        *,
        exercise_id: int,
        exercise_type: str | None,
        reps: list[int],
        weights: list[float | None],
        rpe: float | None,
        set_type: str,
        notes: list[str | None],
        session_validated: bool,
        achieved_at: datetime | None,
    ) -> tuple[list[dict], list]:
        rows = [
            {
                "session_exercise_id": session_exercise_id,
                "set_number": start + i + 1,
                "set_type": set_type,
                "reps": r,
                "weight": weights[i],
                "rpe": rpe,
                "notes": notes[i],
            }
            for i, r in enumerate(reps)
        ]
        inserted = await self._sessions.insert_sets(rows)
        ids = {row["set_number"]: row["id"] for row in inserted}

        logged = []
        for row in rows:
            item = {
                "set_id": ids.get(row["set_number"]),
                "set_number": row["set_number"],
                "reps": row["reps"],
                "set_type": row["set_type"],
            }
            if row["weight"]:
                item["weight"] = row["weight"]
            if row["rpe"]:
                item["rpe"] = row["rpe"]
            if row["notes"]:
                item["notes"] = row["notes"]
            logged.append(item)

        if not session_validated:
            return logged, []

        prs = await check_prs(
            self.user_id,
            exercise_id,
            [{"reps": s["reps"], "weight": s.get("weight"), "set_id": s["set_id"]} for s in logged],
            exercise_type=exercise_type,
            session=self._session,
            achieved_at=achieved_at,
        )
        return logged, prs

    async def session_overview(
        self,
        session_id: int,
        created: bool,
        day,
        include_last_workout: bool,
        locale: str | None,
    ) -> dict:
        """Session-only response: the day's plan and the last completed workout of that day."""
        result: dict[str, Any] = {"session_id": session_id, "session_created": created}
        if day is None:
            return result

        plan = await self._programs.list_day_exercises([day.id])
        result["program_day"] = {
            "label": day.day_label,
            "exercises": [
                {
                    "name": get_localized_name(ex["exercise_names"], locale, ex["exercise_name"]),
                    "target_sets": ex["target_sets"],
                    "target_reps": ex["target_reps"],
                    "target_weight": ex["target_weight"],
                    "target_rpe": ex["target_rpe"],
                    "rest_seconds": ex["rest_seconds"],
                    "notes": ex["notes"],
                }
                for ex in plan
            ],
        }

        if include_last_workout:
            last = await self._sessions.last_completed_for_day(self.user_id, day.id, session_id)
            if last is not None:
                exercises = await self._sessions.list_exercise_details(last.id)
                result["last_workout"] = {
                    "date": last.started_at.isoformat() if last.started_at else None,
                    "exercises": [
                        {
                            "name": get_localized_name(ex["names"], locale, ex["name"]),
                            "sets": ex["sets"],
                            "summary": summarize_sets(ex["sets"]),
                        }
                        for ex in exercises
                        if ex["sets"]
                    ],
                }
        return result

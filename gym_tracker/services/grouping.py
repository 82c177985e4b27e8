"""
Exercise groups (superset/paired/circuit) and labelled sections.

Both kinds live in parallel program_* and session_* tables with identical
shapes. `clone_batch` copies every row of one parent to another in a single
statement and returns the old->new id map used to rewrite child foreign keys.
`sort_order` is the correlation key across the copy, so it must be unique per
parent; the unique constraints on the tables enforce that.
"""
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

# kind -> table -> parent column
CLONE_TABLES: dict[str, dict[str, str]] = {
    "group": {
        "program_exercise_groups": "day_id",
        "session_exercise_groups": "session_id",
    },
    "section": {
        "program_sections": "day_id",
        "session_sections": "session_id",
    },
}

CLONE_COLUMNS: dict[str, tuple[str, ...]] = {
    "group": ("group_type", "label", "notes", "rest_seconds", "sort_order"),
    "section": ("label", "notes", "sort_order"),
}


def _check_table(kind: str, table: str, parent_col: str) -> None:
    tables = CLONE_TABLES.get(kind)
    if tables is None:
        raise ValueError(f"Unknown clone kind: {kind!r}")
    if tables.get(table) != parent_col:
        raise ValueError(f"{table}.{parent_col} is not a valid {kind} parent")


async def clone_batch(
    session: AsyncSession,
    kind: str,
    source_table: str,
    target_table: str,
    source_parent_col: str,
    target_parent_col: str,
    source_parent_id: int,
    target_parent_id: int,
) -> dict[int, int]:
    """Copy all `kind` rows of one parent under another. Returns {old_id: new_id}."""
    _check_table(kind, source_table, source_parent_col)
    _check_table(kind, target_table, target_parent_col)

    columns = ", ".join(CLONE_COLUMNS[kind])
    sql = f"""
        WITH src AS (
            SELECT id, {columns}
              FROM {source_table}
             WHERE {source_parent_col} = :source_parent_id
        ),
        ins AS (
            INSERT INTO {target_table} ({target_parent_col}, {columns})
            SELECT CAST(:target_parent_id AS integer), {columns}
              FROM src
             ORDER BY sort_order
            RETURNING id, sort_order
        )
        SELECT src.id AS old_id, ins.id AS new_id
          FROM src
          JOIN ins USING (sort_order)
    """
    result = await session.execute(
        text(sql),
        {"source_parent_id": source_parent_id, "target_parent_id": target_parent_id},
    )
    return {row["old_id"]: row["new_id"] for row in result.mappings().all()}


async def insert_group(
    session: AsyncSession,
    table: str,
    parent_col: str,
    parent_id: int,
    group_type: str,
    sort_order: int,
    label: str | None = None,
    notes: str | None = None,
    rest_seconds: int | None = None,
) -> int:
    _check_table("group", table, parent_col)
    result = await session.execute(
        text(
            f"INSERT INTO {table} ({parent_col}, group_type, label, notes, rest_seconds, sort_order) "
            "VALUES (:parent_id, :group_type, :label, :notes, :rest_seconds, :sort_order) RETURNING id"
        ),
        {
            "parent_id": parent_id,
            "group_type": group_type,
            "label": label,
            "notes": notes,
            "rest_seconds": rest_seconds,
            "sort_order": sort_order,
        },
    )
    return result.scalar_one()


async def insert_section(
    session: AsyncSession,
    table: str,
    parent_col: str,
    parent_id: int,
    label: str,
    sort_order: int,
    notes: str | None = None,
) -> int:
    _check_table("section", table, parent_col)
    result = await session.execute(
        text(
            f"INSERT INTO {table} ({parent_col}, label, notes, sort_order) "
            "VALUES (:parent_id, :label, :notes, :sort_order) RETURNING id"
        ),
        {"parent_id": parent_id, "label": label, "notes": notes, "sort_order": sort_order},
    )
    return result.scalar_one()


# kind, program table, session table
DAY_TO_SESSION: tuple[tuple[str, str, str], ...] = (
    ("group", "program_exercise_groups", "session_exercise_groups"),
    ("section", "program_sections", "session_sections"),
)


async def ensure_day_groupings(
    session: AsyncSession, day_id: int, session_id: int
) -> tuple[dict[int, int], dict[int, int]]:
    """Map a program day's groups and sections to session rows, copying the ones the session lacks.

    Session rows keep the id of the program row they were copied from
    (`source_id`), so a second day logged into the same session gets its own
    groupings instead of the first day's. Copies are appended after the
    session's highest `sort_order`.
    """
    maps = []
    for kind, source_table, target_table in DAY_TO_SESSION:
        columns = [c for c in CLONE_COLUMNS[kind] if c != "sort_order"]
        target_columns = ", ".join(columns)
        source_columns = ", ".join(f"p.{c}" for c in columns)
        sql = f"""
            WITH existing AS (
                SELECT s.source_id AS old_id, s.id AS new_id
                  FROM {target_table} s
                  JOIN {source_table} p ON p.id = s.source_id
                 WHERE s.session_id = :session_id
                   AND p.day_id = :day_id
            ),
            base AS (
                SELECT COALESCE(MAX(sort_order) + 1, 0) AS next_order
                  FROM {target_table}
                 WHERE session_id = :session_id
            ),
            ins AS (
                INSERT INTO {target_table} (session_id, source_id, {target_columns}, sort_order)
                SELECT CAST(:session_id AS integer), p.id, {source_columns},
                       base.next_order + p.sort_order
                  FROM {source_table} p
                 CROSS JOIN base
                 WHERE p.day_id = :day_id
                   AND p.id NOT IN (SELECT old_id FROM existing)
                 ORDER BY p.sort_order
                RETURNING source_id AS old_id, id AS new_id
            )
            SELECT old_id, new_id FROM existing
            UNION ALL
            SELECT old_id, new_id FROM ins
        """
        result = await session.execute(text(sql), {"day_id": day_id, "session_id": session_id})
        maps.append({row["old_id"]: row["new_id"] for row in result.mappings().all()})
    return maps[0], maps[1]

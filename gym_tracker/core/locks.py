"""Transaction-scoped PostgreSQL advisory locks.

Two key spaces are used and they never collide in Postgres: the two-int4 form
for (user, exercise) personal-record locks, and the single-bigint form with a
namespace in the high 32 bits for everything else.
"""
from enum import IntEnum

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


class LockNamespace(IntEnum):
    PROGRAM = 1
    USER_SESSION = 2


def namespaced_key(namespace: LockNamespace, object_id: int) -> int:
    return (int(namespace) << 32) | (object_id & 0xFFFFFFFF)


async def lock_pair(session: AsyncSession, first: int, second: int) -> None:
    """Block until the (first, second) lock is held. Released at commit/rollback."""
    await session.execute(
        text("SELECT pg_advisory_xact_lock(:first, :second)"),
        {"first": first, "second": second},
    )


async def lock_namespaced(session: AsyncSession, namespace: LockNamespace, object_id: int) -> None:
    await session.execute(
        text("SELECT pg_advisory_xact_lock(:key)"),
        {"key": namespaced_key(namespace, object_id)},
    )

"""Database package."""
from gym_tracker.db.database import (
    Base,
    async_session_maker,
    check_database_health,
    close_all_engines,
    engine,
    init_db,
    session_scope,
)

__all__ = [
    "Base",
    "async_session_maker",
    "check_database_health",
    "close_all_engines",
    "engine",
    "init_db",
    "session_scope",
]

from sqlalchemy.ext.asyncio import AsyncSession

from gym_tracker.core.context import get_user_id


class BaseService:
    def __init__(self, session: AsyncSession, user_id: int | None = None):
        self._session = session
        self._user_id = user_id

    @property
    def user_id(self) -> int:
        """Explicit user id, else the ambient one from `user_context`."""
        if self._user_id is not None:
            return self._user_id
        return get_user_id()

import asyncio
from contextlib import asynccontextmanager
from functools import wraps
from typing import AsyncIterator, Callable, ParamSpec, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gym_tracker.config.settings import get_settings
from gym_tracker.core.exceptions import StorageError
from gym_tracker.core.logging import get_logger

P = ParamSpec('P')
T = TypeVar('T')

logger = get_logger(__name__)


@asynccontextmanager
async def transaction(
    session: AsyncSession,
    *,
    timeout: float | None = None,
) -> AsyncIterator[AsyncSession]:
    """Run the block inside one transaction on `session`.

    If the session already has a transaction open, the block joins it and the
    owner of that transaction decides commit or rollback. Otherwise a new one is
    begun here and committed on success, rolled back on any exception.
    """
    if session.in_transaction():
        yield session
        return

    limit = timeout if timeout is not None else get_settings().transaction_timeout_seconds
    try:
        async with asyncio.timeout(limit):
            async with session.begin():
                yield session
    except TimeoutError as exc:
        logger.error("transaction_timeout", timeout_seconds=limit)
        raise StorageError("Transaction timed out", details={"timeout_seconds": limit}) from exc
    except SQLAlchemyError as exc:
        logger.error("transaction_failed", error_type=exc.__class__.__name__, error=str(exc))
        raise StorageError(details={"reason": exc.__class__.__name__}) from exc


def transactional(
    *,
    timeout: float | None = None,
):
    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            session = _extract_session(args, kwargs)

            async with transaction(session, timeout=timeout):
                return await func(*args, **kwargs)
        return wrapper
    return decorator


def _extract_session(args, kwargs) -> AsyncSession:
    if args and isinstance(args[0], AsyncSession):
        return args[0]
    if 'db' in kwargs:
        return kwargs['db']
    if 'session' in kwargs:
        return kwargs['session']
    if args and hasattr(args[0], '_session') and args[0]._session is not None:
        return args[0]._session
    raise ValueError("No session found in function arguments")

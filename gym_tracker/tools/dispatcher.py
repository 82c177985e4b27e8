"""
Tool boundary.

`dispatch` runs one tool call: validate the params, open a session of its own,
run the handler inside a single transaction bound to the caller's user id, and
turn every failure into the JSON error payload. Nothing raised below this point
reaches the agent as a stack trace.
"""
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable

from pydantic import ValidationError as PydanticValidationError
from pydantic_core import to_jsonable_python
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gym_tracker.core.context import user_context
from gym_tracker.core.error_handlers import domain_error_payload, validation_error_from
from gym_tracker.core.exceptions import DomainError, NotFoundError, StorageError
from gym_tracker.core.logging import add_log_context, clear_log_context, get_logger
from gym_tracker.core.transactions import transaction
from gym_tracker.db.database import session_scope
from gym_tracker.tools.registry import TOOLS, get_tool

logger = get_logger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def list_tools() -> list[dict]:
    return [
        {
            "name": spec.name,
            "description": spec.description,
            "read_only": spec.read_only,
            "input_schema": spec.params_model.model_json_schema(),
        }
        for spec in TOOLS.values()
    ]


async def dispatch(
    tool_name: str,
    params: dict[str, Any] | None,
    user_id: int,
    session_factory: SessionFactory = session_scope,
) -> dict:
    add_log_context(user_id=user_id, tool=tool_name)
    try:
        spec = get_tool(tool_name)
        if spec is None:
            raise NotFoundError("Tool", f"Unknown tool: {tool_name}", {"tool": tool_name})

        try:
            parsed = spec.params_model.model_validate(params or {})
        except PydanticValidationError as e:
            raise validation_error_from(e) from e

        with user_context(user_id):
            async with session_factory() as session:
                async with transaction(session):
                    try:
                        result = await spec.handler(session, parsed)
                    except PydanticValidationError as e:
                        # models built inside a handler
                        raise validation_error_from(e) from e

        logger.info("tool_completed")
        return to_jsonable_python(result)
    except DomainError as exc:
        logger.warning("tool_failed", code=exc.code, error=exc.message)
        return domain_error_payload(exc)
    except SQLAlchemyError as exc:
        logger.error("tool_storage_error", error_type=exc.__class__.__name__)
        return domain_error_payload(StorageError(details={"reason": exc.__class__.__name__}))
    finally:
        clear_log_context()

from datetime import datetime, timezone
from http import HTTPStatus

from pydantic import ValidationError as PydanticValidationError

from gym_tracker.core.exceptions import (
    AuthorizationError,
    BusinessRuleError,
    ConflictError,
    DomainError,
    NotFoundError,
    StorageError,
    ValidationError,
)


ERROR_STATUS_MAP: dict[type[DomainError], int] = {
    NotFoundError: HTTPStatus.NOT_FOUND,
    ValidationError: HTTPStatus.BAD_REQUEST,
    BusinessRuleError: HTTPStatus.UNPROCESSABLE_ENTITY,
    ConflictError: HTTPStatus.CONFLICT,
    AuthorizationError: HTTPStatus.FORBIDDEN,
    StorageError: HTTPStatus.INTERNAL_SERVER_ERROR,
}


def status_for(exc: DomainError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS_MAP:
            return int(ERROR_STATUS_MAP[error_type])
    return int(HTTPStatus.INTERNAL_SERVER_ERROR)


def domain_error_payload(exc: DomainError) -> dict:
    """Structured JSON error for the tool boundary. Details are flattened next to `error`."""
    payload = {
        "error": exc.message,
        "code": exc.code,
        "status": status_for(exc),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    for key, value in exc.details.items():
        payload.setdefault(key, value)
    return payload


def validation_error_from(exc: PydanticValidationError) -> ValidationError:
    """First pydantic error as a domain ValidationError named after the offending field."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if not isinstance(part, int)]
    field = loc[0] if loc else "params"
    message = str(first.get("msg", "invalid input")).removeprefix("Value error, ")
    return ValidationError(field, message, {"field": field, "errors": len(errors)})

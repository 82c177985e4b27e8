"""Domain errors raised by services and turned into tool payloads by the dispatcher."""
import re


def _code_part(name: str) -> str:
    # "body measurement" -> "BODY_MEASUREMENT", "ProgramVersion" -> "PROGRAMVERSION"
    return re.sub(r"\W+", "_", name).strip("_").upper()


class DomainError(Exception):
    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(DomainError):
    """Missing row, or a row outside the caller's scope."""

    def __init__(self, entity: str, message: str | None = None, details: dict | None = None):
        super().__init__(f"NF_{_code_part(entity)}_001", message or f"{entity} not found", details)


class ValidationError(DomainError):
    """Bad input. Always raised before the first write of the call."""

    def __init__(self, field: str, message: str, details: dict | None = None):
        super().__init__(
            f"VAL_{_code_part(field)}_001",
            f"Validation failed for {field}: {message}",
            details or {"field": field},
        )


class BusinessRuleError(DomainError):
    def __init__(self, message: str, code: str = "BR_001", details: dict | None = None):
        super().__init__(code, message, details)


class ConflictError(DomainError):
    """E.g. an active session already exists; `details` carries its `session_id`."""

    def __init__(self, message: str, code: str = "CF_001", details: dict | None = None):
        super().__init__(code, message, details)


class AuthorizationError(DomainError):
    """Write attempted on a global row or on another user's exercise."""

    def __init__(self, message: str, code: str = "AUTH_006", details: dict | None = None):
        super().__init__(code, message, details)


class StorageError(DomainError):
    """Underlying transaction or connection failure. Raised after rollback."""

    def __init__(self, message: str = "Storage failure", code: str = "DB_001", details: dict | None = None):
        super().__init__(code, message, details)

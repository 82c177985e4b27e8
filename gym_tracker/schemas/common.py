"""Shared input coercions for tool parameters.

Some agent clients send nested arrays and objects as JSON-encoded strings,
and single names where a list is expected. These validators normalize both.
"""
import json
from datetime import date
from typing import Annotated, Any

from pydantic import BeforeValidator


def parse_json_value(value: Any) -> Any:
    """Decode a JSON-encoded array/object string; pass anything else through."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped[:1] in ("[", "{"):
            try:
                return json.loads(stripped)
            except json.JSONDecodeError:
                return value
    return value


def parse_string_list(value: Any) -> Any:
    """Accept a list, a JSON array string, or a single plain string."""
    value = parse_json_value(value)
    if isinstance(value, str):
        return [value]
    return value


def parse_date(value: Any) -> date:
    """Parse ISO 8601 date string."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise ValueError(f"Invalid date format: {value}. Use YYYY-MM-DD")
    raise ValueError(f"Expected date, got {type(value)}")


StringList = Annotated[list[str], BeforeValidator(parse_string_list)]
IsoDate = Annotated[date, BeforeValidator(parse_date)]


def require_name(value: str | None, label: str = "name") -> str | None:
    """Trim an exercise or day name. Whitespace-only names are rejected, None passes."""
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError(f"{label} must not be blank")
    return value

"""
Validation utilities for the portal API
"""

from typing import Any, Iterable, Mapping, Optional

from app.models.results import Err, ErrorKind, Ok, Result

REQUIRED_FIELD_MESSAGE = "This field is required"


def is_empty(value: Any) -> bool:
    """Missing-value test for required fields; 0 and False count as present"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict, tuple, set)):
        return len(value) == 0
    return False


def validate_required(data: Mapping[str, Any], fields: Iterable[str]) -> Result[Mapping[str, Any]]:
    """
    Check required fields
    Returns Ok(data), or a VALIDATION_ERROR with one
    `{field: "This field is required"}` entry per missing field
    """
    errors = {field: REQUIRED_FIELD_MESSAGE for field in fields if is_empty(data.get(field))}
    if errors:
        return Err(ErrorKind.VALIDATION_ERROR, "Validation failed", errors)
    return Ok(data)


def positive_int(value: Any) -> Optional[int]:
    """Parse a positive integer query parameter, None otherwise"""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None

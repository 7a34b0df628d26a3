"""Input validators shared by the planner and executor."""
import re
from typing import Any, Iterable, Pattern, Union


class ValidationError(ValueError):
    """Raised when a deployment request or execution input is invalid."""
    pass


def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Require a string with at least one non-whitespace character."""
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    if not value.strip():
        raise ValidationError(f"{field_name} cannot be empty")
    return value


def validate_string_list(values: Any, field_name: str) -> list:
    """Require a non-empty list (or tuple) of non-empty strings."""
    if not isinstance(values, (list, tuple)):
        raise ValidationError(f"{field_name} must be a list")
    if not values:
        raise ValidationError(f"{field_name} cannot be empty")
    for index, value in enumerate(values, start=1):
        validate_non_empty_string(value, f"{field_name} item {index}")
    return list(values)


def validate_pattern(
    value: str,
    pattern: Union[str, Pattern],
    field_name: str,
    hint: str = "",
) -> str:
    """Require value to fully match pattern."""
    if not re.fullmatch(pattern, value):
        message = f"Invalid {field_name}: {value!r}"
        if hint:
            message += f". {hint}"
        raise ValidationError(message)
    return value


def validate_in(value: str, allowed: Iterable[str], field_name: str) -> str:
    """Require value to be one of allowed."""
    allowed = list(allowed)
    if value not in allowed:
        raise ValidationError(
            f"{field_name} {value!r} is not allowed. "
            f"Available: {', '.join(allowed) if allowed else '(none)'}"
        )
    return value

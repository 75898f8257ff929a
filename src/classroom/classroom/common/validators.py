from __future__ import annotations

from typing import Optional

from ..core.exceptions import ValidationError


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required", field=field_name)
    return str(value).strip()


def require_max_length(value: Optional[str], field_name: str, max_len: int) -> Optional[str]:
    if value is not None and len(value) > max_len:
        raise ValidationError(f"{field_name} cannot exceed {max_len} characters", field=field_name)
    return value


def optional_text(value: Optional[str], field_name: str, max_len: int) -> Optional[str]:
    """Trim, map blank to None, enforce max length."""
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string", field=field_name)
    v = (value or "").strip() or None
    return require_max_length(v, field_name, max_len)


def require_int_range(value, field_name: str, min_value: int, max_value: int) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer", field=field_name)
    try:
        v = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer", field=field_name)
    if v != value and not isinstance(value, str):
        raise ValidationError(f"{field_name} must be an integer", field=field_name)
    if v < min_value or v > max_value:
        raise ValidationError(f"{field_name} must be between {min_value} and {max_value}", field=field_name)
    return v


def require_positive_id(value, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} is invalid", field=field_name)
    try:
        v = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} is invalid", field=field_name)
    if v != value and not isinstance(value, str):
        raise ValidationError(f"{field_name} is invalid", field=field_name)
    if v <= 0:
        raise ValidationError(f"{field_name} is invalid", field=field_name)
    return v

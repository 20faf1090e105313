from __future__ import annotations

import math
from typing import Any

from flask import request

from .errors import ValidationError


def require_text(payload: dict, key: str) -> str:
    """Return a stripped, non-blank string field or raise."""
    value = payload.get(key)
    if value is None:
        raise ValidationError(f"{key} is required")
    value = str(value).strip()
    if not value:
        raise ValidationError(f"{key} cannot be blank")
    return value


def optional_text(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def coerce_id(value: Any, field: str) -> int:
    """
    Strict integer id validation.

    Rejects bools, floats, blanks and non-positive values.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or not stripped.isdigit():
            raise ValidationError(f"{field} must be an integer")
        parsed = int(stripped)
    else:
        raise ValidationError(f"{field} must be an integer")
    if parsed <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return parsed


def coerce_number(value: Any, field: str) -> float:
    """
    Real-number validation for quantities and prices.

    Fractional values are allowed (weight-based units); bools, NaN and
    infinities are not.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, (int, float)):
        parsed = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        try:
            parsed = float(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")
    if math.isnan(parsed) or math.isinf(parsed):
        raise ValidationError(f"{field} must be a finite number")
    return parsed


def coerce_positive(value: Any, field: str) -> float:
    parsed = coerce_number(value, field)
    if parsed <= 0:
        raise ValidationError(f"{field} must be > 0")
    return parsed


def coerce_non_negative(value: Any, field: str) -> float:
    parsed = coerce_number(value, field)
    if parsed < 0:
        raise ValidationError(f"{field} must be >= 0")
    return parsed


def require_list(value: Any, field: str, *, allow_empty: bool = False) -> list:
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list")
    if not value and not allow_empty:
        raise ValidationError(f"{field} must contain at least one entry")
    for index, entry in enumerate(value):
        if not isinstance(entry, dict):
            raise ValidationError(f"{field}[{index}] must be an object")
    return value


def json_object_body() -> dict:
    """Request JSON as a dict; a missing or unparsable body reads as {}."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data

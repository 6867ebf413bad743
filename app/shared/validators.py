"""Shared validation utilities"""

import math
import re
from typing import Any, Iterable, Mapping, Optional

from .exceptions import ValidationError

ADDRESS_REQUIRED_FIELDS = ("address", "contactName", "phone", "city", "postalCode")


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def require_non_blank_fields(
    data: Optional[Mapping[str, Any]], field_name: str, required: Iterable[str] = ADDRESS_REQUIRED_FIELDS
) -> dict:
    """
    Check that every required sub-field of an embedded object is present and non-blank.

    Returns a trimmed copy of the mapping. Raises ValidationError naming the
    first offending field, e.g. ``pickupAddress.city``.
    """
    if not data or not isinstance(data, Mapping):
        raise ValidationError(f"{field_name} is required and must be an object", field=field_name)

    cleaned = {}
    for key in required:
        value = data.get(key)
        if value is None or not str(value).strip():
            raise ValidationError(
                f"{field_name}.{key} is required and cannot be empty", field=f"{field_name}.{key}"
            )
        cleaned[key] = str(value).strip()

    for key, value in data.items():
        if key not in cleaned:
            cleaned[key] = value.strip() if isinstance(value, str) else value
    return cleaned


def validate_positive_weight(weight: Any) -> float:
    """Weight must be a finite number greater than zero"""
    try:
        value = float(weight)
    except (TypeError, ValueError):
        raise ValidationError("weight is required and must be greater than 0", field="weight")
    if not math.isfinite(value) or value <= 0:
        raise ValidationError("weight is required and must be greater than 0", field="weight")
    return value


def validate_choice(value: Any, choices: Iterable[str], field_name: str) -> str:
    """Check enum membership against the raw string values"""
    allowed = [str(c) for c in choices]
    raw = getattr(value, "value", value)
    if raw not in allowed:
        raise ValidationError(
            f"Invalid {field_name}: {raw}. Must be one of: {', '.join(allowed)}",
            field=field_name,
        )
    return raw


def validate_insurance_value(value: Any) -> Optional[float]:
    """Declared insurance value: optional, finite and not negative"""
    if value is None:
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError("insuranceValue must be a number", field="insuranceValue")
    if not math.isfinite(amount):
        raise ValidationError("insuranceValue must be a finite number", field="insuranceValue")
    if amount < 0:
        raise ValidationError("insuranceValue cannot be negative", field="insuranceValue")
    return amount

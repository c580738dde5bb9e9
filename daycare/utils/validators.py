"""Request payload validation helpers shared by the blueprints."""
import re
from typing import Any, Dict, Iterable, List, Optional

from daycare.exceptions import BadRequestError

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
SUBDOMAIN_PATTERN = re.compile(r'^[a-z0-9-]+$')
STRONG_PASSWORD_PATTERN = re.compile(r'^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)')


def is_valid_email(email: str) -> bool:
    """Validate email format."""
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def is_valid_subdomain(subdomain: str) -> bool:
    return bool(subdomain) and len(subdomain) >= 3 and SUBDOMAIN_PATTERN.match(subdomain) is not None


def password_errors(password: str, min_length: int = 8) -> List[str]:
    errors = []
    if not password or len(password) < min_length:
        errors.append(f'Password must be at least {min_length} characters long')
    elif not STRONG_PASSWORD_PATTERN.match(password):
        errors.append(
            'Password must contain at least one uppercase letter, one lowercase letter, and one number'
        )
    return errors


def get_json_body() -> Dict[str, Any]:
    """Parsed JSON object of the current request (400 when it isn't one)."""
    from flask import request

    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise BadRequestError('Request body must be a JSON object')
    return data


def clean_str(data: Dict[str, Any], key: str) -> Optional[str]:
    """Stripped string value or None when absent/blank."""
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    return value.strip() or None


def missing_fields(data: Dict[str, Any], fields: Iterable[str]) -> List[str]:
    errors = []
    for field in fields:
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors.append(f'{field} is required')
    return errors


def non_string_fields(data: Dict[str, Any], fields: Iterable[str]) -> List[str]:
    """Errors for present values that are not JSON strings."""
    return [
        f'{field} must be a string'
        for field in fields
        if data.get(field) is not None and not isinstance(data[field], str)
    ]


def optional_bool(data: Dict[str, Any], key: str) -> Optional[bool]:
    """
    Boolean flag from the payload; None when the key is absent.

    Raises:
        BadRequestError: If the value is present but not a JSON boolean
    """
    if key not in data or data[key] is None:
        return None
    value = data[key]
    if not isinstance(value, bool):
        raise BadRequestError(f'{key} must be a boolean')
    return value


def check_choice(value: Optional[str], choices, field: str) -> List[str]:
    allowed = [c.value for c in choices]
    if value not in allowed:
        return [f"{field} must be one of: {', '.join(allowed)}"]
    return []


def raise_if_errors(errors: List[str]):
    if errors:
        raise BadRequestError(', '.join(errors), payload={'errors': errors})

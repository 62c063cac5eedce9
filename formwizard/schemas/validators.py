"""Primitive value checks used by the wizard rule engine.

Each `validate_*` function either returns the normalised value or raises
ValueError. The rule engine (services/validation.py) turns those failures
into per-field messages; nothing here knows about fields or messages.
"""

import re
from datetime import date, datetime
from typing import Any


# Regex patterns
EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
PHONE_REGEX = re.compile(r"^\+?[1-9]\d{1,14}$")  # E.164 format
URL_REGEX = re.compile(
    r"^https?://"  # http:// or https://
    r"(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,6}\.?|"  # domain
    r"localhost|"  # localhost
    r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})"  # IP
    r"(?::\d+)?"  # optional port
    r"(?:/?|[/?]\S+)$",
    re.IGNORECASE,
)
ALPHA_REGEX = re.compile(r"^[^\W\d_]+$")
ALPHA_NUM_REGEX = re.compile(r"^[^\W_]+$")
ALPHA_DASH_REGEX = re.compile(r"^[\w-]+$")
INTEGER_REGEX = re.compile(r"^[+-]?\d+$")

TRUE_VALUES = {True, 1, "1", "true", "on", "yes"}
FALSE_VALUES = {False, 0, "0", "false", "off", "no"}
ACCEPTED_VALUES = {True, 1, "1", "true", "on", "yes"}


def is_empty(value: Any) -> bool:
    """True for None, blank strings and empty collections."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _normalise_token(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def validate_integer(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("Booleans are not integers")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and INTEGER_REGEX.match(value.strip()):
        return int(value.strip())
    raise ValueError("Not an integer")


def validate_numeric(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError("Booleans are not numbers")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise ValueError("Not a number") from None
    raise ValueError("Not a number")


def validate_boolean(value: Any) -> bool:
    token = _normalise_token(value)
    if token in TRUE_VALUES:
        return True
    if token in FALSE_VALUES:
        return False
    raise ValueError("Not a boolean")


def validate_accepted(value: Any) -> bool:
    if _normalise_token(value) not in ACCEPTED_VALUES:
        raise ValueError("Not accepted")
    return True


def validate_email(value: str) -> str:
    """Validate email address.

    Args:
        value: Email address

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email is invalid
    """
    if not isinstance(value, str):
        raise ValueError("Email must be a string")

    value = value.strip().lower()

    if len(value) > 254:  # RFC 5321
        raise ValueError("Email address too long")

    if not EMAIL_REGEX.match(value):
        raise ValueError("Invalid email address format")

    return value


def validate_phone(value: str) -> str:
    """Validate phone number (E.164 format).

    Spaces and dashes are stripped before matching.
    """
    if not isinstance(value, str):
        raise ValueError("Phone number must be a string")

    value = value.replace(" ", "").replace("-", "")

    if not PHONE_REGEX.match(value):
        raise ValueError("Invalid phone number format (use E.164: +1234567890)")

    return value


def validate_url(value: str) -> str:
    if not isinstance(value, str):
        raise ValueError("URL must be a string")

    value = value.strip()

    if not URL_REGEX.match(value):
        raise ValueError("Invalid URL format")

    return value


def validate_date(value: Any) -> date:
    """Accept date/datetime objects or ISO-8601 strings."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise ValueError("Invalid date") from None
    raise ValueError("Invalid date")


def validate_pattern(value: Any, pattern: re.Pattern) -> str:
    if not isinstance(value, str) or not pattern.search(value):
        raise ValueError("Value does not match pattern")
    return value


def measure(value: Any, numeric: bool = False) -> float:
    """Size of a value for min/max/between/size rules.

    Numbers (or numeric fields) measure by value, strings by character
    count, collections by length.
    """
    if numeric or (isinstance(value, (int, float)) and not isinstance(value, bool)):
        return validate_numeric(value)
    if isinstance(value, str):
        return len(value)
    if isinstance(value, (list, tuple, dict, set)):
        return len(value)
    raise ValueError("Value has no measurable size")

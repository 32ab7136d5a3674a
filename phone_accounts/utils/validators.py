"""
Field format validation for account input.

These checks run at the input boundary (HTTP request models and console
prompts) before any account operation is invoked.
"""

import re
from datetime import date, datetime, timezone
from typing import Optional

PHONE_NUMBER_LENGTH = 10
MAX_NAME_LENGTH = 50
MAX_GENDER_LENGTH = 20
MAX_AGE_YEARS = 150

_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z .'-]*$")


class FieldValidationError(ValueError):
    """Raised when a user-supplied field is malformed."""
    pass


def validate_name(value: str) -> str:
    """Validate a display name: letters plus space, dot, apostrophe or hyphen."""
    name = (value or "").strip()
    if not name:
        raise FieldValidationError("Name cannot be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise FieldValidationError(f"Name must be at most {MAX_NAME_LENGTH} characters")
    if not _NAME_PATTERN.match(name):
        raise FieldValidationError("Name may only contain letters, spaces, '.', \"'\" and '-'")
    return name


def validate_phone_number(value: str) -> str:
    """
    Normalize and validate a phone number.

    Common separators (spaces, dashes, dots, parentheses) are stripped; the
    remainder must be exactly ten digits.
    """
    cleaned = re.sub(r"[\s\-.()]", "", value or "")
    if not cleaned.isdigit() or len(cleaned) != PHONE_NUMBER_LENGTH:
        raise FieldValidationError(f"Phone number must contain exactly {PHONE_NUMBER_LENGTH} digits")
    return cleaned


def validate_date_of_birth(value, today: Optional[date] = None) -> date:
    """Parse a YYYY-MM-DD date of birth that is not in the future."""
    today = today or datetime.now(timezone.utc).date()
    if isinstance(value, datetime):
        parsed = value.date()
    elif isinstance(value, date):
        parsed = value
    elif not isinstance(value, str):
        raise FieldValidationError("Date of birth must be in YYYY-MM-DD format")
    else:
        try:
            parsed = date.fromisoformat(value.strip())
        except ValueError:
            raise FieldValidationError("Date of birth must be in YYYY-MM-DD format")

    if parsed > today:
        raise FieldValidationError("Date of birth cannot be in the future")
    if today.year - parsed.year > MAX_AGE_YEARS:
        raise FieldValidationError("Date of birth is too far in the past")
    return parsed


def validate_gender(value: str) -> str:
    gender = (value or "").strip()
    if not gender:
        raise FieldValidationError("Gender cannot be empty")
    if len(gender) > MAX_GENDER_LENGTH:
        raise FieldValidationError(f"Gender must be at most {MAX_GENDER_LENGTH} characters")
    return gender


def mask_phone_number(phone_number: str) -> str:
    """Mask all but the last four digits for logging."""
    if len(phone_number) <= 4:
        return "*" * len(phone_number)
    return "*" * (len(phone_number) - 4) + phone_number[-4:]

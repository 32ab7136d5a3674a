# Utilities module

from .validators import (
    FieldValidationError,
    mask_phone_number,
    validate_date_of_birth,
    validate_gender,
    validate_name,
    validate_phone_number,
)

__all__ = [
    "FieldValidationError",
    "mask_phone_number",
    "validate_date_of_birth",
    "validate_gender",
    "validate_name",
    "validate_phone_number",
]

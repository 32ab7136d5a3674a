"""
Tests for account models and field validation.
"""

from datetime import date, datetime, timezone
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from conftest import make_account
from phone_accounts.models.api_models import CreateAccountRequest, DeleteAccountRequest
from phone_accounts.models.internal_models import (
    ConfirmationAnswer,
    ProfileView,
    compute_age,
    format_registered_at,
    parse_confirmation
)
from phone_accounts.utils.validators import (
    FieldValidationError,
    mask_phone_number,
    validate_date_of_birth,
    validate_name,
    validate_phone_number
)


class TestAge:
    """Test cases for derived age."""

    @pytest.mark.parametrize("today,expected", [
        (date(2024, 1, 1), 34),
        (date(2023, 12, 31), 33),
        (date(1990, 1, 1), 0),
    ])
    def test_compute_age(self, today, expected):
        assert compute_age(date(1990, 1, 1), today) == expected

    def test_leap_day_birthday(self):
        assert compute_age(date(2000, 2, 29), date(2023, 2, 28)) == 22
        assert compute_age(date(2000, 2, 29), date(2023, 3, 1)) == 23

    def test_account_age_uses_utc_date(self):
        # 2024-01-01 05:00 local in UTC+14 is still Dec 31 in UTC
        with patch("phone_accounts.models.internal_models.utc_today", return_value=date(2023, 12, 31)):
            assert make_account().age == 33

    def test_profile_view_uses_given_day(self):
        profile = ProfileView.from_account(make_account(), date(2024, 3, 5))

        assert profile.age == 34
        assert profile.registered_display == "Mar 05, 2024 at 4:07 PM"


class TestFormatting:
    """Test cases for display formatting."""

    @pytest.mark.parametrize("value,expected", [
        (datetime(2024, 3, 5, 0, 5, tzinfo=timezone.utc), "Mar 05, 2024 at 12:05 AM"),
        (datetime(2024, 12, 25, 12, 30, tzinfo=timezone.utc), "Dec 25, 2024 at 12:30 PM"),
        (datetime(2024, 7, 4, 9, 0, tzinfo=timezone.utc), "Jul 04, 2024 at 9:00 AM"),
    ])
    def test_format_registered_at(self, value, expected):
        assert format_registered_at(value) == expected


class TestConfirmation:
    """Test cases for yes/no parsing."""

    @pytest.mark.parametrize("raw,expected", [
        ("y", ConfirmationAnswer.YES),
        (" YES ", ConfirmationAnswer.YES),
        ("n", ConfirmationAnswer.NO),
        ("No", ConfirmationAnswer.NO),
        ("maybe", None),
        ("", None),
        (None, None),
    ])
    def test_parse_confirmation(self, raw, expected):
        assert parse_confirmation(raw) is expected


class TestValidators:
    """Test cases for input field validators."""

    def test_phone_number_separators_are_stripped(self):
        assert validate_phone_number("(555) 123-4567") == "5551234567"
        assert validate_phone_number("555.123.4567") == "5551234567"

    @pytest.mark.parametrize("value", ["", "555123456", "55512345678", "555123456a", "+15551234567"])
    def test_phone_number_rejected(self, value):
        with pytest.raises(FieldValidationError):
            validate_phone_number(value)

    def test_name(self):
        assert validate_name("  Mary-Jane O'Neil ") == "Mary-Jane O'Neil"
        with pytest.raises(FieldValidationError):
            validate_name("R2D2")
        with pytest.raises(FieldValidationError):
            validate_name("A" * 51)

    def test_date_of_birth(self):
        today = date(2024, 3, 5)

        assert validate_date_of_birth("1990-01-01", today) == date(1990, 1, 1)
        assert validate_date_of_birth(today, today) == today
        with pytest.raises(FieldValidationError, match="future"):
            validate_date_of_birth("2024-03-06", today)
        with pytest.raises(FieldValidationError, match="too far"):
            validate_date_of_birth("1870-01-01", today)
        with pytest.raises(FieldValidationError, match="YYYY-MM-DD"):
            validate_date_of_birth("March 1st", today)

    @pytest.mark.parametrize("value", [19900101, None, ["1990-01-01"], {"year": 1990}])
    def test_date_of_birth_rejects_non_strings(self, value):
        with pytest.raises(FieldValidationError, match="YYYY-MM-DD"):
            validate_date_of_birth(value, date(2024, 3, 5))

    def test_mask_phone_number(self):
        assert mask_phone_number("5551234567") == "******4567"
        assert mask_phone_number("123") == "***"


class TestRequestModels:
    """Test cases for API request models."""

    def test_create_request_normalizes_fields(self):
        request = CreateAccountRequest(
            name=" Ada ",
            dateOfBirth="1990-01-01",
            phoneNumber="555 123 4567",
            gender=" F "
        )

        assert request.name == "Ada"
        assert request.dateOfBirth == date(1990, 1, 1)
        assert request.phoneNumber == "5551234567"
        assert request.gender == "F"

    def test_create_request_rejects_bad_phone(self):
        with pytest.raises(ValidationError):
            CreateAccountRequest(name="Ada", dateOfBirth="1990-01-01", phoneNumber="123", gender="F")

    def test_delete_request_length_limit(self):
        with pytest.raises(ValidationError):
            DeleteAccountRequest(confirmation="y" * 17)

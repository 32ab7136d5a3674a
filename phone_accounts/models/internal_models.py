"""Internal data models for the phone account service."""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional


def utc_today() -> date:
    """Calendar date in UTC, the reference day for derived ages."""
    return datetime.now(timezone.utc).date()


def compute_age(date_of_birth: date, today: date) -> int:
    """Full years elapsed between date_of_birth and today."""
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return max(years, 0)


def format_registered_at(value: datetime) -> str:
    """Format a registration timestamp as e.g. 'Mar 05, 2024 at 4:07 PM'."""
    hour = value.strftime("%I").lstrip("0") or "12"
    return f"{value:%b %d, %Y} at {hour}:{value:%M %p}"


@dataclass
class Account:
    """Internal account model, keyed by phone number."""

    phone_number: str  # Primary key - unique phone number
    name: str
    date_of_birth: date
    gender: str
    registered_at: datetime
    last_login_at: datetime

    @property
    def age(self) -> int:
        """Age on the current UTC date, derived from date_of_birth; never stored."""
        return self.age_on(utc_today())

    def age_on(self, today: date) -> int:
        return compute_age(self.date_of_birth, today)


@dataclass(frozen=True)
class ProfileView:
    """Read-only projection of an account for display."""

    name: str
    phone_number: str
    date_of_birth: date
    age: int
    gender: str
    registered_at: datetime
    registered_display: str

    @classmethod
    def from_account(cls, account: Account, today: date) -> "ProfileView":
        return cls(
            name=account.name,
            phone_number=account.phone_number,
            date_of_birth=account.date_of_birth,
            age=account.age_on(today),
            gender=account.gender,
            registered_at=account.registered_at,
            registered_display=format_registered_at(account.registered_at),
        )


class StoreResult(str, Enum):
    """Result of a mutating record store operation."""

    OK = "ok"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class CreateOutcome(str, Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    PERSISTENCE_FAILED = "persistence_failed"


class LoginOutcome(str, Enum):
    NOT_FOUND = "not_found"
    STILL_IN_SESSION = "still_in_session"
    CODE_SENT = "code_sent"
    VERIFIED_SUCCESS = "verified_success"
    VERIFIED_FAILURE = "verified_failure"
    RETRY = "retry"
    NO_PENDING_CHALLENGE = "no_pending_challenge"
    DELIVERY_FAILED = "delivery_failed"
    VERIFICATION_CANCELLED = "verification_cancelled"
    PERSISTENCE_FAILED = "persistence_failed"


class DeleteOutcome(str, Enum):
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    NOT_CONFIRMED = "not_confirmed"
    CONFIRMATION_REQUIRED = "confirmation_required"
    PERSISTENCE_FAILED = "persistence_failed"


class ConfirmationAnswer(str, Enum):
    YES = "yes"
    NO = "no"


_CONFIRMATION_VALUES = {
    "y": ConfirmationAnswer.YES,
    "yes": ConfirmationAnswer.YES,
    "n": ConfirmationAnswer.NO,
    "no": ConfirmationAnswer.NO,
}


def parse_confirmation(raw: Optional[str]) -> Optional[ConfirmationAnswer]:
    """
    Normalize a confirmation reply to yes/no.

    Returns None for anything that is not recognisably yes or no, so the
    caller can prompt again instead of picking a default.
    """
    if raw is None:
        return None
    return _CONFIRMATION_VALUES.get(raw.strip().lower())


@dataclass(frozen=True)
class LoginStep:
    """Outcome of a login step, with the attempts left on the pending challenge."""

    outcome: LoginOutcome
    attempts_remaining: int = 0

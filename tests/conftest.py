"""
Shared fixtures: an in-memory account store, a recording SMS channel and a
controllable clock.
"""

import re
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from phone_accounts.clients.sms_client import DeliveryResult
from phone_accounts.clients.supabase_client import (
    FIELD_COLUMNS,
    UPDATABLE_FIELDS,
    PersistenceError
)
from phone_accounts.models.internal_models import Account, StoreResult
from phone_accounts.services.account_service import AccountService
from phone_accounts.services.verification_service import VerificationService

PHONE = "5551234567"
START = datetime(2024, 3, 5, 16, 7, 0, tzinfo=timezone.utc)

_ATTRIBUTES = {
    "name": "name",
    "dateOfBirth": "date_of_birth",
    "gender": "gender",
    "lastLoginAt": "last_login_at",
}


class FakeClock:
    """Clock whose time only moves when a test advances it."""

    def __init__(self, start: datetime = START):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class InMemoryAccountRepository:
    """Dict-backed stand-in for AccountRepository with failure switches."""

    def __init__(self):
        self.rows: Dict[str, Account] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.updates: List[Tuple[str, str, object]] = []

    async def exists(self, phone_number: str) -> bool:
        if self.fail_reads:
            raise PersistenceError("store offline")
        return phone_number in self.rows

    async def get(self, phone_number: str) -> Optional[Account]:
        if self.fail_reads:
            raise PersistenceError("store offline")
        account = self.rows.get(phone_number)
        return replace(account) if account is not None else None

    async def insert(self, account: Account) -> StoreResult:
        if self.fail_writes:
            return StoreResult.FAILED
        if account.phone_number in self.rows:
            return StoreResult.CONFLICT
        self.rows[account.phone_number] = replace(account)
        return StoreResult.OK

    async def update_field(self, phone_number: str, field: str, value) -> StoreResult:
        if field not in FIELD_COLUMNS or field not in UPDATABLE_FIELDS:
            raise ValueError(f"Account field cannot be updated: {field}")
        if self.fail_writes:
            return StoreResult.FAILED
        if phone_number not in self.rows:
            return StoreResult.NOT_FOUND
        setattr(self.rows[phone_number], _ATTRIBUTES[field], value)
        self.updates.append((phone_number, field, value))
        return StoreResult.OK

    async def delete(self, phone_number: str) -> StoreResult:
        if self.fail_writes:
            return StoreResult.FAILED
        if self.rows.pop(phone_number, None) is None:
            return StoreResult.NOT_FOUND
        return StoreResult.OK


class FakeDatabaseManager:
    def __init__(self):
        self.accounts = InMemoryAccountRepository()
        self.healthy = True

    async def health_check(self) -> bool:
        return self.healthy


class RecordingSMSClient:
    """Records sent messages; can be told to fail."""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []
        self.fail_reason: Optional[str] = None

    async def send(self, destination: str, message: str) -> DeliveryResult:
        if self.fail_reason is not None:
            return DeliveryResult.failed(self.fail_reason)
        self.sent.append((destination, message))
        return DeliveryResult.delivered()

    @property
    def last_code(self) -> str:
        _, message = self.sent[-1]
        return re.search(r"(\S+)$", message).group(1)


def make_account(phone_number: str = PHONE, **overrides) -> Account:
    fields = dict(
        phone_number=phone_number,
        name="Ada",
        date_of_birth=date(1990, 1, 1),
        gender="F",
        registered_at=START,
        last_login_at=datetime(2000, 11, 24, 1, 1, 1, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return Account(**fields)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db():
    return FakeDatabaseManager()


@pytest.fixture
def sms():
    return RecordingSMSClient()


@pytest.fixture
def verification_service(sms, clock):
    return VerificationService(
        sms_client=sms,
        code_length=6,
        charset="0123456789",
        max_attempts=5,
        input_timeout=1.0,
        code_ttl_minutes=10,
        clock=clock
    )


@pytest.fixture
def account_service(db, verification_service, clock):
    return AccountService(
        db_manager=db,
        verification_service=verification_service,
        session_timeout_minutes=720,
        clock=clock
    )


def scripted_reader(*lines, sms: Optional[RecordingSMSClient] = None):
    """
    Build a code reader that replays lines, then aborts.

    The placeholder "<code>" is replaced with the last code sent through sms.
    """
    queue = list(lines)
    calls: List[int] = []

    async def read_code(attempts_remaining: int) -> Optional[str]:
        calls.append(attempts_remaining)
        if not queue:
            return None
        line = queue.pop(0)
        if line == "<code>" and sms is not None:
            return sms.last_code
        return line

    read_code.calls = calls
    return read_code

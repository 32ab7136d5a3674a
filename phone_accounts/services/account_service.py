"""
Account service for the phone account lifecycle.

This module provides the core business logic for:
- Account creation with phone number uniqueness
- Login gated by an SMS verification code, skipped while the session is live
- Account deletion behind an explicit yes/no confirmation
- Read-only profile views with the derived age

Every operation returns an outcome value. Store and delivery failures are
reported, never raised to the caller.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import AsyncIterator, Callable, Dict, Optional, Union

from phone_accounts.clients.supabase_client import DatabaseManager, PersistenceError
from phone_accounts.config import settings
from phone_accounts.models.internal_models import (
    Account,
    ConfirmationAnswer,
    CreateOutcome,
    DeleteOutcome,
    LoginOutcome,
    LoginStep,
    ProfileView,
    StoreResult,
    parse_confirmation,
)
from phone_accounts.services import session_tracker
from phone_accounts.services.exceptions import (
    ConflictError,
    DeliveryFailure,
    NotFoundError,
    PersistenceFailure,
)
from phone_accounts.services.verification_service import (
    ChallengeState,
    CodeReader,
    VerificationChallenge,
    VerificationResult,
    VerificationService,
)
from phone_accounts.utils.validators import mask_phone_number

logger = logging.getLogger(__name__)

_VERIFICATION_OUTCOMES = {
    VerificationResult.REJECTED: LoginOutcome.VERIFIED_FAILURE,
    VerificationResult.DELIVERY_FAILED: LoginOutcome.DELIVERY_FAILED,
    VerificationResult.CANCELLED: LoginOutcome.VERIFICATION_CANCELLED,
}


class KeyedLock:
    """
    One asyncio.Lock per key, dropped once nobody holds or waits for it.

    Operations on the same key run one at a time; different keys never
    block each other.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


class AccountService:
    """
    Account lifecycle controller.

    Orchestrates the record store, the session tracker and the verification
    service for create, login, delete and profile operations.
    """

    def __init__(
        self,
        db_manager: Optional[DatabaseManager] = None,
        verification_service: Optional[VerificationService] = None,
        session_timeout_minutes: Optional[int] = None,
        sentinel_last_login: Optional[datetime] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize account service.

        Args:
            db_manager: Database manager instance. If None, creates a new one.
            verification_service: Verification service. If None, creates a new one.
            session_timeout_minutes: Session window length
            sentinel_last_login: Initial last-login time for new accounts
            clock: Returns the current UTC time
        """
        self.db = db_manager or DatabaseManager()
        self.verification = verification_service or VerificationService()
        self.session_timeout_minutes = session_timeout_minutes or settings.session_timeout_minutes
        self.sentinel_last_login = sentinel_last_login or settings.sentinel_last_login
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._locks = KeyedLock()
        self._challenges: Dict[str, VerificationChallenge] = {}

        logger.info(f"Account service initialized with session timeout: {self.session_timeout_minutes} minutes")

    def now(self) -> datetime:
        return self._clock()

    async def create_account(
        self,
        name: str,
        date_of_birth: date,
        phone_number: str,
        gender: str
    ) -> CreateOutcome:
        """
        Create an account unless one already exists for the phone number.

        Fields are expected to be validated by the caller. The new account
        starts with the sentinel last-login time so the first login always
        requires verification.
        """
        masked = mask_phone_number(phone_number)
        async with self._locks.hold(phone_number):
            try:
                if await self.db.accounts.exists(phone_number):
                    raise ConflictError(f"Account {masked} already exists")

                account = Account(
                    phone_number=phone_number,
                    name=name,
                    date_of_birth=date_of_birth,
                    gender=gender,
                    registered_at=self.now(),
                    last_login_at=self.sentinel_last_login
                )
                result = await self.db.accounts.insert(account)
                if result is StoreResult.CONFLICT:
                    raise ConflictError(f"Account {masked} already exists")
                if result is not StoreResult.OK:
                    raise PersistenceFailure(f"Insert returned {result.value}")

            except ConflictError as e:
                logger.info(f"{e}, redirecting to login")
                return CreateOutcome.ALREADY_EXISTS
            except (PersistenceError, PersistenceFailure) as e:
                logger.error(f"Failed to create account {masked}: {e}")
                return CreateOutcome.PERSISTENCE_FAILED

        logger.info(f"Account {masked} created")
        return CreateOutcome.CREATED

    async def login(self, phone_number: str, read_code: CodeReader) -> LoginOutcome:
        """
        Log in interactively.

        Skips verification while the session window is open. Otherwise a
        code is sent and read_code is asked for submissions until the code
        matches or the attempt budget runs out. lastLoginAt only changes on
        an accepted code.
        """
        masked = mask_phone_number(phone_number)
        async with self._locks.hold(phone_number):
            try:
                account = await self._require_account(phone_number)
                if not self._session_expired(account):
                    logger.info(f"Account {masked} still in session")
                    return LoginOutcome.STILL_IN_SESSION

                result = await self.verification.verify(phone_number, read_code)
                if result is not VerificationResult.ACCEPTED:
                    logger.info(f"Login for {masked} ended with {result.value}")
                    return _VERIFICATION_OUTCOMES[result]

                await self._record_login(account)

            except NotFoundError:
                logger.info(f"Login failed, account {masked} not found")
                return LoginOutcome.NOT_FOUND
            except (PersistenceError, PersistenceFailure) as e:
                logger.error(f"Login for {masked} failed in the record store: {e}")
                return LoginOutcome.PERSISTENCE_FAILED

        logger.info(f"Account {masked} logged in")
        return LoginOutcome.VERIFIED_SUCCESS

    async def start_login(self, phone_number: str) -> LoginStep:
        """
        First step of a two-step login.

        Sends a code and keeps a pending challenge for the phone number,
        replacing any earlier one, unless the session is still open.
        """
        masked = mask_phone_number(phone_number)
        async with self._locks.hold(phone_number):
            try:
                account = await self._require_account(phone_number)
                if not self._session_expired(account):
                    logger.info(f"Account {masked} still in session")
                    return LoginStep(LoginOutcome.STILL_IN_SESSION)

                self._challenges.pop(phone_number, None)
                challenge = await self.verification.issue(phone_number)

            except NotFoundError:
                logger.info(f"Login failed, account {masked} not found")
                return LoginStep(LoginOutcome.NOT_FOUND)
            except DeliveryFailure as e:
                logger.warning(f"Login for {masked} could not send a code: {e.reason}")
                return LoginStep(LoginOutcome.DELIVERY_FAILED)
            except PersistenceError as e:
                logger.error(f"Login for {masked} failed in the record store: {e}")
                return LoginStep(LoginOutcome.PERSISTENCE_FAILED)

            self._challenges[phone_number] = challenge
            return LoginStep(LoginOutcome.CODE_SENT, challenge.attempts_remaining)

    async def submit_code(self, phone_number: str, code: str) -> LoginStep:
        """Second step of a two-step login: check one submitted code."""
        masked = mask_phone_number(phone_number)
        async with self._locks.hold(phone_number):
            challenge = self._challenges.get(phone_number)
            if challenge is None:
                return LoginStep(LoginOutcome.NO_PENDING_CHALLENGE)
            if challenge.is_stale(self.now()):
                logger.info(f"Pending challenge for {masked} expired")
                del self._challenges[phone_number]
                return LoginStep(LoginOutcome.NO_PENDING_CHALLENGE)

            state = challenge.submit(code)
            if state is ChallengeState.PROMPTING:
                return LoginStep(LoginOutcome.RETRY, challenge.attempts_remaining)

            del self._challenges[phone_number]
            if state is ChallengeState.REJECTED:
                logger.info(f"Verification attempts exhausted for {masked}")
                return LoginStep(LoginOutcome.VERIFIED_FAILURE)

            try:
                account = await self._require_account(phone_number)
                await self._record_login(account)
            except NotFoundError:
                return LoginStep(LoginOutcome.NOT_FOUND)
            except (PersistenceError, PersistenceFailure) as e:
                logger.error(f"Login for {masked} failed in the record store: {e}")
                return LoginStep(LoginOutcome.PERSISTENCE_FAILED)

        logger.info(f"Account {masked} logged in")
        return LoginStep(LoginOutcome.VERIFIED_SUCCESS)

    async def delete_account(
        self,
        phone_number: str,
        confirmation: Union[str, ConfirmationAnswer, None]
    ) -> DeleteOutcome:
        """
        Delete an account after an explicit yes.

        "no" leaves the account untouched. Anything that is neither yes nor
        no returns CONFIRMATION_REQUIRED so the caller asks again.
        """
        masked = mask_phone_number(phone_number)
        if isinstance(confirmation, ConfirmationAnswer):
            answer = confirmation
        else:
            answer = parse_confirmation(confirmation)

        async with self._locks.hold(phone_number):
            try:
                if not await self.db.accounts.exists(phone_number):
                    raise NotFoundError(f"Account {masked} not found")

                if answer is None:
                    return DeleteOutcome.CONFIRMATION_REQUIRED
                if answer is ConfirmationAnswer.NO:
                    logger.info(f"Deletion of {masked} not confirmed")
                    return DeleteOutcome.NOT_CONFIRMED

                result = await self.db.accounts.delete(phone_number)
                if result is StoreResult.NOT_FOUND:
                    raise NotFoundError(f"Account {masked} not found")
                if result is not StoreResult.OK:
                    raise PersistenceFailure(f"Delete returned {result.value}")

            except NotFoundError as e:
                logger.info(f"Delete failed: {e}")
                return DeleteOutcome.NOT_FOUND
            except (PersistenceError, PersistenceFailure) as e:
                logger.error(f"Failed to delete account {masked}: {e}")
                return DeleteOutcome.PERSISTENCE_FAILED

            self._challenges.pop(phone_number, None)

        logger.info(f"Account {masked} deleted")
        return DeleteOutcome.DELETED

    async def account_exists(self, phone_number: str) -> bool:
        """
        Raises:
            PersistenceFailure: if the record store cannot be read
        """
        try:
            return await self.db.accounts.exists(phone_number)
        except PersistenceError as e:
            raise PersistenceFailure(str(e))

    async def view_profile(self, phone_number: str) -> Optional[ProfileView]:
        """
        Read an account for display, or None if it does not exist.

        Raises:
            PersistenceFailure: if the record store cannot be read
        """
        try:
            account = await self.db.accounts.get(phone_number)
        except PersistenceError as e:
            raise PersistenceFailure(str(e))
        if account is None:
            return None
        return ProfileView.from_account(account, self.now().date())

    def pending_challenge(self, phone_number: str) -> Optional[VerificationChallenge]:
        return self._challenges.get(phone_number)

    async def _require_account(self, phone_number: str) -> Account:
        account = await self.db.accounts.get(phone_number)
        if account is None:
            raise NotFoundError(f"Account {mask_phone_number(phone_number)} not found")
        return account

    def _session_expired(self, account: Account) -> bool:
        return session_tracker.is_expired(account.last_login_at, self.now(), self.session_timeout_minutes)

    async def _record_login(self, account: Account) -> None:
        # lastLoginAt never moves backwards
        stamp = max(self.now(), account.last_login_at)
        result = await self.db.accounts.update_field(account.phone_number, "lastLoginAt", stamp)
        if result is StoreResult.NOT_FOUND:
            raise NotFoundError(f"Account {mask_phone_number(account.phone_number)} not found")
        if result is not StoreResult.OK:
            raise PersistenceFailure(f"Update returned {result.value}")
        account.last_login_at = stamp
        self._challenges.pop(account.phone_number, None)


# Global service instance
_account_service: Optional[AccountService] = None


def get_account_service() -> AccountService:
    """
    Get the global account service instance.

    Returns:
        AccountService: The global account service instance
    """
    global _account_service
    if _account_service is None:
        _account_service = AccountService()
    return _account_service

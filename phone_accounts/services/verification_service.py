"""
Verification service for one-time SMS login codes.

This module provides:
- Code generation from a configurable length and character set
- Delivery of the code through the SMS client
- A per-login challenge that adjudicates submitted codes against a
  bounded attempt budget
"""

import asyncio
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional

from phone_accounts.clients.sms_client import SMSClient
from phone_accounts.config import settings
from phone_accounts.services.exceptions import DeliveryFailure

logger = logging.getLogger(__name__)

MESSAGE_TEMPLATE = "Verification code is: {code}"

# Receives the number of attempts left, returns the next raw input line or
# None when the user aborts.
CodeReader = Callable[[int], Awaitable[Optional[str]]]


class ChallengeState(str, Enum):
    ISSUED = "issued"
    PROMPTING = "prompting"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class VerificationResult(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    DELIVERY_FAILED = "delivery_failed"
    CANCELLED = "cancelled"


class VerificationChallenge:
    """
    One issued code and the attempts made against it.

    The challenge starts in ISSUED, moves to PROMPTING on the first
    submission and ends in ACCEPTED on the first exact match or REJECTED
    once the attempt budget is spent. Only real submissions count, so a
    fresh challenge can never be accepted without input.
    """

    def __init__(
        self,
        phone_number: str,
        code: str,
        max_attempts: int,
        issued_at: datetime,
        ttl: Optional[timedelta] = None
    ):
        if not code:
            raise ValueError("Verification code must not be empty")
        if max_attempts <= 0:
            raise ValueError("max_attempts must be greater than 0")

        self.phone_number = phone_number
        self._code = code
        self.max_attempts = max_attempts
        self.issued_at = issued_at
        self.ttl = ttl
        self.attempts_used = 0
        self.state = ChallengeState.ISSUED

    @property
    def attempts_remaining(self) -> int:
        return self.max_attempts - self.attempts_used

    @property
    def is_finished(self) -> bool:
        return self.state in (ChallengeState.ACCEPTED, ChallengeState.REJECTED)

    def is_stale(self, now: datetime) -> bool:
        """True when the challenge has outlived its time-to-live."""
        if self.ttl is None:
            return False
        return now - self.issued_at >= self.ttl

    def submit(self, raw: str) -> ChallengeState:
        """
        Compare one submitted value against the issued code.

        Surrounding whitespace is trimmed; the comparison is otherwise exact
        and case-sensitive.

        Raises:
            ValueError: if the challenge is already decided
        """
        if self.is_finished:
            raise ValueError(f"Challenge already {self.state.value}")

        self.state = ChallengeState.PROMPTING
        self.attempts_used += 1

        candidate = (raw or "").strip()
        if hmac.compare_digest(candidate.encode("utf-8"), self._code.encode("utf-8")):
            self.state = ChallengeState.ACCEPTED
        elif self.attempts_used >= self.max_attempts:
            self.state = ChallengeState.REJECTED

        return self.state


class VerificationService:
    """Issues one-time codes and runs the prompt loop for a login."""

    def __init__(
        self,
        sms_client: Optional[SMSClient] = None,
        code_length: Optional[int] = None,
        charset: Optional[str] = None,
        max_attempts: Optional[int] = None,
        input_timeout: Optional[float] = None,
        code_ttl_minutes: Optional[int] = None,
        random_choice: Optional[Callable[[str], str]] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize verification service.

        Args:
            sms_client: Delivery channel. If None, creates a new one.
            code_length: Number of characters in a code
            charset: Characters codes are drawn from
            max_attempts: Submissions allowed per challenge
            input_timeout: Seconds to wait for each submission
            code_ttl_minutes: Lifetime of a pending challenge
            random_choice: Source of randomness, defaults to secrets.choice
            clock: Returns the current UTC time
        """
        self.sms_client = sms_client or SMSClient()
        self.code_length = code_length or settings.verification_code_length
        self.charset = charset or settings.verification_code_charset
        self.max_attempts = max_attempts or settings.verification_max_attempts
        self.input_timeout = input_timeout or settings.verification_input_timeout_seconds
        self.code_ttl = timedelta(minutes=code_ttl_minutes or settings.verification_code_ttl_minutes)
        self._choice = random_choice or secrets.choice
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def generate_code(self) -> str:
        return "".join(self._choice(self.charset) for _ in range(self.code_length))

    async def issue(self, phone_number: str) -> VerificationChallenge:
        """
        Generate a code and send it to the phone number.

        Raises:
            DeliveryFailure: if the SMS could not be sent
        """
        code = self.generate_code()
        result = await self.sms_client.send(phone_number, MESSAGE_TEMPLATE.format(code=code))
        if not result.ok:
            logger.warning(f"Verification code delivery failed: {result.reason}")
            raise DeliveryFailure(result.reason or "unknown delivery error")

        logger.info("Verification code issued")
        return VerificationChallenge(
            phone_number=phone_number,
            code=code,
            max_attempts=self.max_attempts,
            issued_at=self._clock(),
            ttl=self.code_ttl
        )

    async def verify(self, phone_number: str, read_code: CodeReader) -> VerificationResult:
        """
        Issue a code and prompt until it is accepted or the budget is spent.

        Each read is bounded by input_timeout; a timeout or an aborted read
        ends the loop as CANCELLED. Task cancellation propagates to the caller.
        """
        try:
            challenge = await self.issue(phone_number)
        except DeliveryFailure:
            return VerificationResult.DELIVERY_FAILED

        while not challenge.is_finished:
            try:
                raw = await asyncio.wait_for(read_code(challenge.attempts_remaining), timeout=self.input_timeout)
            except asyncio.TimeoutError:
                logger.info("Verification input timed out")
                return VerificationResult.CANCELLED

            if raw is None:
                logger.info("Verification aborted by user")
                return VerificationResult.CANCELLED

            state = challenge.submit(raw)
            if state is ChallengeState.PROMPTING:
                logger.info(f"Wrong verification code, {challenge.attempts_remaining} attempts left")

        if challenge.state is ChallengeState.ACCEPTED:
            return VerificationResult.ACCEPTED

        logger.info("Verification attempts exhausted")
        return VerificationResult.REJECTED

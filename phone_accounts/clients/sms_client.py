"""
Twilio SMS client for verification code delivery.

Sends a single message through the Twilio Messages REST endpoint. Delivery
is fire-and-report: there is no retry and no delivery receipt handling, the
caller only learns whether Twilio accepted the message.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a single send attempt."""

    ok: bool
    reason: Optional[str] = None

    @classmethod
    def delivered(cls) -> "DeliveryResult":
        return cls(ok=True)

    @classmethod
    def failed(cls, reason: str) -> "DeliveryResult":
        return cls(ok=False, reason=reason)


class SMSClient:
    """Client for sending text messages through Twilio."""

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        base_url: Optional[str] = None,
        country_code: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize SMS client.

        Args:
            account_sid: Twilio account SID (defaults to settings)
            auth_token: Twilio auth token (defaults to settings)
            from_number: Sender phone number (defaults to settings)
            base_url: Twilio REST API base URL
            country_code: Prefix applied to national numbers without one
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used by tests
        """
        self.account_sid = account_sid if account_sid is not None else settings.twilio_account_sid
        self.auth_token = auth_token if auth_token is not None else settings.twilio_auth_token
        self.from_number = from_number if from_number is not None else settings.twilio_phone_number
        self.base_url = (base_url or settings.twilio_api_base_url).rstrip("/")
        self.country_code = country_code if country_code is not None else settings.sms_country_code
        self.timeout = timeout or settings.sms_timeout_seconds
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/Accounts/{self.account_sid}/Messages.json"

    def to_e164(self, phone_number: str) -> str:
        """Prefix a national number with the configured country code."""
        if phone_number.startswith("+"):
            return phone_number
        return f"{self.country_code}{phone_number}"

    async def send(self, destination: str, message: str) -> DeliveryResult:
        """
        Send a text message.

        Args:
            destination: Recipient phone number
            message: Message body

        Returns:
            DeliveryResult; never raises for delivery problems
        """
        if not self.is_configured:
            logger.error("SMS delivery is not configured (missing Twilio credentials or sender number)")
            return DeliveryResult.failed("SMS delivery is not configured")

        payload = {
            "To": self.to_e164(destination),
            "From": self.from_number,
            "Body": message,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.messages_url,
                    data=payload,
                    auth=(self.account_sid, self.auth_token)
                )
                response.raise_for_status()

        except httpx.TimeoutException as e:
            logger.error(f"Timeout sending SMS: {e}")
            return DeliveryResult.failed(f"Timeout sending SMS: {e}")
        except httpx.HTTPStatusError as e:
            detail = _error_message(e.response)
            logger.error(f"SMS provider rejected message: {e.response.status_code} {detail}")
            return DeliveryResult.failed(f"SMS provider returned {e.response.status_code}: {detail}")
        except httpx.HTTPError as e:
            logger.error(f"Transport error sending SMS: {e}")
            return DeliveryResult.failed(f"Failed to reach SMS provider: {e}")

        logger.info("SMS accepted by provider")
        return DeliveryResult.delivered()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return str(body)[:200]

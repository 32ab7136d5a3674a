"""
Tests for the Twilio SMS client.
"""

from urllib.parse import parse_qs

import httpx
import pytest

from phone_accounts.clients.sms_client import DeliveryResult, SMSClient


def make_client(handler, **overrides):
    options = dict(
        account_sid="AC123",
        auth_token="token",
        from_number="+15550000000",
        base_url="https://sms.test/2010-04-01",
        country_code="+1",
        timeout=2.0,
        transport=httpx.MockTransport(handler)
    )
    options.update(overrides)
    return SMSClient(**options)


class TestSMSClient:
    """Test cases for SMSClient."""

    def test_to_e164(self):
        client = make_client(lambda request: httpx.Response(201))

        assert client.to_e164("5551234567") == "+15551234567"
        assert client.to_e164("+445551234567") == "+445551234567"

    @pytest.mark.asyncio
    async def test_send_posts_message(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers.get("Authorization")
            captured["form"] = parse_qs(request.content.decode())
            return httpx.Response(201, json={"sid": "SM1", "status": "queued"})

        result = await make_client(handler).send("5551234567", "Verification code is: 123456")

        assert result == DeliveryResult(ok=True)
        assert captured["url"] == "https://sms.test/2010-04-01/Accounts/AC123/Messages.json"
        assert captured["auth"].startswith("Basic ")
        assert captured["form"] == {
            "To": ["+15551234567"],
            "From": ["+15550000000"],
            "Body": ["Verification code is: 123456"],
        }

    @pytest.mark.asyncio
    async def test_provider_error_is_reported(self):
        def handler(request):
            return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})

        result = await make_client(handler).send("5551234567", "hi")

        assert not result.ok
        assert "400" in result.reason
        assert "Invalid 'To' Phone Number" in result.reason

    @pytest.mark.asyncio
    async def test_timeout_is_reported(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        result = await make_client(handler).send("5551234567", "hi")

        assert not result.ok
        assert "Timeout" in result.reason

    @pytest.mark.asyncio
    async def test_transport_error_is_reported(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = await make_client(handler).send("5551234567", "hi")

        assert not result.ok
        assert "Failed to reach SMS provider" in result.reason

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(201)

        result = await make_client(handler, auth_token="").send("5551234567", "hi")

        assert result == DeliveryResult(ok=False, reason="SMS delivery is not configured")
        assert calls == []

    @pytest.mark.asyncio
    async def test_no_retry_on_failure(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, text="unavailable")

        result = await make_client(handler).send("5551234567", "hi")

        assert not result.ok
        assert len(calls) == 1

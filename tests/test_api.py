"""
Tests for the HTTP endpoints.
"""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from conftest import PHONE, make_account
from phone_accounts.main import create_app
from phone_accounts.middleware import CORRELATION_HEADER
from phone_accounts.services.account_service import get_account_service

NEW_ACCOUNT = {
    "name": "Ada",
    "dateOfBirth": "1990-01-01",
    "phoneNumber": "555-123-4567",
    "gender": "F",
}


@pytest.fixture
def client(account_service):
    app = create_app(rate_limit_per_minute=100)
    app.dependency_overrides[get_account_service] = lambda: account_service
    return TestClient(app)


class TestHealth:
    """Test cases for service endpoints."""

    def test_health_check(self, client):
        response = client.get("/healthz")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"

    def test_security_and_correlation_headers(self, client):
        response = client.get(f"/api/v1/accounts/{PHONE}", headers={CORRELATION_HEADER: "req-42"})

        assert response.headers[CORRELATION_HEADER] == "req-42"
        assert response.headers["Cache-Control"] == "no-store"
        assert response.json()["correlation_id"] == "req-42"


class TestAccountEndpoints:
    """Test cases for account creation, profile and deletion."""

    def test_create_account(self, client, db):
        response = client.post("/api/v1/accounts", json=NEW_ACCOUNT)

        assert response.status_code == 201
        assert response.json()["status"] == "created"
        assert db.accounts.rows[PHONE].date_of_birth == date(1990, 1, 1)

    def test_create_duplicate_redirects_to_login(self, client, db):
        client.post("/api/v1/accounts", json=NEW_ACCOUNT)
        response = client.post("/api/v1/accounts", json=NEW_ACCOUNT)

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "AlreadyExists"
        assert "Log in instead" in body["message"]
        assert len(db.accounts.rows) == 1

    @pytest.mark.parametrize("field,value", [
        ("phoneNumber", "12345"),
        ("dateOfBirth", "01/01/1990"),
        ("dateOfBirth", "2999-01-01"),
        ("dateOfBirth", 19900101),
        ("dateOfBirth", None),
        ("name", ""),
        ("gender", "   "),
    ])
    def test_create_validation_errors(self, client, db, field, value):
        response = client.post("/api/v1/accounts", json={**NEW_ACCOUNT, field: value})

        assert response.status_code == 422
        assert db.accounts.rows == {}

    def test_create_store_failure(self, client, db):
        db.accounts.fail_writes = True

        response = client.post("/api/v1/accounts", json=NEW_ACCOUNT)

        assert response.status_code == 503
        assert response.json()["error"] == "PersistenceError"

    def test_view_profile(self, client, db):
        db.accounts.rows[PHONE] = make_account()

        response = client.get(f"/api/v1/accounts/{PHONE}")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Ada"
        assert data["age"] == 34
        assert data["registered"] == "Mar 05, 2024 at 4:07 PM"
        assert "lastLoginAt" not in data

    def test_view_profile_not_found(self, client):
        response = client.get(f"/api/v1/accounts/{PHONE}")

        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    def test_view_profile_bad_number(self, client):
        assert client.get("/api/v1/accounts/abc").status_code == 422

    def test_delete_requires_yes_or_no(self, client, db):
        db.accounts.rows[PHONE] = make_account()

        response = client.post(f"/api/v1/accounts/{PHONE}/delete", json={"confirmation": "maybe"})

        assert response.status_code == 422
        assert response.json()["error"] == "ConfirmationRequired"
        assert PHONE in db.accounts.rows

    def test_delete_declined(self, client, db):
        db.accounts.rows[PHONE] = make_account()

        response = client.post(f"/api/v1/accounts/{PHONE}/delete", json={"confirmation": "n"})

        assert response.status_code == 200
        assert response.json() == {"status": "not_confirmed", "message": "Account not deleted"}
        assert PHONE in db.accounts.rows

    def test_delete_confirmed(self, client, db):
        db.accounts.rows[PHONE] = make_account()

        response = client.post(f"/api/v1/accounts/{PHONE}/delete", json={"confirmation": "yes"})

        assert response.status_code == 200
        assert response.json()["status"] == "deleted"
        assert PHONE not in db.accounts.rows

    def test_delete_not_found(self, client):
        response = client.post(f"/api/v1/accounts/{PHONE}/delete", json={"confirmation": "yes"})

        assert response.status_code == 404


class TestLoginEndpoints:
    """Test cases for the two-step login."""

    def test_login_sends_code_then_verifies(self, client, db, sms, clock):
        client.post("/api/v1/accounts", json=NEW_ACCOUNT)

        response = client.post("/api/v1/login", json={"phoneNumber": PHONE})
        assert response.status_code == 200
        assert response.json()["status"] == "code_sent"
        assert response.json()["attemptsRemaining"] == 5

        response = client.post("/api/v1/login/verify", json={"phoneNumber": PHONE, "code": sms.last_code})
        assert response.status_code == 200
        assert response.json()["status"] == "verified_success"
        assert db.accounts.rows[PHONE].last_login_at == clock()

        clock.advance(minutes=1)
        response = client.post("/api/v1/login", json={"phoneNumber": PHONE})
        assert response.json()["status"] == "still_in_session"
        assert len(sms.sent) == 1

    def test_wrong_code_then_exhausted(self, client, db):
        db.accounts.rows[PHONE] = make_account()
        client.post("/api/v1/login", json={"phoneNumber": PHONE})

        statuses = [
            client.post("/api/v1/login/verify", json={"phoneNumber": PHONE, "code": "bad"}).status_code
            for _ in range(5)
        ]

        assert statuses == [401, 401, 401, 401, 403]
        assert db.accounts.updates == []

    def test_verify_without_login(self, client, db):
        db.accounts.rows[PHONE] = make_account()

        response = client.post("/api/v1/login/verify", json={"phoneNumber": PHONE, "code": "123456"})

        assert response.status_code == 404
        assert response.json()["error"] == "NoPendingChallenge"

    def test_login_unknown_number(self, client, sms):
        response = client.post("/api/v1/login", json={"phoneNumber": PHONE})

        assert response.status_code == 404
        assert sms.sent == []

    def test_login_delivery_failure(self, client, db, sms):
        db.accounts.rows[PHONE] = make_account()
        sms.fail_reason = "provider down"

        response = client.post("/api/v1/login", json={"phoneNumber": PHONE})

        assert response.status_code == 502
        assert response.json()["error"] == "DeliveryFailure"


def test_login_rate_limit(account_service, db):
    app = create_app(rate_limit_per_minute=2)
    app.dependency_overrides[get_account_service] = lambda: account_service
    client = TestClient(app)

    codes = [client.post("/api/v1/login", json={"phoneNumber": PHONE}).status_code for _ in range(3)]

    assert codes == [404, 404, 429]

"""
Unit tests for API v1 routes.

Tests run the real application factory over in-memory repositories; the
AuthService dependency is overridden so tests control the clock and the
email fakes.
"""

import json
from urllib.parse import unquote

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from listening_circle.api.dependencies import get_auth_service
from listening_circle.api.main import create_app
from listening_circle.domain.sessions import PROFILE_COOKIE, SESSION_COOKIE


@pytest.fixture
def app(settings, service) -> FastAPI:
    """Create test FastAPI application."""
    test_app = create_app(settings)
    test_app.state.pool = None
    test_app.dependency_overrides[get_auth_service] = lambda: service
    return test_app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create test client for the application."""
    return TestClient(app)


def send_code(client: TestClient, email: str = "jane@example.com"):
    return client.post("/v1/auth", json={"action": "send-code", "email": email})


def verify_code(client: TestClient, code: str, email: str = "jane@example.com"):
    return client.post("/v1/auth", json={"action": "verify-code", "email": email, "code": code})


def assert_error(response, status_code: int, kind: str) -> dict:
    assert response.status_code == status_code
    body = response.json()
    assert body["success"] is False
    assert body["error"] == kind
    assert isinstance(body["message"], str) and body["message"]
    return body


class TestSendCode:
    def test_send_code_returns_awaiting_code(self, client, email_sender) -> None:
        response = send_code(client)

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Verification code sent",
            "state": "awaiting_code",
        }
        assert email_sender.messages[0].to == "jane@example.com"

    def test_invalid_email_returns_400(self, client, email_sender) -> None:
        response = send_code(client, email="not-an-email")

        body = assert_error(response, 400, "validation_error")
        assert body["message"] == "Invalid email format"
        assert email_sender.messages == []

    def test_unknown_action_returns_400(self, client) -> None:
        response = client.post("/v1/auth", json={"action": "sign-in", "email": "jane@example.com"})

        body = assert_error(response, 400, "validation_error")
        assert body["message"] == "Invalid action"

    def test_rate_limit_returns_429(self, client) -> None:
        for _ in range(3):
            assert send_code(client).status_code == 200

        assert_error(send_code(client), 429, "rate_limited")

    def test_unconfigured_email_returns_503(self, app, make_service, code_repository) -> None:
        app.dependency_overrides[get_auth_service] = lambda: make_service(email_sender=None)

        response = send_code(TestClient(app))

        assert_error(response, 503, "service_unavailable")
        assert code_repository.all_codes("jane@example.com") == []


class TestVerifyCode:
    def test_new_user_gets_session_and_discount(self, client, email_sender) -> None:
        send_code(client)

        response = verify_code(client, email_sender.last_code())

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["isNewUser"] is True
        assert body["needsUsername"] is True
        assert body["state"] == "awaiting_profile"
        assert body["discountCode"] == "WELCOME20"
        assert body["discountPercent"] == 20
        assert body["user"]["email"] == "jane@example.com"
        assert "displayName" not in body["user"] or body["user"]["displayName"] is None

        assert client.cookies.get(SESSION_COOKIE).startswith(body["user"]["id"] + ":")
        profile = json.loads(unquote(client.cookies.get(PROFILE_COOKIE)))
        assert profile["id"] == body["user"]["id"]

    def test_session_cookie_is_http_only(self, client, email_sender) -> None:
        send_code(client)
        response = verify_code(client, email_sender.last_code())

        headers = response.headers.get_list("set-cookie")
        session_header = next(h for h in headers if h.startswith(f"{SESSION_COOKIE}="))
        profile_header = next(h for h in headers if h.startswith(f"{PROFILE_COOKIE}="))
        assert "HttpOnly" in session_header
        assert "HttpOnly" not in profile_header
        assert "Max-Age=2592000" in session_header
        assert "SameSite=lax" in session_header

    def test_wrong_code_returns_400_without_cookies(self, client, email_sender) -> None:
        send_code(client)
        wrong = "000000" if email_sender.last_code() != "000000" else "111111"

        response = verify_code(client, wrong)

        body = assert_error(response, 400, "invalid_or_expired_code")
        assert body["message"] == "Invalid or expired code"
        assert "set-cookie" not in response.headers

    def test_reused_code_returns_same_error(self, client, email_sender) -> None:
        send_code(client)
        code = email_sender.last_code()
        assert verify_code(client, code).status_code == 200

        response = verify_code(client, code)

        body = assert_error(response, 400, "invalid_or_expired_code")
        assert body["message"] == "Invalid or expired code"

    def test_malformed_code_returns_validation_error(self, client) -> None:
        response = verify_code(client, "12ab56")

        assert_error(response, 400, "validation_error")

    def test_non_ascii_digits_return_validation_error(self, client, email_sender) -> None:
        send_code(client)

        response = verify_code(client, "١٢٣٤٥٦")

        assert_error(response, 400, "validation_error")
        assert client.cookies.get(SESSION_COOKIE) is None


class TestProfile:
    def sign_in(self, client, email_sender, email="jane@example.com") -> None:
        send_code(client, email)
        assert verify_code(client, email_sender.last_code(), email).status_code == 200

    def test_complete_profile(self, client, email_sender, user_repository) -> None:
        self.sign_in(client, email_sender)

        response = client.post(
            "/v1/auth/profile",
            json={"displayName": "jane_99", "country": "GB", "equipment": "PM6C, PX4"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "complete"
        assert body["user"]["displayName"] == "jane_99"
        assert body["failedFields"] == []
        profile = json.loads(unquote(client.cookies.get(PROFILE_COOKIE)))
        assert profile["displayName"] == "jane_99"
        stored = user_repository.get_by_email("jane@example.com")
        assert stored.country == "GB"
        assert [entry.name for entry in user_repository.list_equipment(stored.id)] == ["PX4", "PM6C"]

    def test_without_session_returns_401(self, client) -> None:
        response = client.post("/v1/auth/profile", json={"displayName": "jane_99"})

        assert_error(response, 401, "not_authenticated")

    def test_taken_name_returns_409(self, client, email_sender) -> None:
        self.sign_in(client, email_sender, "john@example.com")
        client.post("/v1/auth/profile", json={"displayName": "jane_99"})

        self.sign_in(client, email_sender)
        response = client.post("/v1/auth/profile", json={"displayName": "JANE_99"})

        body = assert_error(response, 409, "conflict")
        assert body["message"] == "This display name is already taken"

    def test_invalid_name_returns_400(self, client, email_sender) -> None:
        self.sign_in(client, email_sender)

        response = client.post("/v1/auth/profile", json={"displayName": "no spaces"})

        assert_error(response, 400, "validation_error")


class TestSession:
    def test_me_without_cookie(self, client) -> None:
        response = client.get("/v1/auth/me")

        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_me_with_session(self, client, email_sender) -> None:
        send_code(client)
        verify_code(client, email_sender.last_code())

        body = client.get("/v1/auth/me").json()

        assert body["user"]["email"] == "jane@example.com"
        assert body["hasPassword"] is False

    def test_me_with_forged_cookie_clears_it(self, client) -> None:
        client.cookies.set(SESSION_COOKIE, "someone:a.b.c")

        response = client.get("/v1/auth/me")

        assert response.status_code == 200
        assert "user" not in response.json()
        headers = response.headers.get_list("set-cookie")
        assert any(h.startswith(f"{SESSION_COOKIE}=") for h in headers)

    def test_logout_clears_cookies(self, client, email_sender) -> None:
        send_code(client)
        verify_code(client, email_sender.last_code())

        response = client.post("/v1/auth/logout")

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert client.cookies.get(SESSION_COOKIE) is None
        assert client.get("/v1/auth/me").json() == {"success": True}

    def test_set_password(self, client, email_sender) -> None:
        send_code(client)
        verify_code(client, email_sender.last_code())

        response = client.post("/v1/account/password", json={"password": "listening-room"})

        assert response.status_code == 200
        assert client.get("/v1/auth/me").json()["hasPassword"] is True

    def test_short_password_returns_400(self, client, email_sender) -> None:
        send_code(client)
        verify_code(client, email_sender.last_code())

        response = client.post("/v1/account/password", json={"password": "short"})

        assert_error(response, 400, "validation_error")

    def test_set_password_requires_session(self, client) -> None:
        response = client.post("/v1/account/password", json={"password": "listening-room"})

        assert_error(response, 401, "not_authenticated")


class TestAccount:
    def sign_in(self, client, email_sender, email="jane@example.com") -> None:
        send_code(client, email)
        assert verify_code(client, email_sender.last_code(), email).status_code == 200

    def test_profile_reads_back_fields_and_equipment(self, client, email_sender) -> None:
        self.sign_in(client, email_sender)
        client.post(
            "/v1/auth/profile",
            json={"displayName": "jane_99", "fullName": "Jane Doe", "country": "GB", "equipment": "PM6C"},
        )

        response = client.get("/v1/account/profile")

        assert response.status_code == 200
        body = response.json()
        assert body["user"]["displayName"] == "jane_99"
        assert body["fullName"] == "Jane Doe"
        assert body["address"] is None
        assert body["country"] == "GB"
        assert body["hasPassword"] is False
        assert [item["name"] for item in body["equipment"]] == ["PM6C"]
        assert set(body["equipment"][0]) == {"id", "name", "createdAt"}

    def test_profile_requires_session(self, client) -> None:
        assert_error(client.get("/v1/account/profile"), 401, "not_authenticated")

    def test_update_profile_changes_only_given_fields(self, client, email_sender) -> None:
        self.sign_in(client, email_sender)
        client.put("/v1/account/profile", json={"fullName": "Jane Doe", "country": "GB"})

        response = client.put("/v1/account/profile", json={"country": "", "address": " 1 High Street "})

        assert response.status_code == 200
        body = response.json()
        assert body["fullName"] == "Jane Doe"
        assert body["address"] == "1 High Street"
        assert body["country"] is None
        assert client.get("/v1/account/profile").json()["address"] == "1 High Street"

    def test_update_profile_requires_session(self, client) -> None:
        response = client.put("/v1/account/profile", json={"country": "GB"})

        assert_error(response, 401, "not_authenticated")

    def test_add_list_and_remove_equipment(self, client, email_sender) -> None:
        self.sign_in(client, email_sender)

        added = client.post("/v1/account/equipment", json={"name": "  Acousta 115 "})
        client.post("/v1/account/equipment", json={"name": "PX4"})

        assert added.status_code == 201
        entry = added.json()["equipment"]
        assert entry["name"] == "Acousta 115"
        listed = client.get("/v1/account/equipment").json()
        assert sorted(item["name"] for item in listed["equipment"]) == ["Acousta 115", "PX4"]

        removed = client.delete(f"/v1/account/equipment/{entry['id']}")

        assert removed.status_code == 200
        assert removed.json() == {"success": True}
        names = [item["name"] for item in client.get("/v1/account/equipment").json()["equipment"]]
        assert names == ["PX4"]

    def test_blank_equipment_name_returns_400(self, client, email_sender) -> None:
        self.sign_in(client, email_sender)

        response = client.post("/v1/account/equipment", json={"name": "   "})

        body = assert_error(response, 400, "validation_error")
        assert body["message"] == "Equipment name is required"

    def test_remove_unknown_equipment_returns_404(self, client, email_sender) -> None:
        self.sign_in(client, email_sender)

        response = client.delete("/v1/account/equipment/999")

        body = assert_error(response, 404, "not_found")
        assert body["message"] == "Equipment not found"

    def test_cannot_remove_another_users_equipment(self, client, email_sender, user_repository) -> None:
        self.sign_in(client, email_sender, "john@example.com")
        johns = client.post("/v1/account/equipment", json={"name": "PM6C"}).json()["equipment"]

        self.sign_in(client, email_sender)
        response = client.delete(f"/v1/account/equipment/{johns['id']}")

        assert_error(response, 404, "not_found")
        john = user_repository.get_by_email("john@example.com")
        assert [entry.name for entry in user_repository.list_equipment(john.id)] == ["PM6C"]

    def test_equipment_requires_session(self, client) -> None:
        assert_error(client.get("/v1/account/equipment"), 401, "not_authenticated")
        assert_error(client.post("/v1/account/equipment", json={"name": "PM6C"}), 401, "not_authenticated")
        assert_error(client.delete("/v1/account/equipment/1"), 401, "not_authenticated")


class TestDiscountSignup:
    def test_sends_discount(self, client, email_sender, mailing_list, user_repository) -> None:
        response = client.post("/v1/newsletter/discount", json={"email": "visitor@example.com"})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Discount code sent! Check your email.",
            "discountCode": "WELCOME20",
            "discountPercent": 20,
            "subscribed": True,
        }
        assert mailing_list.subscriptions[0][1]["lead_type"] == "Discount Subscriber"
        assert user_repository.count() == 0

    def test_invalid_email_returns_400(self, client) -> None:
        response = client.post("/v1/newsletter/discount", json={"email": "nope"})

        body = assert_error(response, 400, "validation_error")
        assert body["message"] == "Invalid email"

    def test_email_failure_returns_503(self, app, make_service, failing_email_sender) -> None:
        app.dependency_overrides[get_auth_service] = lambda: make_service(email_sender=failing_email_sender)

        response = TestClient(app).post("/v1/newsletter/discount", json={"email": "visitor@example.com"})

        assert_error(response, 503, "service_unavailable")


def test_health_without_pool(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}

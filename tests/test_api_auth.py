"""HTTP-level tests for the auth blueprint and error envelope."""
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from identity.accounts import AccountStore

PREFIX = "/api/v1/auth"


def _register(client, username="alice", email="alice@x.com", password="Secret1!"):
    return client.post(f"{PREFIX}/register", json={
        "username": username,
        "email": email,
        "password": password,
        "confirm_password": password,
    })


@pytest.fixture
def activated(client, dispatcher):
    assert _register(client).status_code == 201
    token = dispatcher.last_token("activation")
    assert client.get(f"{PREFIX}/activate/{token}").status_code == 200


def _login(client, identifier="alice", password="Secret1!"):
    return client.post(f"{PREFIX}/login", json={"identifier": identifier, "password": password})


class TestRegisterAndActivate:
    def test_register_returns_public_fields(self, client):
        response = _register(client)

        assert response.status_code == 201
        user = response.get_json()["data"]["user"]
        assert user["username"] == "alice"
        assert user["is_active"] is False
        assert "password_hash" not in user and "password" not in user

    def test_duplicate_is_conflict(self, client):
        _register(client)
        response = _register(client, username="alice2")

        assert response.status_code == 409
        assert response.get_json()["error"] == "DUPLICATE_EMAIL"

    def test_validation_envelope(self, client):
        response = _register(client, username="a!", email="nope")

        body = response.get_json()
        assert response.status_code == 422
        assert body["error"] == "INVALID_INPUT"
        assert set(body["details"]) >= {"username", "email"}

    def test_activation_twice(self, client, dispatcher):
        _register(client)
        token = dispatcher.last_token("activation")

        first = client.get(f"{PREFIX}/activate/{token}")
        second = client.get(f"{PREFIX}/activate/{token}")

        assert first.get_json()["data"]["user"]["is_active"] is True
        assert second.status_code == 404
        assert second.get_json()["error"] == "TOKEN_NOT_FOUND_OR_USED"

    def test_tampered_activation_token(self, client, dispatcher):
        _register(client)
        token = dispatcher.last_token("activation")

        header, payload, _ = token.split(".")
        response = client.get(f"{PREFIX}/activate/{header}.{payload}.{'A' * 43}")

        assert response.status_code == 401
        assert response.get_json() == {"error": "INVALID_TOKEN", "message": "Invalid token", "status": 401}

    def test_dispatch_failure_is_dependency_error(self, client, dispatcher):
        dispatcher.fail = True
        response = _register(client)
        assert response.status_code == 502
        assert response.get_json()["error"] == "NOTIFICATION_FAILED"


class TestLoginFlow:
    def test_inactive_login_is_forbidden(self, client):
        _register(client)
        response = _login(client)
        assert response.status_code == 403
        assert response.get_json()["error"] == "ACCOUNT_INACTIVE"

    def test_login_sets_tokens_and_cookies(self, client, activated):
        response = _login(client)

        data = response.get_json()["data"]
        assert response.status_code == 200
        assert data["access_token"] and data["refresh_token"]
        cookies = " ".join(response.headers.getlist("Set-Cookie"))
        assert "access_token=" in cookies and "refresh_token=" in cookies
        assert "HttpOnly" in cookies

    def test_bad_credentials(self, client, activated):
        response = _login(client, password="WrongPass")
        assert response.status_code == 401
        assert response.get_json()["error"] == "INVALID_CREDENTIALS"

    def test_storage_failure_is_dependency_error(self, client):
        failure = OperationalError("SELECT 1", {}, Exception("db down"))
        with patch.object(AccountStore, "find_by_email_or_username", side_effect=failure):
            response = _login(client)

        assert response.status_code == 502
        assert response.get_json()["error"] == "STORAGE_ERROR"
        assert "db down" not in response.get_data(as_text=True)

    def test_login_requires_fields(self, client):
        response = client.post(f"{PREFIX}/login", json={})
        assert response.status_code == 422

    def test_me_with_bearer_header(self, client, activated):
        token = _login(client).get_json()["data"]["access_token"]

        response = client.get("/api/v1/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.get_json()["data"]["username"] == "alice"

    def test_me_without_token(self, client):
        response = client.get("/api/v1/me")
        assert response.status_code == 401
        assert response.get_json()["error"] == "NO_TOKEN"

    def test_me_with_garbage_token(self, client):
        response = client.get("/api/v1/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert response.get_json()["error"] == "INVALID_TOKEN"

    def test_whoami_is_optional(self, client):
        response = client.get("/api/v1/whoami")
        assert response.status_code == 200
        assert response.get_json()["data"] is None

    def test_refresh_with_body_then_logout(self, client, activated):
        refresh = _login(client).get_json()["data"]["refresh_token"]

        refreshed = client.post(f"{PREFIX}/refresh-token", json={"refresh_token": refresh})
        assert refreshed.status_code == 200
        rotated = refreshed.get_json()["data"]["refresh_token"]

        assert client.post(f"{PREFIX}/logout", json={"refresh_token": rotated}).status_code == 204
        again = client.post(f"{PREFIX}/refresh-token", json={"refresh_token": rotated})
        assert again.status_code == 401
        assert again.get_json()["error"] == "INVALID_REFRESH_TOKEN"

    def test_refresh_from_cookie(self, client, activated):
        _login(client)
        response = client.post(f"{PREFIX}/refresh-token")
        assert response.status_code == 200
        assert response.get_json()["data"]["access_token"]

    def test_logout_twice_is_not_an_error(self, client, activated):
        refresh = _login(client).get_json()["data"]["refresh_token"]
        assert client.post(f"{PREFIX}/logout", json={"refresh_token": refresh}).status_code == 204
        assert client.post(f"{PREFIX}/logout", json={"refresh_token": refresh}).status_code == 204


class TestPasswordResetFlow:
    def test_reset_flow(self, client, dispatcher, activated):
        assert client.post(f"{PREFIX}/forgot-password", json={"identifier": "alice@x.com"}).status_code == 200
        token = dispatcher.last_token("reset")

        response = client.post(
            f"{PREFIX}/reset-password/{token}",
            json={"password": "NewSecret1!", "confirm_password": "NewSecret1!"},
        )

        assert response.status_code == 200
        assert _login(client).status_code == 401
        assert _login(client, password="NewSecret1!").status_code == 200
        reused = client.post(f"{PREFIX}/reset-password/{token}", json={"password": "Other1234!"})
        assert reused.status_code == 404

    def test_forgot_unknown_account(self, client):
        response = client.post(f"{PREFIX}/forgot-password", json={"identifier": "ghost"})
        assert response.status_code == 404

    def test_forgot_unknown_account_concealed(self, client, app):
        app.config["CONCEAL_ACCOUNT_EXISTENCE"] = True
        response = client.post(f"{PREFIX}/forgot-password", json={"identifier": "ghost"})
        assert response.status_code == 200

    def test_resend_activation(self, client, dispatcher):
        _register(client)
        response = client.post(f"{PREFIX}/resend-activation", json={"identifier": "alice"})
        assert response.status_code == 200
        assert [m["kind"] for m in dispatcher.sent] == ["activation", "activation"]


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.get_json()["database"] == "ok"

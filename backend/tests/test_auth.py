"""
Authentication endpoint tests

Covers login and the session cookie, the authentication-status check, the
password-reset and email-verification OTP flows, and error translation.
"""

from datetime import datetime, timezone
from unittest.mock import patch

import jwt
import pytest
from fastapi import status
from fastapi.testclient import TestClient

from auth_system.auth.notifier import NotificationError
from auth_system.auth.otp_store import OtpPurpose
from tests import DEFAULT_PASSWORD, TEST_SECRET_KEY


def login(client, email="test@example.com", password=DEFAULT_PASSWORD):
    return client.post("/login", json={"email": email, "password": password})


class TestLogin:

    def test_login_success(self, client, create_user):
        create_user()

        response = login(client)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["email"] == "test@example.com"

        payload = jwt.decode(data["token"], TEST_SECRET_KEY, algorithms=["HS256"],
                             options={"verify_iss": False})
        assert payload["sub"] == "test@example.com"
        expires_in = payload["exp"] - datetime.now(timezone.utc).timestamp()
        assert 24 * 3600 - 60 < expires_in <= 24 * 3600

    def test_login_sets_session_cookie(self, client, create_user):
        create_user()

        response = login(client)

        cookie = response.headers["set-cookie"]
        assert cookie.startswith(f"jwt={response.json()['token']};")
        assert "HttpOnly" in cookie
        assert "Path=/" in cookie
        assert "Max-Age=86400" in cookie
        assert "SameSite=strict" in cookie
        assert "Secure" not in cookie

    def test_login_cookie_is_secure_in_production(self, test_settings, otp_store, notifier):
        from auth_system.main import create_app
        from tests import TestDataFactory

        test_settings.environment = "production"
        app = create_app(test_settings, otp_store=otp_store, notifier=notifier)
        with TestClient(app, base_url="https://testserver") as client:
            TestDataFactory.create_user(app.state.session_factory, app.state.password_manager)

            response = login(client)

        assert response.status_code == status.HTTP_200_OK
        assert "Secure" in response.headers["set-cookie"]

    def test_login_email_is_case_insensitive(self, client, create_user):
        create_user()

        response = login(client, email="Test@Example.COM")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["email"] == "test@example.com"

    def test_login_wrong_password(self, client, create_user):
        create_user()

        response = login(client, password="WrongPassword")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": True, "message": "Incorrect email or password"}
        assert "set-cookie" not in response.headers

    def test_login_unknown_email_is_indistinguishable(self, client, create_user):
        create_user()

        wrong_password = login(client, password="WrongPassword")
        unknown_email = login(client, email="nobody@example.com")

        assert unknown_email.status_code == wrong_password.status_code
        assert unknown_email.json() == wrong_password.json()

    def test_login_disabled_account(self, client, create_user):
        create_user(is_active=False)

        response = login(client)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"error": True, "message": "Account is disabled"}
        assert "set-cookie" not in response.headers

    def test_disabled_account_with_wrong_password_reveals_nothing(self, client, create_user):
        create_user(is_active=False)

        response = login(client, password="WrongPassword")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Incorrect email or password"

    def test_login_unexpected_failure_is_generic(self, client, create_user):
        create_user()

        with patch("auth_system.auth.credentials.CredentialVerifier.authenticate",
                   side_effect=RuntimeError("db exploded")):
            response = login(client)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"error": True, "message": "Authentication Failed"}

    @pytest.mark.parametrize("body", [
        {"email": "test@example.com"},
        {"password": DEFAULT_PASSWORD},
        {"email": "not-an-email", "password": DEFAULT_PASSWORD},
    ])
    def test_login_invalid_body(self, client, body):
        response = client.post("/login", json=body)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] is True


class TestIsAuthenticated:

    def test_anonymous(self, client):
        response = client.get("/is-authenticated")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() is False

    def test_after_login_cookie(self, client, create_user):
        create_user()
        login(client)

        response = client.get("/is-authenticated")

        assert response.json() is True

    def test_bearer_header(self, client, create_user):
        create_user()
        token = login(client).json()["token"]
        client.cookies.clear()

        response = client.get("/is-authenticated",
                              headers={"Authorization": f"Bearer {token}"})

        assert response.json() is True

    def test_bearer_header_used_when_cookie_is_stale(self, client, create_user):
        create_user()
        token = login(client).json()["token"]
        client.cookies.set("jwt", "expired-or-garbage")

        response = client.get("/is-authenticated",
                              headers={"Authorization": f"Bearer {token}"})

        assert response.json() is True

    def test_invalid_cookie(self, client):
        client.cookies.set("jwt", "garbage")

        response = client.get("/is-authenticated")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() is False

    def test_logout_clears_cookie(self, client, create_user):
        create_user()
        login(client)

        response = client.post("/logout")

        assert response.status_code == status.HTTP_200_OK
        assert 'jwt=""' in response.headers["set-cookie"]
        assert client.get("/is-authenticated").json() is False


class TestPasswordReset:

    def test_full_reset_flow(self, client, create_user, notifier):
        create_user()

        response = client.post("/send-reset-otp", params={"email": "test@example.com"})
        assert response.status_code == status.HTTP_200_OK
        assert response.content == b""

        code = notifier.last_code("test@example.com", OtpPurpose.RESET)
        response = client.post("/reset-password", json={
            "email": "test@example.com",
            "otp": code,
            "newPassword": "BrandNewPassword1!"
        })
        assert response.status_code == status.HTTP_200_OK
        assert response.content == b""

        assert login(client, password=DEFAULT_PASSWORD).status_code == status.HTTP_400_BAD_REQUEST
        assert login(client, password="BrandNewPassword1!").status_code == status.HTTP_200_OK

    def test_reset_code_is_single_use(self, client, create_user, notifier):
        create_user()
        client.post("/send-reset-otp", params={"email": "test@example.com"})
        code = notifier.last_code()
        body = {"email": "test@example.com", "otp": code, "newPassword": "BrandNewPassword1!"}

        first = client.post("/reset-password", json=body)
        second = client.post("/reset-password", json=body)

        assert first.status_code == status.HTTP_200_OK
        assert second.status_code == status.HTTP_400_BAD_REQUEST
        assert second.json() == {"error": True, "message": "Invalid OTP"}

    def test_reset_with_wrong_code(self, client, create_user, get_user):
        create_user()
        client.post("/send-reset-otp", params={"email": "test@example.com"})
        before = get_user("test@example.com").password_hash

        response = client.post("/reset-password", json={
            "email": "test@example.com", "otp": "000000x", "newPassword": "BrandNewPassword1!"
        })

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Invalid OTP"
        assert get_user("test@example.com").password_hash == before

    def test_reset_with_expired_code(self, client, create_user, notifier, test_app):
        create_user()
        client.post("/send-reset-otp", params={"email": "test@example.com"})
        code = notifier.last_code()
        record = test_app.state.otp_manager.store.get("test@example.com", OtpPurpose.RESET)

        with patch.object(test_app.state.otp_manager, "_clock",
                          return_value=record.expires_at):
            response = client.post("/reset-password", json={
                "email": "test@example.com", "otp": code, "newPassword": "BrandNewPassword1!"
            })

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "OTP Expired"

    def test_reset_with_numeric_otp(self, client, create_user):
        create_user()
        with patch("auth_system.auth.otp_service.generate_otp", return_value="123456"):
            client.post("/send-reset-otp", params={"email": "test@example.com"})

        response = client.post("/reset-password", json={
            "email": "test@example.com", "otp": 123456, "newPassword": "BrandNewPassword1!"
        })

        assert response.status_code == status.HTTP_200_OK
        assert login(client, password="BrandNewPassword1!").status_code == status.HTTP_200_OK

    def test_reset_otp_for_unknown_email_looks_the_same(self, client, notifier):
        response = client.post("/send-reset-otp", params={"email": "ghost@example.com"})

        assert response.status_code == status.HTTP_200_OK
        assert notifier.sent == []

    def test_reset_otp_requires_email_param(self, client):
        response = client.post("/send-reset-otp")

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_reset_password_invalid_body(self, client):
        response = client.post("/reset-password", json={"email": "test@example.com", "otp": "1"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": True, "message": "Validation failed"}

    def test_delivery_failure_returns_generic_500(self, create_user, test_app, notifier):
        create_user()

        with TestClient(test_app, raise_server_exceptions=False) as client, \
                patch.object(notifier, "send_otp",
                             side_effect=NotificationError("smtp.internal:587 refused")):
            response = client.post("/send-reset-otp", params={"email": "test@example.com"})

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {"error": True, "message": "Internal server error"}
        assert "smtp" not in response.text


class TestEmailVerification:

    def test_send_otp_requires_authentication(self, client):
        response = client.post("/send-otp")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] is True

    def test_full_verification_flow(self, client, create_user, notifier, get_user):
        create_user()
        login(client)

        response = client.post("/send-otp")
        assert response.status_code == status.HTTP_200_OK

        code = notifier.last_code("test@example.com", OtpPurpose.VERIFY_EMAIL)
        response = client.post("/verify-otp", json={"otp": code})

        assert response.status_code == status.HTTP_200_OK
        assert get_user("test@example.com").is_account_verified is True

    def test_verified_account_gets_no_new_otp(self, client, create_user, notifier):
        create_user(is_account_verified=True)
        login(client)

        response = client.post("/send-otp")

        assert response.status_code == status.HTTP_200_OK
        assert notifier.sent == []

    @pytest.mark.parametrize("body", [{}, {"otp": None}, {"otp": "  "}, {"code": "123456"}])
    def test_verify_otp_missing_details(self, client, create_user, test_app, body):
        create_user()
        login(client)

        with patch.object(test_app.state.otp_manager, "validate") as validate:
            response = client.post("/verify-otp", json=body)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": True, "message": "Missing details"}
        validate.assert_not_called()

    def test_verify_otp_without_body(self, client, create_user):
        create_user()
        login(client)

        response = client.post("/verify-otp")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Missing details"

    def test_verify_otp_requires_authentication(self, client):
        response = client.post("/verify-otp", json={"otp": "123456"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_old_verification_code_is_invalidated(self, client, create_user, notifier, get_user):
        create_user()
        login(client)
        with patch("auth_system.auth.otp_service.generate_otp",
                   side_effect=["111111", "222222"]):
            client.post("/send-otp")
            client.post("/send-otp")
        assert notifier.last_code() == "222222"

        response = client.post("/verify-otp", json={"otp": "111111"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert get_user("test@example.com").is_account_verified is False

    def test_numeric_otp_is_accepted(self, client, create_user):
        create_user()
        login(client)
        with patch("auth_system.auth.otp_service.generate_otp", return_value="123456"):
            client.post("/send-otp")

        response = client.post("/verify-otp", json={"otp": 123456})

        assert response.status_code == status.HTTP_200_OK

    def test_delivery_failure_returns_generic_500(self, create_user, test_app, notifier):
        create_user()

        with TestClient(test_app, raise_server_exceptions=False) as client, \
                patch.object(notifier, "send_otp",
                             side_effect=NotificationError("smtp.internal:587 refused")):
            login(client)
            response = client.post("/send-otp")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {"error": True, "message": "Internal server error"}
        assert "smtp" not in response.text


class TestRegistrationAndProfile:

    def test_register_then_login(self, client):
        response = client.post("/register", json={
            "name": "New User", "email": "New@Example.com", "password": "Password123!"
        })

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json() == {
            "name": "New User", "email": "new@example.com", "isAccountVerified": False
        }
        assert login(client, email="new@example.com", password="Password123!").status_code == 200

    def test_register_duplicate_email(self, client, create_user):
        create_user()

        response = client.post("/register", json={
            "name": "Again", "email": "test@example.com", "password": "Password123!"
        })

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"] is True

    def test_profile(self, client, create_user):
        create_user(name="Profile User")
        login(client)

        response = client.get("/profile")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["name"] == "Profile User"

    def test_profile_requires_authentication(self, client):
        assert client.get("/profile").status_code == status.HTTP_401_UNAUTHORIZED


class TestApplication:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["database"] == "healthy"

    def test_security_headers(self, client):
        response = client.get("/is-authenticated")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Cache-Control"] == "no-store"

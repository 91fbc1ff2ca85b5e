"""Tests for session tokens, the auth context middleware and passcode login."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import jwt
import pytest

from compiler_api.adapters.storage.otp_store import InMemoryOtpStore
from compiler_api.core.auth import create_access_token, decode_access_token
from compiler_api.core.config import settings
from compiler_api.core.errors import AuthenticationAppError
from compiler_api.utils.otp import generate_otp


class TestTokens:
    def test_round_trip_subject(self) -> None:
        assert decode_access_token(create_access_token("user-1")) == "user-1"

    def test_expired_token_rejected(self) -> None:
        issued = datetime.now(timezone.utc) - timedelta(days=settings.auth.token_ttl_days + 1)
        token = create_access_token("user-1", now=issued)

        with pytest.raises(AuthenticationAppError) as exc_info:
            decode_access_token(token)
        assert exc_info.value.code == "token_expired"

    def test_tampered_token_rejected(self) -> None:
        token = jwt.encode({"sub": "user-1", "exp": 4102444800}, "another-secret", algorithm="HS256")

        with pytest.raises(AuthenticationAppError) as exc_info:
            decode_access_token(token)
        assert exc_info.value.code == "token_invalid"

    def test_token_without_subject_rejected(self) -> None:
        token = jwt.encode({"exp": 4102444800}, settings.auth.jwt_secret, algorithm="HS256")

        with pytest.raises(AuthenticationAppError):
            decode_access_token(token)


class TestAuthContext:
    def test_protected_route_requires_session(self, client) -> None:
        resp = client.get("/api/user/profile")

        assert resp.status_code == 401
        assert resp.json()["message"] == "No token, authorization denied"

    def test_invalid_cookie_is_anonymous(self, client) -> None:
        client.cookies.set("token", "not-a-jwt")

        assert client.get("/api/user/profile").status_code == 401

    def test_bearer_header_accepted(self, client, users) -> None:
        user = asyncio.run(users.create("api@example.com", is_verified=True))
        token = create_access_token(user.id)

        resp = client.get("/api/user/profile", headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 200
        assert resp.json()["user"]["email"] == "api@example.com"

    def test_token_for_deleted_user_is_anonymous(self, client) -> None:
        client.cookies.set("token", create_access_token("ghost"))

        assert client.get("/api/user/profile").status_code == 401


class TestPasscodeLogin:
    def test_request_otp_sends_email(self, client, email_sender) -> None:
        resp = client.post("/api/auth/request-otp", json={"email": "dev@example.com"})

        assert resp.status_code == 200
        assert resp.json() == {"message": "OTP sent to your email", "email": "dev@example.com"}
        otp = email_sender.last_otp("dev@example.com")
        assert len(otp) == 6 and otp.isdigit()

    @pytest.mark.parametrize("payload", [{}, {"email": "not-an-email"}, {"email": ""}])
    def test_request_otp_rejects_bad_email(self, client, payload) -> None:
        resp = client.post("/api/auth/request-otp", json=payload)

        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid email address"

    def test_verify_otp_sets_session_cookie(self, client, email_sender, users) -> None:
        client.post("/api/auth/request-otp", json={"email": "dev@example.com"})
        otp = email_sender.last_otp("dev@example.com")

        resp = client.post("/api/auth/verify-otp", json={"email": "dev@example.com", "otp": otp})

        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Login successful"
        assert body["user"]["email"] == "dev@example.com"
        set_cookie = resp.headers["set-cookie"].lower()
        assert "httponly" in set_cookie
        assert "samesite=strict" in set_cookie
        assert client.get("/api/user/profile").status_code == 200

    def test_otp_is_single_use(self, client, email_sender) -> None:
        client.post("/api/auth/request-otp", json={"email": "dev@example.com"})
        otp = email_sender.last_otp("dev@example.com")
        attempt = {"email": "dev@example.com", "otp": otp}

        assert client.post("/api/auth/verify-otp", json=attempt).status_code == 200
        second = client.post("/api/auth/verify-otp", json=attempt)

        assert second.status_code == 401
        assert second.json()["message"] == "Invalid or expired OTP"

    def test_new_otp_replaces_pending_one(self, client, email_sender) -> None:
        client.post("/api/auth/request-otp", json={"email": "dev@example.com"})
        first = email_sender.last_otp("dev@example.com")
        client.post("/api/auth/request-otp", json={"email": "dev@example.com"})
        second = email_sender.last_otp("dev@example.com")

        if first != second:
            assert client.post(
                "/api/auth/verify-otp", json={"email": "dev@example.com", "otp": first}
            ).status_code == 401
        assert client.post(
            "/api/auth/verify-otp", json={"email": "dev@example.com", "otp": second}
        ).status_code == 200

    def test_verify_requires_both_fields(self, client) -> None:
        resp = client.post("/api/auth/verify-otp", json={"email": "dev@example.com"})

        assert resp.status_code == 400
        assert resp.json()["message"] == "Email and OTP are required"

    def test_logout_clears_cookie(self, client, email_sender) -> None:
        client.post("/api/auth/request-otp", json={"email": "dev@example.com"})
        otp = email_sender.last_otp("dev@example.com")
        client.post("/api/auth/verify-otp", json={"email": "dev@example.com", "otp": otp})
        assert client.get("/api/user/profile").status_code == 200

        resp = client.post("/api/auth/logout")

        assert resp.status_code == 200
        assert resp.json() == {"message": "Logged out successfully"}
        assert client.get("/api/user/profile").status_code == 401


class TestOtpStore:
    @pytest.mark.asyncio
    async def test_expired_passcode_rejected(self) -> None:
        clock = Mock(return_value=1000.0)
        store = InMemoryOtpStore(clock=clock)
        await store.issue("dev@example.com", "123456", ttl_seconds=600)

        clock.return_value = 1600.0
        assert await store.consume("dev@example.com", "123456") is False

    @pytest.mark.asyncio
    async def test_wrong_passcode_keeps_pending_one(self) -> None:
        store = InMemoryOtpStore()
        await store.issue("dev@example.com", "123456", ttl_seconds=600)

        assert await store.consume("dev@example.com", "654321") is False
        assert await store.consume("dev@example.com", "123456") is True


def test_generate_otp_digits() -> None:
    otp = generate_otp(6)
    assert len(otp) == 6 and otp.isdigit()
    with pytest.raises(ValueError):
        generate_otp(0)

"""HTTP behaviour of the admission gate (dependencies and middleware)."""

from unittest.mock import AsyncMock, patch

from compiler_api.core.config import settings
from compiler_api.core.rate_limit import build_rejection_response
from compiler_api.services.admission_service import AdmissionDecision

CODE = {"language": "python", "code": "print('hello')", "input": ""}


def peek(counter_store, key: str) -> int:
    entry = counter_store.fallback.get(key)
    return entry.count if entry else 0


def test_compile_guest_quota_returns_429_with_headers(client) -> None:
    for _ in range(5):
        assert client.post("/api/compiler/compile", json=CODE).status_code == 200

    resp = client.post("/api/compiler/compile", json=CODE)

    assert resp.status_code == 429
    body = resp.json()
    assert body["success"] is False
    assert body["message"] == "Too many compilation requests for guest."
    assert isinstance(body["retryAfter"], int)
    assert 0 < body["retryAfter"] <= 60
    assert resp.headers["Retry-After"] == str(body["retryAfter"])
    assert resp.headers["X-RateLimit-Limit"] == "5"
    assert resp.headers["X-RateLimit-Remaining"] == "0"
    assert "X-RateLimit-Reset" in resp.headers


def test_rejected_request_never_reaches_handler(client, judge) -> None:
    for _ in range(6):
        client.post("/api/compiler/compile", json=CODE)

    assert len(judge.submissions) == 5


def test_signed_in_users_get_larger_compile_quota(client, login) -> None:
    login()
    statuses = [client.post("/api/compiler/compile", json=CODE).status_code for _ in range(16)]

    assert statuses.count(200) == 15
    assert statuses[-1] == 429


def test_headers_can_be_disabled(client) -> None:
    with patch.object(settings.rate_limit, "include_headers", False):
        for _ in range(6):
            resp = client.post("/api/compiler/compile", json=CODE)

    assert resp.status_code == 429
    assert "Retry-After" not in resp.headers
    assert resp.json()["retryAfter"]


def test_global_switch_disables_all_limits(client) -> None:
    with patch.object(settings.rate_limit, "enabled", False):
        statuses = {client.post("/api/compiler/compile", json=CODE).status_code for _ in range(10)}

    assert statuses == {200}


def test_general_and_route_limits_stack(client, counter_store) -> None:
    client.post("/api/compiler/compile", json=CODE)

    assert peek(counter_store, "general_api:testclient") == 1
    assert peek(counter_store, "compile:testclient") == 1


def test_general_api_limit_applies_to_all_api_routes(client) -> None:
    for _ in range(100):
        assert client.get("/api/compiler/languages").status_code == 200

    resp = client.get("/api/compiler/languages")

    assert resp.status_code == 429
    assert resp.json()["message"] == "Too many requests. Slow down."


def test_health_is_never_limited(client) -> None:
    for _ in range(110):
        assert client.get("/api/health").status_code == 200


def test_otp_requests_limited_per_email(client) -> None:
    for _ in range(5):
        assert client.post("/api/auth/request-otp", json={"email": "dev@example.com"}).status_code == 200

    blocked = client.post("/api/auth/request-otp", json={"email": "DEV@example.com"})
    assert blocked.status_code == 429
    assert blocked.json()["message"] == "Too many OTP requests. Try again after 15 minutes."

    other = client.post("/api/auth/request-otp", json={"email": "other@example.com"})
    assert other.status_code == 200


def test_verify_otp_stacks_login_and_verify_limits(client) -> None:
    attempt = {"email": "dev@example.com", "otp": "000000"}
    statuses = [client.post("/api/auth/verify-otp", json=attempt).status_code for _ in range(6)]

    assert statuses[:5] == [401] * 5
    assert statuses[5] == 429
    assert client.post("/api/auth/verify-otp", json=attempt).json()["message"] == (
        "Too many login attempts. Try later."
    )


def test_snippet_mutations_limited_for_signed_in_users(client, login) -> None:
    login()
    payload = {"language": "python", "code": "x = 1"}
    statuses = [client.post("/api/user/snippets", json=payload).status_code for _ in range(31)]

    assert statuses[:30] == [201] * 30
    assert statuses[30] == 429


def test_sensitive_account_deletion_limited(app, client, login) -> None:
    app.state.snippet_service.delete_account = AsyncMock(return_value={"success": True})
    statuses = []
    for _ in range(4):
        # The route clears the session cookie, so sign the same user in again.
        login()
        statuses.append(client.delete("/api/user/sensitive/account").status_code)

    assert statuses[:3] == [200, 200, 200]
    assert statuses[3] == 429


def test_unknown_expiry_omits_timing_headers() -> None:
    decision = AdmissionDecision(
        allowed=False,
        policy="compile",
        key="1.2.3.4",
        count=6,
        quota=5,
        retry_after="unknown",
        payload={"success": False, "message": "Too many compilation requests.", "retryAfter": "unknown"},
    )

    resp = build_rejection_response(decision)

    assert resp.status_code == 429
    assert "Retry-After" not in resp.headers
    assert "X-RateLimit-Reset" not in resp.headers
    assert resp.headers["X-RateLimit-Limit"] == "5"

"""Session authentication.

Sessions are HS256 JWTs carried in an HttpOnly cookie (or an
``Authorization: Bearer`` header for API clients). The auth-context
middleware resolves the user once per request and stores it on
``request.state.user``; limiter policies and route dependencies read it from
there.

Design principles:
- Resolution is best-effort: a bad or expired token is an anonymous request
- Enforcement lives in ``require_user`` so public routes stay public
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

import jwt
from fastapi import Request, Response

from compiler_api.adapters.storage.base import User
from compiler_api.core.config import settings
from compiler_api.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


def create_access_token(user_id: str, *, now: datetime | None = None) -> str:
    """Sign a session token for ``user_id``."""

    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": issued_at,
        "exp": issued_at + timedelta(days=settings.auth.token_ttl_days),
    }
    return jwt.encode(payload, settings.auth.jwt_secret, algorithm=settings.auth.jwt_algorithm)


def decode_access_token(token: str) -> str:
    """Validate a session token and return its subject.

    Raises:
        AuthenticationAppError: If the token is malformed, tampered or expired.
    """
    try:
        payload = jwt.decode(
            token,
            settings.auth.jwt_secret,
            algorithms=[settings.auth.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationAppError(code="token_expired", message="Token is invalid or expired") from exc
    except jwt.PyJWTError as exc:
        raise AuthenticationAppError(code="token_invalid", message="Token is invalid or expired") from exc
    return str(payload["sub"])


def extract_token(request: Request) -> str | None:
    token = request.cookies.get(settings.auth.cookie_name)
    if token:
        return token
    authorization = request.headers.get("Authorization", "")
    if authorization.lower().startswith(BEARER_PREFIX):
        return authorization[len(BEARER_PREFIX):].strip() or None
    return None


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.auth.cookie_name,
        value=token,
        max_age=settings.auth.token_ttl_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.auth.cookie_secure,
        samesite="strict",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.auth.cookie_name,
        httponly=True,
        secure=settings.auth.cookie_secure,
        samesite="strict",
    )


async def auth_context_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Attach the session user (or None) to ``request.state.user``."""

    request.state.user = None
    token = extract_token(request)
    if token:
        try:
            user_id = decode_access_token(token)
            request.state.user = await request.app.state.users.get(user_id)
        except AuthenticationAppError as exc:
            logger.debug(
                "auth.token_rejected",
                extra={
                    "error_code": exc.code,
                    "token_hash": hashlib.sha256(token.encode()).hexdigest()[:16],
                },
            )
    return await call_next(request)


def get_optional_user(request: Request) -> User | None:
    return getattr(request.state, "user", None)


def require_user(request: Request) -> User:
    """FastAPI dependency for routes that need a session.

    Usage:
        @router.get("/profile")
        async def profile(user: User = Depends(require_user)): ...

    Raises:
        AuthenticationAppError: 401 when the request carries no valid session.
    """
    user = get_optional_user(request)
    if user is None:
        raise AuthenticationAppError(
            code="not_authenticated",
            message="No token, authorization denied",
        )
    return user

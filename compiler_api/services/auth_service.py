"""Passwordless login with emailed one-time passcodes."""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Any

from compiler_api.adapters.email.base import AbstractEmailSender
from compiler_api.adapters.storage.base import AbstractUserRepository, User, utcnow
from compiler_api.adapters.storage.otp_store import AbstractOtpStore
from compiler_api.core.auth import create_access_token
from compiler_api.core.config import settings
from compiler_api.core.errors import AuthenticationAppError, ValidationAppError
from compiler_api.utils.otp import generate_otp

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")

OTP_EMAIL_SUBJECT = "Your OTP for Online Compiler"


def _email_hash(email: str) -> str:
    return hashlib.sha256(email.encode()).hexdigest()[:16]


def render_otp_email(otp: str, ttl_seconds: int) -> str:
    minutes = max(1, ttl_seconds // 60)
    return (
        '<div style="font-family: Arial, sans-serif; padding: 20px;">'
        "<h2>Online Compiler - OTP Verification</h2>"
        "<p>Your One-Time Password (OTP) is:</p>"
        f'<h1 style="color: #4CAF50; font-size: 32px; letter-spacing: 5px;">{otp}</h1>'
        f"<p>This OTP will expire in {minutes} minutes.</p>"
        "<p>If you didn't request this, please ignore this email.</p>"
        "</div>"
    )


class AuthService:
    """Issues and verifies passcodes, and opens sessions."""

    def __init__(
        self,
        users: AbstractUserRepository,
        otps: AbstractOtpStore,
        email_sender: AbstractEmailSender,
    ) -> None:
        self.users = users
        self.otps = otps
        self.email_sender = email_sender

    async def request_otp(self, email: str | None) -> dict[str, Any]:
        """Issue a fresh passcode for ``email``, replacing any pending one.

        Raises:
            ValidationAppError: If the address is missing or malformed.
        """
        if not email or not EMAIL_PATTERN.match(email):
            raise ValidationAppError(code="invalid_email", message="Invalid email address")

        otp = generate_otp(settings.auth.otp_length)
        await self.otps.issue(email, otp, settings.auth.otp_ttl_seconds)
        await self.email_sender.send(
            to=email,
            subject=OTP_EMAIL_SUBJECT,
            html=render_otp_email(otp, settings.auth.otp_ttl_seconds),
        )
        logger.info("auth.otp_issued", extra={"email_hash": _email_hash(email)})
        return {"message": "OTP sent to your email", "email": email}

    async def verify_otp(self, email: str | None, otp: str | None) -> tuple[User, str]:
        """Consume the passcode and open a session.

        Returns:
            The (verified) user and a signed session token.

        Raises:
            ValidationAppError: If either field is missing.
            AuthenticationAppError: If the passcode is wrong, expired or used.
        """
        if not email or not otp:
            raise ValidationAppError(code="otp_fields_required", message="Email and OTP are required")

        if not await self.otps.consume(email, otp):
            logger.info("auth.otp_rejected", extra={"email_hash": _email_hash(email)})
            raise AuthenticationAppError(code="otp_invalid", message="Invalid or expired OTP")

        user = await self.users.get_by_email(email)
        if user is None:
            user = await self.users.create(email, is_verified=True)
        else:
            user.is_verified = True
            user.last_login = utcnow()
            await self.users.save(user)

        logger.info("auth.login", extra={"user_id": user.id})
        return user, create_access_token(user.id)

"""Pydantic schemas for passcode login."""

from __future__ import annotations

from pydantic import BaseModel, Field


class OtpRequest(BaseModel):
    email: str | None = Field(default=None, description="Address that receives the passcode.")


class OtpVerifyRequest(BaseModel):
    email: str | None = Field(default=None, description="Address the passcode was sent to.")
    otp: str | None = Field(default=None, description="Passcode received by email.")


class OtpSentResponse(BaseModel):
    message: str
    email: str


class SessionUser(BaseModel):
    id: str
    email: str


class LoginResponse(BaseModel):
    message: str
    user: SessionUser


class MessageResponse(BaseModel):
    message: str

"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment defaults are set before anything imports the settings module,
so no developer .env file leaks into the test run.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

# Set default env vars that all tests might need
os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret-0123456789abcdef")
os.environ.setdefault("JUDGE0_API_URL", "https://judge.test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import asyncio
import re
from typing import Any

import pytest
from fastapi.testclient import TestClient

from compiler_api.adapters.email.base import AbstractEmailSender
from compiler_api.adapters.judge.base import AbstractJudgeClient
from compiler_api.adapters.rate_limit.failover import FailoverCounterStore
from compiler_api.adapters.rate_limit.in_memory import InMemoryCounterStore
from compiler_api.adapters.storage.in_memory import InMemorySnippetRepository, InMemoryUserRepository
from compiler_api.core.app_factory import create_app
from compiler_api.core.auth import create_access_token

OTP_PATTERN = re.compile(r">(\d{4,})</h1>")


class RecordingEmailSender(AbstractEmailSender):
    """Keeps sent messages so tests can read the passcode."""

    def __init__(self) -> None:
        self.messages: list[dict[str, str]] = []

    async def send(self, to: str, subject: str, html: str) -> None:
        self.messages.append({"to": to, "subject": subject, "html": html})

    def last_otp(self, to: str) -> str:
        for message in reversed(self.messages):
            if message["to"] == to:
                match = OTP_PATTERN.search(message["html"])
                assert match, "no passcode in message"
                return match.group(1)
        raise AssertionError(f"no message sent to {to}")


class FakeJudgeClient(AbstractJudgeClient):
    """Judge stub answering every submission with ``result``."""

    def __init__(self, result: dict[str, Any] | None = None, error: Exception | None = None) -> None:
        self.result = result or {
            "stdout": "hello\n",
            "stderr": None,
            "compile_output": None,
            "status": {"id": 3, "description": "Accepted"},
            "time": "0.012",
            "memory": 3200,
            "language_id": 71,
            "exit_code": 0,
            "signal": None,
        }
        self.error = error
        self.submissions: list[dict[str, Any]] = []
        self.closed = False

    async def submit(self, language_id: int, source_code: str, *, stdin: str = "", **kwargs: Any) -> dict[str, Any]:
        self.submissions.append({"language_id": language_id, "source_code": source_code, "stdin": stdin})
        if self.error:
            raise self.error
        return self.result

    async def get_submission(self, token: str) -> dict[str, Any]:
        if self.error:
            raise self.error
        return self.result

    async def get_batch(self, tokens: list[str]) -> dict[str, Any]:
        return {"submissions": [self.result for _ in tokens]}

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def judge() -> FakeJudgeClient:
    return FakeJudgeClient()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def users() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def snippets() -> InMemorySnippetRepository:
    return InMemorySnippetRepository()


@pytest.fixture
def counter_store() -> FailoverCounterStore:
    return FailoverCounterStore(fallback=InMemoryCounterStore())


@pytest.fixture
def app(judge, email_sender, users, snippets, counter_store):
    return create_app(
        counter_store=counter_store,
        judge_client=judge,
        user_repository=users,
        snippet_repository=snippets,
        email_sender=email_sender,
    )


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def login(client, users):
    """Sign ``email`` in on ``client`` by setting a session cookie."""

    def _login(email: str = "dev@example.com"):
        user = asyncio.run(users.get_by_email(email)) or asyncio.run(users.create(email, is_verified=True))
        client.cookies.set("token", create_access_token(user.id))
        return user

    return _login

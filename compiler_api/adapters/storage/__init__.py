"""Persistence adapter layer (users, snippets, pending passcodes)."""

from compiler_api.adapters.storage.base import (
    AbstractSnippetRepository,
    AbstractUserRepository,
    Snippet,
    SnippetQuery,
    User,
)
from compiler_api.adapters.storage.in_memory import InMemorySnippetRepository, InMemoryUserRepository
from compiler_api.adapters.storage.otp_store import AbstractOtpStore, InMemoryOtpStore

__all__ = [
    "AbstractOtpStore",
    "AbstractSnippetRepository",
    "AbstractUserRepository",
    "InMemoryOtpStore",
    "InMemorySnippetRepository",
    "InMemoryUserRepository",
    "Snippet",
    "SnippetQuery",
    "User",
]

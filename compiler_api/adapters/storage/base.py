"""Document store interfaces for users and code snippets.

Services depend on these abstractions only; the in-memory implementations
back tests and single-node deployments, a database-backed implementation can
replace them without touching the API layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class User:
    id: str
    email: str
    is_verified: bool = False
    created_at: datetime = field(default_factory=utcnow)
    last_login: datetime | None = None


@dataclass
class Snippet:
    id: str
    user_id: str
    language: str
    code: str
    title: str = "Untitled"
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class SnippetQuery:
    """Filters for listing a user's snippets (newest first).

    Attributes:
        language: Exact language match, None for all.
        text: Case-insensitive substring matched against title or code.
        skip: Number of matching snippets to skip.
        limit: Maximum number of snippets to return (None for all).
    """

    language: str | None = None
    text: str | None = None
    skip: int = 0
    limit: int | None = None


class AbstractUserRepository(ABC):
    """Interface for user persistence."""

    @abstractmethod
    async def get(self, user_id: str) -> User | None:
        raise NotImplementedError

    @abstractmethod
    async def get_by_email(self, email: str) -> User | None:
        raise NotImplementedError

    @abstractmethod
    async def create(self, email: str, *, is_verified: bool = False) -> User:
        raise NotImplementedError

    @abstractmethod
    async def save(self, user: User) -> User:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, user_id: str) -> bool:
        raise NotImplementedError


class AbstractSnippetRepository(ABC):
    """Interface for snippet persistence. Every operation is owner-scoped."""

    @abstractmethod
    async def create_many(self, snippets: Iterable[Snippet]) -> list[Snippet]:
        """Insert snippets, assigning ids when missing."""
        raise NotImplementedError

    @abstractmethod
    async def get(self, user_id: str, snippet_id: str) -> Snippet | None:
        raise NotImplementedError

    @abstractmethod
    async def find(self, user_id: str, query: SnippetQuery) -> tuple[list[Snippet], int]:
        """Return one page of matches plus the total number of matches."""
        raise NotImplementedError

    @abstractmethod
    async def update(self, user_id: str, snippet_id: str, changes: dict[str, str]) -> Snippet | None:
        raise NotImplementedError

    @abstractmethod
    async def delete_many(self, user_id: str, snippet_ids: Iterable[str]) -> int:
        raise NotImplementedError

    @abstractmethod
    async def delete_all(self, user_id: str) -> int:
        raise NotImplementedError

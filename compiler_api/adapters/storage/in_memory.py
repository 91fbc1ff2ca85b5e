"""In-memory repositories.

Per-process only and lost on restart. Thread-safe: every operation runs
under the repository lock.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from typing import Iterable

from compiler_api.adapters.storage.base import (
    AbstractSnippetRepository,
    AbstractUserRepository,
    Snippet,
    SnippetQuery,
    User,
)


def new_id() -> str:
    return uuid.uuid4().hex


class InMemoryUserRepository(AbstractUserRepository):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._users: dict[str, User] = {}

    async def get(self, user_id: str) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user else None

    async def get_by_email(self, email: str) -> User | None:
        with self._lock:
            for user in self._users.values():
                if user.email == email:
                    return replace(user)
            return None

    async def create(self, email: str, *, is_verified: bool = False) -> User:
        with self._lock:
            user = User(id=new_id(), email=email, is_verified=is_verified)
            self._users[user.id] = user
            return replace(user)

    async def save(self, user: User) -> User:
        with self._lock:
            self._users[user.id] = replace(user)
            return user

    async def delete(self, user_id: str) -> bool:
        with self._lock:
            return self._users.pop(user_id, None) is not None


class InMemorySnippetRepository(AbstractSnippetRepository):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._snippets: dict[str, Snippet] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._snippets)

    async def create_many(self, snippets: Iterable[Snippet]) -> list[Snippet]:
        created: list[Snippet] = []
        with self._lock:
            for snippet in snippets:
                stored = replace(snippet, id=snippet.id or new_id())
                self._snippets[stored.id] = stored
                created.append(replace(stored))
        return created

    async def get(self, user_id: str, snippet_id: str) -> Snippet | None:
        with self._lock:
            snippet = self._snippets.get(snippet_id)
            if snippet is None or snippet.user_id != user_id:
                return None
            return replace(snippet)

    async def find(self, user_id: str, query: SnippetQuery) -> tuple[list[Snippet], int]:
        needle = query.text.lower() if query.text else None
        with self._lock:
            matches = [
                s
                for s in self._snippets.values()
                if s.user_id == user_id
                and (query.language is None or s.language == query.language)
                and (needle is None or needle in s.title.lower() or needle in s.code.lower())
            ]
        matches.sort(key=lambda s: s.created_at, reverse=True)
        end = None if query.limit is None else query.skip + query.limit
        return [replace(s) for s in matches[query.skip:end]], len(matches)

    async def update(self, user_id: str, snippet_id: str, changes: dict[str, str]) -> Snippet | None:
        with self._lock:
            snippet = self._snippets.get(snippet_id)
            if snippet is None or snippet.user_id != user_id:
                return None
            updated = replace(snippet, **changes)
            self._snippets[snippet_id] = updated
            return replace(updated)

    async def delete_many(self, user_id: str, snippet_ids: Iterable[str]) -> int:
        deleted = 0
        with self._lock:
            for snippet_id in set(snippet_ids):
                snippet = self._snippets.get(snippet_id)
                if snippet is not None and snippet.user_id == user_id:
                    del self._snippets[snippet_id]
                    deleted += 1
        return deleted

    async def delete_all(self, user_id: str) -> int:
        with self._lock:
            owned = [k for k, s in self._snippets.items() if s.user_id == user_id]
            for snippet_id in owned:
                del self._snippets[snippet_id]
        return len(owned)

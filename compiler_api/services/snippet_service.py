"""Saved snippets, profile and account management.

Every operation is scoped to the calling user; another user's snippet is
indistinguishable from a missing one.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from datetime import datetime
from typing import Any, Iterable

from compiler_api.adapters.judge.languages import LANGUAGE_IDS
from compiler_api.adapters.storage.base import (
    AbstractSnippetRepository,
    AbstractUserRepository,
    Snippet,
    SnippetQuery,
    User,
    utcnow,
)
from compiler_api.core.config import settings
from compiler_api.core.errors import NotFoundAppError, ValidationAppError

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled"
IMPORTED_TITLE = "Imported Snippet"
ALL_LANGUAGES = "all"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def snippet_summary(snippet: Snippet) -> dict[str, Any]:
    return {
        "id": snippet.id,
        "title": snippet.title,
        "language": snippet.language,
        "createdAt": _iso(snippet.created_at),
    }


def snippet_detail(snippet: Snippet) -> dict[str, Any]:
    return {**snippet_summary(snippet), "code": snippet.code, "userId": snippet.user_id}


def user_profile(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "isVerified": user.is_verified,
        "createdAt": _iso(user.created_at),
        "lastLogin": _iso(user.last_login),
    }


def pagination(total: int, page: int, limit: int) -> dict[str, int]:
    return {"total": total, "page": page, "pages": math.ceil(total / limit), "limit": limit}


def _not_found() -> NotFoundAppError:
    return NotFoundAppError(code="snippet_not_found", message="Snippet not found")


class SnippetService:
    def __init__(self, users: AbstractUserRepository, snippets: AbstractSnippetRepository) -> None:
        self.users = users
        self.snippets = snippets

    def _validate_language(self, language: str) -> str:
        language = language.lower()
        if language not in LANGUAGE_IDS:
            raise ValidationAppError(
                code="invalid_language",
                message=f"Invalid language. Supported: {', '.join(LANGUAGE_IDS)}",
                details={"supported": list(LANGUAGE_IDS)},
            )
        return language

    def _validate_code(self, code: str) -> None:
        max_chars = settings.app.max_snippet_code_chars
        if len(code) > max_chars:
            raise ValidationAppError(
                code="code_too_large",
                message=f"Code size exceeds maximum limit ({max_chars} characters)",
                details={"max_chars": max_chars, "actual_chars": len(code)},
            )

    def _title(self, title: str | None, default: str) -> str:
        return title[: settings.app.max_snippet_title_chars] if title else default

    async def _require_user(self, user_id: str) -> User:
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundAppError(code="user_not_found", message="User not found")
        return user

    # Profile

    async def get_profile(self, user: User) -> dict[str, Any]:
        stored = await self._require_user(user.id)
        return {"success": True, "user": user_profile(stored)}

    async def update_profile(self, user: User, email: str | None) -> dict[str, Any]:
        """Touch the profile. The email is the account identity and cannot change."""
        if email and email != user.email:
            raise ValidationAppError(
                code="email_immutable",
                message="Email cannot be changed. Please create a new account.",
            )
        stored = await self._require_user(user.id)
        stored.last_login = utcnow()
        await self.users.save(stored)
        return {
            "success": True,
            "message": "Profile updated successfully",
            "user": {"id": stored.id, "email": stored.email, "isVerified": stored.is_verified},
        }

    async def get_stats(self, user: User) -> dict[str, Any]:
        stored = await self._require_user(user.id)
        owned, total = await self.snippets.find(user.id, SnippetQuery())
        breakdown = Counter(s.language for s in owned)
        return {
            "success": True,
            "stats": {
                "totalSnippets": total,
                "memberSince": _iso(stored.created_at),
                "lastActive": _iso(stored.last_login),
                "languageBreakdown": [
                    {"language": language, "count": count} for language, count in breakdown.most_common()
                ],
                "totalCodeSize": sum(len(s.code) for s in owned),
            },
        }

    async def get_activity(self, user: User, limit: int = 20) -> dict[str, Any]:
        stored = await self._require_user(user.id)
        recent, _ = await self.snippets.find(user.id, SnippetQuery(limit=limit))
        return {
            "success": True,
            "activity": {
                "accountCreated": _iso(stored.created_at),
                "lastLogin": _iso(stored.last_login),
                "recentActivity": [snippet_summary(s) for s in recent],
            },
        }

    # Snippets

    async def create_snippet(
        self,
        user: User,
        language: str | None,
        code: str | None,
        title: str | None = None,
    ) -> dict[str, Any]:
        if not language or not code:
            raise ValidationAppError(code="snippet_fields_required", message="Language and code are required")
        self._validate_code(code)
        language = self._validate_language(language)

        [created] = await self.snippets.create_many(
            [Snippet(id="", user_id=user.id, language=language, code=code, title=self._title(title, DEFAULT_TITLE))]
        )
        logger.info("snippet.created", extra={"user_id": user.id, "snippet_id": created.id, "language": language})
        return {"success": True, "message": "Snippet saved successfully", "snippet": snippet_summary(created)}

    async def list_snippets(
        self,
        user: User,
        *,
        page: int = 1,
        limit: int = 10,
        language: str | None = None,
    ) -> dict[str, Any]:
        if language and language.lower() != ALL_LANGUAGES:
            language = language.lower()
        else:
            language = None
        found, total = await self.snippets.find(
            user.id,
            SnippetQuery(language=language, skip=(page - 1) * limit, limit=limit),
        )
        return {
            "success": True,
            "snippets": [snippet_summary(s) for s in found],
            "pagination": pagination(total, page, limit),
        }

    async def search_snippets(self, user: User, query: str, *, page: int = 1, limit: int = 10) -> dict[str, Any]:
        if not query or not query.strip():
            raise ValidationAppError(code="search_query_required", message="Search query is required")
        found, total = await self.snippets.find(
            user.id,
            SnippetQuery(text=query, skip=(page - 1) * limit, limit=limit),
        )
        return {
            "success": True,
            "query": query,
            "snippets": [snippet_summary(s) for s in found],
            "pagination": pagination(total, page, limit),
        }

    async def get_snippet(self, user: User, snippet_id: str) -> dict[str, Any]:
        snippet = await self.snippets.get(user.id, snippet_id)
        if snippet is None:
            raise _not_found()
        return {"success": True, "snippet": snippet_detail(snippet)}

    async def update_snippet(
        self,
        user: User,
        snippet_id: str,
        *,
        language: str | None = None,
        code: str | None = None,
        title: str | None = None,
    ) -> dict[str, Any]:
        changes: dict[str, str] = {}
        if code:
            self._validate_code(code)
            changes["code"] = code
        if title:
            if len(title) > settings.app.max_snippet_title_chars:
                raise ValidationAppError(
                    code="title_too_long",
                    message=(
                        "Title exceeds maximum length "
                        f"({settings.app.max_snippet_title_chars} characters)"
                    ),
                )
            changes["title"] = title
        if language:
            changes["language"] = self._validate_language(language)

        if changes:
            snippet = await self.snippets.update(user.id, snippet_id, changes)
        else:
            snippet = await self.snippets.get(user.id, snippet_id)
        if snippet is None:
            raise _not_found()
        return {"success": True, "message": "Snippet updated successfully", "snippet": snippet_detail(snippet)}

    async def delete_snippet(self, user: User, snippet_id: str) -> dict[str, Any]:
        if not await self.snippets.delete_many(user.id, [snippet_id]):
            raise _not_found()
        return {"success": True, "message": "Snippet deleted successfully"}

    async def delete_snippets(self, user: User, snippet_ids: list[str] | None) -> dict[str, Any]:
        if not snippet_ids:
            raise ValidationAppError(code="snippet_ids_required", message="Snippet IDs array is required")
        deleted = await self.snippets.delete_many(user.id, snippet_ids)
        return {
            "success": True,
            "message": f"{deleted} snippets deleted successfully",
            "deletedCount": deleted,
        }

    # Export / import

    async def export_snippets(self, user: User) -> dict[str, Any]:
        owned, total = await self.snippets.find(user.id, SnippetQuery())
        return {
            "user": user.email,
            "exportDate": utcnow().isoformat(),
            "snippetCount": total,
            "snippets": [snippet_detail(s) for s in owned],
        }

    async def import_snippets(self, user: User, entries: Iterable[dict[str, Any]] | None) -> dict[str, Any]:
        entries = list(entries or [])
        if not entries:
            raise ValidationAppError(code="snippets_required", message="Snippets array is required")

        valid = [
            Snippet(
                id="",
                user_id=user.id,
                language=entry["language"].lower(),
                code=entry["code"],
                title=self._title(entry.get("title") if isinstance(entry.get("title"), str) else None, IMPORTED_TITLE),
            )
            for entry in entries
            if isinstance(entry.get("language"), str)
            and entry["language"]
            and isinstance(entry.get("code"), str)
            and entry["code"]
        ]
        if not valid:
            raise ValidationAppError(code="no_valid_snippets", message="No valid snippets found to import")

        created = await self.snippets.create_many(valid)
        logger.info("snippet.imported", extra={"user_id": user.id, "imported_count": len(created)})
        return {
            "success": True,
            "message": f"{len(created)} snippets imported successfully",
            "importedCount": len(created),
            "snippets": [{"id": s.id, "title": s.title, "language": s.language} for s in created],
        }

    # Account

    async def delete_account(self, user: User) -> dict[str, Any]:
        removed = await self.snippets.delete_all(user.id)
        await self.users.delete(user.id)
        logger.warning("account.deleted", extra={"user_id": user.id, "snippets_removed": removed})
        return {"success": True, "message": "Account deleted successfully"}

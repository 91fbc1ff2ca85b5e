"""Pydantic schemas for snippet and profile endpoints.

Request bodies accept missing fields so the service layer can answer with
its own validation messages.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProfileUpdateRequest(BaseModel):
    email: str | None = None


class SnippetCreateRequest(BaseModel):
    language: str | None = None
    code: str | None = None
    title: str | None = None


class SnippetUpdateRequest(BaseModel):
    language: str | None = None
    code: str | None = None
    title: str | None = None


class BulkDeleteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    snippet_ids: list[str] | None = Field(default=None, alias="snippetIds")


class ImportRequest(BaseModel):
    snippets: list[dict[str, Any]] | None = Field(
        default=None,
        description="Entries with language and code; title is optional.",
    )

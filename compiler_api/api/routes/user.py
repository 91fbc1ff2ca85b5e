from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from compiler_api.adapters.storage.base import User
from compiler_api.core.auth import clear_session_cookie, require_user
from compiler_api.core.rate_limit import rate_limit
from compiler_api.schemas.snippets import (
    BulkDeleteRequest,
    ImportRequest,
    ProfileUpdateRequest,
    SnippetCreateRequest,
    SnippetUpdateRequest,
)
from compiler_api.services.rate_limit_policies import EXPORT_IMPORT, SENSITIVE, SNIPPET_MUTATION
from compiler_api.services.snippet_service import SnippetService

# Router-level dependencies run before route dependencies, so anonymous
# requests get 401 before any limiter counts them.
router = APIRouter(prefix="/api/user", tags=["User"], dependencies=[Depends(require_user)])

snippet_mutation_limit = Depends(rate_limit(SNIPPET_MUTATION))
export_import_limit = Depends(rate_limit(EXPORT_IMPORT))

EXPORT_FILENAME = "snippets-export.json"


def get_snippet_service(request: Request) -> SnippetService:
    return request.app.state.snippet_service


@router.get("/profile")
async def get_profile(
    user: User = Depends(require_user),
    service: SnippetService = Depends(get_snippet_service),
) -> dict[str, Any]:
    return await service.get_profile(user)


@router.put("/profile")
async def update_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(require_user),
    service: SnippetService = Depends(get_snippet_service),
) -> dict[str, Any]:
    return await service.update_profile(user, body.email)


@router.get("/stats")
async def get_stats(
    user: User = Depends(require_user),
    service: SnippetService = Depends(get_snippet_service),
) -> dict[str, Any]:
    return await service.get_stats(user)


@router.get("/activity")
async def get_activity(
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(require_user),
    service: SnippetService = Depends(get_snippet_service),
) -> dict[str, Any]:
    return await service.get_activity(user, limit=limit)


@router.get("/snippets/search/{query}")
async def search_snippets(
    query: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(require_user),
    service: SnippetService = Depends(get_snippet_service),
) -> dict[str, Any]:
    return await service.search_snippets(user, query, page=page, limit=limit)


@router.post("/snippets", status_code=201, dependencies=[snippet_mutation_limit])
async def create_snippet(
    body: SnippetCreateRequest,
    user: User = Depends(require_user),
    service: SnippetService = Depends(get_snippet_service),
) -> dict[str, Any]:
    return await service.create_snippet(user, body.language, body.code, body.title)


@router.get("/snippets")
async def list_snippets(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    language: str | None = None,
    user: User = Depends(require_user),
    service: SnippetService = Depends(get_snippet_service),
) -> dict[str, Any]:
    return await service.list_snippets(user, page=page, limit=limit, language=language)


@router.delete("/snippets", dependencies=[snippet_mutation_limit])
async def delete_snippets(
    body: BulkDeleteRequest,
    user: User = Depends(require_user),
    service: SnippetService = Depends(get_snippet_service),
) -> dict[str, Any]:
    return await service.delete_snippets(user, body.snippet_ids)


@router.get("/snippets/{snippet_id}")
async def get_snippet(
    snippet_id: str,
    user: User = Depends(require_user),
    service: SnippetService = Depends(get_snippet_service),
) -> dict[str, Any]:
    return await service.get_snippet(user, snippet_id)


@router.put("/snippets/{snippet_id}", dependencies=[snippet_mutation_limit])
async def update_snippet(
    snippet_id: str,
    body: SnippetUpdateRequest,
    user: User = Depends(require_user),
    service: SnippetService = Depends(get_snippet_service),
) -> dict[str, Any]:
    return await service.update_snippet(
        user,
        snippet_id,
        language=body.language,
        code=body.code,
        title=body.title,
    )


@router.delete("/snippets/{snippet_id}", dependencies=[snippet_mutation_limit])
async def delete_snippet(
    snippet_id: str,
    user: User = Depends(require_user),
    service: SnippetService = Depends(get_snippet_service),
) -> dict[str, Any]:
    return await service.delete_snippet(user, snippet_id)


@router.get("/export", dependencies=[export_import_limit])
async def export_snippets(
    user: User = Depends(require_user),
    service: SnippetService = Depends(get_snippet_service),
) -> JSONResponse:
    """Download every snippet of the account as a JSON attachment."""

    return JSONResponse(
        content=await service.export_snippets(user),
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.post("/import", status_code=201, dependencies=[export_import_limit])
async def import_snippets(
    body: ImportRequest,
    user: User = Depends(require_user),
    service: SnippetService = Depends(get_snippet_service),
) -> dict[str, Any]:
    """Bulk-create snippets; entries without language or code are dropped."""

    return await service.import_snippets(user, body.snippets)


@router.delete("/sensitive/account", dependencies=[Depends(rate_limit(SENSITIVE))])
async def delete_account(
    response: Response,
    user: User = Depends(require_user),
    service: SnippetService = Depends(get_snippet_service),
) -> dict[str, Any]:
    """Delete the account with all its snippets and end the session."""

    result = await service.delete_account(user)
    clear_session_cookie(response)
    return result

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(prefix="/api", tags=["Health"])


def _limiter_status(request: Request) -> dict[str, Any]:
    return request.app.state.counter_store.status()


@router.get("/health")
def health_check(request: Request) -> dict[str, Any]:
    """Liveness check, plus which counter store the limiters are using.

    Never rate limited, and answers OK even when the shared store is down:
    the limiters keep working on the in-process fallback.
    """

    return {
        "status": "OK",
        "message": "Server is running",
        "rateLimiter": _limiter_status(request),
    }


@router.get("/status")
def limiter_status(request: Request) -> dict[str, Any]:
    return {"rateLimiter": _limiter_status(request)}

"""Rate limiting integration for FastAPI.

This module is the admission gate: it wires the admission controller into
the HTTP layer in two ways.

- ``rate_limit(name)``: a route dependency. It may read the JSON body so that
  pre-authentication policies can key on the claimed email.
- ``general_api_rate_limit_middleware``: applies the ``general_api`` policy to
  every ``/api/`` request before routing, without touching the body.

Both are independent, so a request on a gated route increments the general
counter and the route's own counter.

Rejections are expected control flow, not errors: they become HTTP 429 with
``{"success": false, "message": ..., "retryAfter": ...}``.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from compiler_api.core.config import settings
from compiler_api.services.admission_service import AdmissionController, AdmissionDecision
from compiler_api.services.identity_resolver import build_request_context
from compiler_api.services.rate_limit_policies import GENERAL_API

logger = logging.getLogger(__name__)

API_PREFIX = "/api/"

REQUESTED_POLICIES: set[str] = {GENERAL_API}


class RateLimitExceededError(Exception):
    """Raised by route dependencies when a policy rejects the request."""

    def __init__(self, decision: AdmissionDecision) -> None:
        super().__init__(f"Rate limit exceeded for policy {decision.policy}")
        self.decision = decision


def get_admission_controller(request: Request) -> AdmissionController:
    return request.app.state.admission


def build_rejection_response(decision: AdmissionDecision) -> JSONResponse:
    """Render a rejected decision as HTTP 429."""

    headers: dict[str, str] = {}
    if settings.rate_limit.include_headers:
        if isinstance(decision.retry_after, int):
            headers["Retry-After"] = str(decision.retry_after)
        if decision.quota is not None:
            headers["X-RateLimit-Limit"] = str(decision.quota)
            headers["X-RateLimit-Remaining"] = str(decision.remaining)
        if decision.reset_at is not None:
            headers["X-RateLimit-Reset"] = str(int(decision.reset_at))

    return JSONResponse(
        status_code=429,
        content=decision.payload,
        headers=headers or None,
    )


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    return build_rejection_response(exc.decision)


def rate_limit(policy_name: str) -> Callable[[Request], Awaitable[None]]:
    """Build a FastAPI dependency enforcing ``policy_name``.

    Usage:
        @router.post("/compile", dependencies=[Depends(rate_limit("compile"))])

    Requested names are recorded so the app factory can verify them against
    the policy registry at startup.
    """

    REQUESTED_POLICIES.add(policy_name)

    async def enforce_rate_limit(request: Request) -> None:
        if not settings.rate_limit.enabled:
            return

        controller = get_admission_controller(request)
        context = await build_request_context(request, read_body=True)
        decision = await controller.admit(context, policy_name)
        if not decision.allowed:
            raise RateLimitExceededError(decision)

    enforce_rate_limit.__name__ = f"enforce_{policy_name}_rate_limit"
    return enforce_rate_limit


async def general_api_rate_limit_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Apply the ``general_api`` policy to all API traffic."""

    if not settings.rate_limit.enabled or not request.url.path.startswith(API_PREFIX):
        return await call_next(request)

    controller = get_admission_controller(request)
    context = await build_request_context(request, read_body=False)
    decision = await controller.admit(context, GENERAL_API)
    if not decision.allowed:
        return build_rejection_response(decision)
    return await call_next(request)

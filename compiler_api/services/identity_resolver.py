"""Rate limit identity resolution.

Turns an HTTP request into a framework-free :class:`RequestContext` and
derives limiter keys from it. Nothing here raises: a missing subject, a
missing or malformed body, or an unknown client all degrade to the network
origin.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from fastapi import Request
from starlette.requests import ClientDisconnect

from compiler_api.core.config import settings

if TYPE_CHECKING:
    from compiler_api.services.rate_limit_policies import RateLimitPolicy

logger = logging.getLogger(__name__)

UNKNOWN_ORIGIN = "unknown"
IDENTITY_FIELD = "email"

KeyRule = Callable[["RequestContext"], str]


@dataclass(frozen=True)
class RequestContext:
    """Snapshot of the request attributes limiter policies may look at."""

    path: str
    method: str
    origin: str
    subject_id: str | None = None
    claimed_identity: str | None = None

    @property
    def authenticated(self) -> bool:
        return self.subject_id is not None


def normalize_identity(value: Any) -> str | None:
    """Case-normalise a claimed identity; non-strings and blanks yield None."""

    if not isinstance(value, str):
        return None
    value = value.strip().lower()
    return value or None


def resolve_origin(request: Request) -> str:
    """Network origin of the request.

    The first ``X-Forwarded-For`` hop is used only when proxy headers are
    trusted; otherwise the socket peer address.
    """

    if settings.app.trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else UNKNOWN_ORIGIN


def resolve_subject(request: Request) -> str | None:
    user = getattr(request.state, "user", None)
    subject_id = getattr(user, "id", None)
    return str(subject_id) if subject_id else None


async def read_claimed_identity(request: Request) -> str | None:
    """Extract the claimed identity field from a JSON body, if any."""

    if request.method in ("GET", "HEAD", "OPTIONS"):
        return None
    if "json" not in request.headers.get("content-type", ""):
        return None
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError, RuntimeError, ClientDisconnect):
        logger.debug("identity.body_unreadable", extra={"path": request.url.path})
        return None
    if not isinstance(body, dict):
        return None
    return normalize_identity(body.get(IDENTITY_FIELD))


async def build_request_context(request: Request, *, read_body: bool = False) -> RequestContext:
    """Build the limiter view of ``request``.

    Args:
        request: Incoming request; ``request.state.user`` is set upstream by
            the auth context middleware when a valid session exists.
        read_body: Parse the JSON body for a claimed identity. Only route
            dependencies do this; middleware never consumes the body.
    """

    return RequestContext(
        path=request.url.path,
        method=request.method.upper(),
        origin=resolve_origin(request),
        subject_id=resolve_subject(request),
        claimed_identity=await read_claimed_identity(request) if read_body else None,
    )


def subject_or_origin_key(context: RequestContext) -> str:
    """Default key: authenticated subject, else network origin."""

    if context.subject_id:
        return f"user:{context.subject_id}"
    return context.origin


def claimed_identity_or_origin_key(context: RequestContext) -> str:
    """Key for pre-authentication flows: the claimed email, else origin."""

    return context.claimed_identity or context.origin


def prefixed_key(prefix: str) -> KeyRule:
    """Subject-or-origin key under a fixed prefix, e.g. ``sensitive:user-1``."""

    def _rule(context: RequestContext) -> str:
        return f"{prefix}:{context.subject_id or context.origin}"

    return _rule


def resolve_key(context: RequestContext, policy: "RateLimitPolicy") -> str:
    """Apply the policy's key rule, falling back to the origin when it yields nothing."""

    return policy.key_rule(context) or context.origin or UNKNOWN_ORIGIN

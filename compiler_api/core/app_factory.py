from __future__ import annotations

"""Application factory for the FastAPI app.

Centralizes app construction (metadata, collaborators, middleware, handlers,
routers, lifespan) so tests can build isolated apps with fake collaborators.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from compiler_api.adapters.email.base import AbstractEmailSender
from compiler_api.adapters.email.logging_sender import LoggingEmailSender
from compiler_api.adapters.judge.base import AbstractJudgeClient
from compiler_api.adapters.judge.factory import create_judge_client
from compiler_api.adapters.rate_limit.failover import FailoverCounterStore
from compiler_api.adapters.rate_limit.in_memory import InMemoryCounterStore
from compiler_api.adapters.rate_limit.redis_store import RedisCounterStore
from compiler_api.adapters.storage.base import AbstractSnippetRepository, AbstractUserRepository
from compiler_api.adapters.storage.in_memory import InMemorySnippetRepository, InMemoryUserRepository
from compiler_api.adapters.storage.otp_store import AbstractOtpStore, InMemoryOtpStore
from compiler_api.api.routes import auth_router, compiler_router, health_router, user_router
from compiler_api.core.auth import auth_context_middleware
from compiler_api.core.config import settings
from compiler_api.core.errors import ValidationAppError
from compiler_api.core.exception_handlers import setup_exception_handlers
from compiler_api.core.logging import configure_logging
from compiler_api.core.middleware import request_id_middleware
from compiler_api.core.openapi import apply_openapi_customizations
from compiler_api.core.rate_limit import REQUESTED_POLICIES, general_api_rate_limit_middleware
from compiler_api.services.admission_service import AdmissionController
from compiler_api.services.auth_service import AuthService
from compiler_api.services.compiler_service import CompilerService
from compiler_api.services.rate_limit_policies import PolicyRegistry, build_default_policies
from compiler_api.services.snippet_service import SnippetService

logger = logging.getLogger(__name__)


def build_counter_store() -> FailoverCounterStore:
    """Shared store from ``RATE_LIMIT_REDIS_URL`` with an in-process fallback."""

    rate_limit = settings.rate_limit
    shared = None
    if rate_limit.redis_url:
        shared = RedisCounterStore.from_url(
            rate_limit.redis_url,
            key_prefix=rate_limit.key_prefix,
            socket_timeout=rate_limit.store_timeout_seconds,
        )
    return FailoverCounterStore(
        shared=shared,
        fallback=InMemoryCounterStore(),
        call_timeout_seconds=rate_limit.store_timeout_seconds,
        reconnect_interval_seconds=rate_limit.reconnect_interval_seconds,
    )


def verify_requested_policies(policies: PolicyRegistry) -> None:
    """Fail at startup when a route asks for a policy nobody registered.

    Raises:
        ValidationAppError: With the unknown names in ``details``.
    """
    unknown = sorted(REQUESTED_POLICIES - set(policies))
    if unknown:
        raise ValidationAppError(
            code="rate_limit_policy_unknown",
            message=f"Routes reference unknown rate limit policies: {', '.join(unknown)}",
            details={"supported": sorted(policies)},
        )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    store = app.state.counter_store
    await store.connect()
    logger.info("app.started", extra={"rate_limiter": store.status()})
    try:
        yield
    finally:
        await store.close(timeout=settings.rate_limit.shutdown_timeout_seconds)
        await app.state.judge.close()
        logger.info("app.stopped")


def create_app(
    *,
    counter_store: FailoverCounterStore | None = None,
    judge_client: AbstractJudgeClient | None = None,
    user_repository: AbstractUserRepository | None = None,
    snippet_repository: AbstractSnippetRepository | None = None,
    otp_store: AbstractOtpStore | None = None,
    email_sender: AbstractEmailSender | None = None,
    policies: PolicyRegistry | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Every collaborator can be injected; the defaults are the configured
    production adapters (in-memory persistence, Judge0, Redis when a URL is
    set).

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.

    Raises:
        ValidationAppError: If a route references an unregistered policy.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    policies = policies or build_default_policies()
    verify_requested_policies(policies)

    app = FastAPI(
        title="Online Compiler API",
        description=(
            "Backend for an online code editor: passwordless login, remote "
            "code execution through Judge0, and saved snippets. Every route "
            "group is protected by its own rate limiter; limiter counters live "
            "in Redis when configured and fall back to process memory."
        ),
        version="0.1.0",
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    users = user_repository or InMemoryUserRepository()
    snippets = snippet_repository or InMemorySnippetRepository()
    store = counter_store or build_counter_store()
    judge = judge_client or create_judge_client()

    app.state.counter_store = store
    app.state.admission = AdmissionController(policies, store)
    app.state.users = users
    app.state.judge = judge
    app.state.auth_service = AuthService(users, otp_store or InMemoryOtpStore(), email_sender or LoggingEmailSender())
    app.state.compiler_service = CompilerService(judge)
    app.state.snippet_service = SnippetService(users, snippets)

    # Middleware: the last one added runs first. Request order is
    # CORS -> request id -> auth context -> general API limiter.
    app.middleware("http")(general_api_rate_limit_middleware)
    app.middleware("http")(auth_context_middleware)
    app.middleware("http")(request_id_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.app.client_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            settings.log.request_id_header,
            "Retry-After",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
        ],
    )

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(auth_router)
    app.include_router(compiler_router)
    app.include_router(user_router)
    app.include_router(health_router)

    # OpenAPI customizations (security scheme, tags)
    apply_openapi_customizations(app)

    return app

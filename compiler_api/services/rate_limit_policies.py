"""Limiter policies: static configuration plus per-request behaviour.

Each policy is an immutable record built once at startup. Dynamic parts
(identity-dependent quota, skip predicate, key derivation, rejection payload)
are plain callables stored on the record and evaluated per request without
mutating it. Policies never share counters: the policy name is part of every
composite key.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Iterable, Iterator, Mapping

from compiler_api.core.errors import ValidationAppError
from compiler_api.services.identity_resolver import (
    KeyRule,
    RequestContext,
    claimed_identity_or_origin_key,
    prefixed_key,
    subject_or_origin_key,
)

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

OTP_REQUEST = "otp_request"
OTP_VERIFY = "otp_verify"
COMPILE = "compile"
GENERAL_API = "general_api"
SENSITIVE = "sensitive"
SNIPPET_MUTATION = "snippet_mutation"
LOGIN = "login"
EXPORT_IMPORT = "export_import"

RetryAfter = int | str
Quota = int | Callable[[RequestContext], int]
SkipRule = Callable[[RequestContext], bool]
RejectBuilder = Callable[["RateLimitPolicy", RequestContext, RetryAfter], dict[str, Any]]


def standard_rejection(policy: "RateLimitPolicy", context: RequestContext, retry_after: RetryAfter) -> dict[str, Any]:
    """Default 429 body: ``{success, message, retryAfter}``."""

    return {"success": False, "message": policy.message, "retryAfter": retry_after}


@dataclass(frozen=True)
class RateLimitPolicy:
    """One named limiter.

    Attributes:
        name: Unique policy identifier, also the composite key namespace.
        window_ms: Counting window length in milliseconds.
        quota: Max admitted requests per window, or a function of the request
            context returning it.
        key_rule: Derives the identity key from the request context.
        message: Human-readable rejection message.
        skip_rule: When it returns True the request is neither counted nor
            limited.
        on_reject: Builds the rejection payload.
    """

    name: str
    window_ms: int
    quota: Quota
    key_rule: KeyRule = subject_or_origin_key
    message: str = "Too many requests, please try again later."
    skip_rule: SkipRule | None = None
    on_reject: RejectBuilder = field(default=standard_rejection)

    def should_skip(self, context: RequestContext) -> bool:
        return bool(self.skip_rule and self.skip_rule(context))

    def quota_for(self, context: RequestContext) -> int:
        return self.quota(context) if callable(self.quota) else self.quota

    def composite_key(self, key: str) -> str:
        return f"{self.name}:{key}"

    def validate(self) -> None:
        """Reject misconfiguration.

        Raises:
            ValidationAppError: If the name, window or fixed quota is invalid.
        """
        if not self.name or ":" in self.name:
            raise ValidationAppError(
                code="rate_limit_policy_invalid",
                message=f"Policy name must be non-empty and contain no ':' (got {self.name!r})",
            )
        if self.window_ms < 1:
            raise ValidationAppError(
                code="rate_limit_policy_invalid",
                message=f"Policy {self.name!r} window_ms must be >= 1",
            )
        if not callable(self.quota) and self.quota < 1:
            raise ValidationAppError(
                code="rate_limit_policy_invalid",
                message=f"Policy {self.name!r} quota must be >= 1",
            )


class PolicyRegistry(Mapping[str, RateLimitPolicy]):
    """Read-only, validated set of policies keyed by name."""

    def __init__(self, policies: Iterable[RateLimitPolicy]) -> None:
        by_name: dict[str, RateLimitPolicy] = {}
        for policy in policies:
            policy.validate()
            if policy.name in by_name:
                raise ValidationAppError(
                    code="rate_limit_policy_duplicate",
                    message=f"Duplicate rate limit policy: {policy.name!r}",
                )
            by_name[policy.name] = policy
        self._policies = MappingProxyType(by_name)

    def __getitem__(self, name: str) -> RateLimitPolicy:
        return self._policies[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._policies)

    def __len__(self) -> int:
        return len(self._policies)

    def require(self, name: str) -> RateLimitPolicy:
        """Return the policy or fail loudly for an unknown name.

        Raises:
            ValidationAppError: If no policy is registered under ``name``.
        """
        try:
            return self._policies[name]
        except KeyError:
            raise ValidationAppError(
                code="rate_limit_policy_unknown",
                message=f"Unknown rate limit policy: {name!r}",
                details={"supported": sorted(self._policies)},
            ) from None


def _compile_quota(context: RequestContext) -> int:
    return 15 if context.authenticated else 5


def _compile_rejection(policy: RateLimitPolicy, context: RequestContext, retry_after: RetryAfter) -> dict[str, Any]:
    audience = "user" if context.authenticated else "guest"
    return {
        "success": False,
        "message": f"Too many compilation requests for {audience}.",
        "retryAfter": retry_after,
    }


_GENERAL_API_EXEMPT_PREFIXES = ("/api/health", "/api/docs", "/api/status")
_MUTATING_METHODS = frozenset({"POST", "PUT", "DELETE"})


def build_default_policies() -> PolicyRegistry:
    """The service's eight concurrently active limiters."""

    return PolicyRegistry(
        [
            RateLimitPolicy(
                name=OTP_REQUEST,
                window_ms=15 * MINUTE_MS,
                quota=5,
                key_rule=claimed_identity_or_origin_key,
                message="Too many OTP requests. Try again after 15 minutes.",
                skip_rule=lambda ctx: ctx.path == "/api/health",
            ),
            RateLimitPolicy(
                name=OTP_VERIFY,
                window_ms=15 * MINUTE_MS,
                quota=10,
                key_rule=claimed_identity_or_origin_key,
                message="Too many OTP verification attempts.",
            ),
            RateLimitPolicy(
                name=COMPILE,
                window_ms=60 * SECOND_MS,
                quota=_compile_quota,
                message="Too many compilation requests.",
                on_reject=_compile_rejection,
            ),
            RateLimitPolicy(
                name=GENERAL_API,
                window_ms=15 * MINUTE_MS,
                quota=100,
                message="Too many requests. Slow down.",
                skip_rule=lambda ctx: ctx.path.startswith(_GENERAL_API_EXEMPT_PREFIXES),
            ),
            RateLimitPolicy(
                name=SENSITIVE,
                window_ms=HOUR_MS,
                quota=3,
                key_rule=prefixed_key("sensitive"),
                message="Too many requests. Try again after an hour.",
                skip_rule=lambda ctx: "/sensitive" not in ctx.path,
            ),
            RateLimitPolicy(
                name=SNIPPET_MUTATION,
                window_ms=10 * MINUTE_MS,
                quota=30,
                message="Too many snippet operations.",
                skip_rule=lambda ctx: not ctx.authenticated or ctx.method not in _MUTATING_METHODS,
            ),
            RateLimitPolicy(
                name=LOGIN,
                window_ms=15 * MINUTE_MS,
                quota=5,
                key_rule=claimed_identity_or_origin_key,
                message="Too many login attempts. Try later.",
                skip_rule=lambda ctx: ctx.method != "POST",
            ),
            RateLimitPolicy(
                name=EXPORT_IMPORT,
                window_ms=DAY_MS,
                quota=5,
                message="Export/Import limit exceeded.",
                skip_rule=lambda ctx: not ctx.authenticated,
            ),
        ]
    )

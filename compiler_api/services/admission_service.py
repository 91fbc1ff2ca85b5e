"""Admission decisions for rate limited routes.

For one request and one policy:

1. skip rule matches -> allow, nothing counted;
2. composite key = ``<policy>:<resolved key>``;
3. increment the counter for the policy window;
4. resolve the quota (may depend on the request identity);
5. ``count <= quota`` -> allow, otherwise reject with a retry hint.

The (quota + 1)-th request in a window is the first one rejected.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from compiler_api.adapters.rate_limit.base import AbstractCounterStore
from compiler_api.services.identity_resolver import RequestContext, resolve_key
from compiler_api.services.rate_limit_policies import PolicyRegistry, RateLimitPolicy, RetryAfter

logger = logging.getLogger(__name__)

UNKNOWN_RETRY_AFTER = "unknown"


@dataclass(frozen=True)
class AdmissionDecision:
    """Outcome of one admission check.

    Attributes:
        allowed: Whether the request may proceed.
        policy: Name of the evaluated policy.
        skipped: True when the skip rule bypassed counting.
        key: Resolved identity key (None when skipped).
        count: Counter value after the increment (0 when skipped).
        quota: Quota applied to this request (None when skipped).
        reset_at: UNIX seconds when the window closes, if known.
        retry_after: Seconds to wait, or "unknown"; None when allowed.
        payload: Rejection body; empty when allowed.
    """

    allowed: bool
    policy: str
    skipped: bool = False
    key: str | None = None
    count: int = 0
    quota: int | None = None
    reset_at: float | None = None
    retry_after: RetryAfter | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def remaining(self) -> int | None:
        if self.quota is None:
            return None
        return max(0, self.quota - self.count)


def _hash_key(key: str) -> str:
    """Hash the limiter key for logging without exposing identities."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def _key_type(context: RequestContext, key: str) -> str:
    if context.subject_id:
        prefix, sep, rest = key.partition(":")
        if sep and prefix and rest == context.subject_id:
            return "subject"
    if context.claimed_identity and key == context.claimed_identity:
        return "claimed_identity"
    return "origin"


class AdmissionController:
    """Evaluates policies against a counter store."""

    def __init__(
        self,
        policies: PolicyRegistry,
        store: AbstractCounterStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.policies = policies
        self.store = store
        self._clock = clock

    def _retry_after(self, reset_at: float | None) -> RetryAfter:
        if reset_at is None:
            return UNKNOWN_RETRY_AFTER
        return max(0, math.ceil(reset_at - self._clock()))

    async def admit(self, context: RequestContext, policy: RateLimitPolicy | str) -> AdmissionDecision:
        """Count the request against ``policy`` and decide.

        Args:
            context: Limiter view of the request.
            policy: Policy instance or registered policy name.

        Returns:
            AdmissionDecision; rejected decisions carry the 429 payload.
        """
        if isinstance(policy, str):
            policy = self.policies.require(policy)

        if policy.should_skip(context):
            return AdmissionDecision(allowed=True, policy=policy.name, skipped=True)

        key = resolve_key(context, policy)
        entry = await self.store.increment(policy.composite_key(key), policy.window_ms)
        quota = policy.quota_for(context)

        if entry.count <= quota:
            return AdmissionDecision(
                allowed=True,
                policy=policy.name,
                key=key,
                count=entry.count,
                quota=quota,
                reset_at=entry.expires_at,
            )

        retry_after = self._retry_after(entry.expires_at)
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "policy": policy.name,
                "key_type": _key_type(context, key),
                "key_hash": _hash_key(key),
                "path": context.path,
                "limit": quota,
                "count": entry.count,
                "window_s": policy.window_ms / 1000,
                "retry_after_s": retry_after,
                "rejected_at": datetime.fromtimestamp(self._clock(), timezone.utc).isoformat(),
            },
        )
        return AdmissionDecision(
            allowed=False,
            policy=policy.name,
            key=key,
            count=entry.count,
            quota=quota,
            reset_at=entry.expires_at,
            retry_after=retry_after,
            payload=policy.on_reject(policy, context, retry_after),
        )

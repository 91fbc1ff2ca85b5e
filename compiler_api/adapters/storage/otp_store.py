"""Pending one-time passcodes.

At most one passcode is pending per email: issuing a new one replaces the
previous one. A passcode is consumed by the first successful verification.
"""

from __future__ import annotations

import hmac
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable


class AbstractOtpStore(ABC):
    @abstractmethod
    async def issue(self, email: str, otp: str, ttl_seconds: int) -> None:
        raise NotImplementedError

    @abstractmethod
    async def consume(self, email: str, otp: str) -> bool:
        """Return True and forget the passcode when it matches and is unexpired."""
        raise NotImplementedError


@dataclass(frozen=True)
class _PendingOtp:
    otp: str
    expires_at: float


class InMemoryOtpStore(AbstractOtpStore):
    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: dict[str, _PendingOtp] = {}

    async def issue(self, email: str, otp: str, ttl_seconds: int) -> None:
        with self._lock:
            self._pending[email] = _PendingOtp(otp=otp, expires_at=self._clock() + ttl_seconds)

    async def consume(self, email: str, otp: str) -> bool:
        with self._lock:
            pending = self._pending.get(email)
            if pending is None:
                return False
            if self._clock() >= pending.expires_at:
                del self._pending[email]
                return False
            if not hmac.compare_digest(pending.otp.encode(), otp.encode()):
                return False
            del self._pending[email]
            return True

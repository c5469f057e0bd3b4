from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
import logging
import math
from threading import Lock
import time

from fastapi import HTTPException, Request, status

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class RateLimitScope(str, Enum):
    register = "auth.register"
    login = "auth.login"

    def max_requests(self, settings: Settings) -> int:
        if self is RateLimitScope.register:
            return settings.auth_rate_limit_register_max_requests
        return settings.auth_rate_limit_login_max_requests


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after_seconds: int = 0


class FixedWindowRateLimiter:
    """Counts attempts per key in windows that open on the first attempt after the previous one closed."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = Lock()

    def consume(self, key: str, *, limit: int, window_seconds: int) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            opened, used = self._windows.get(key, (now, 0))
            if now - opened >= window_seconds:
                opened, used = now, 0
            if used >= limit:
                return RateLimitDecision(
                    allowed=False,
                    remaining=0,
                    retry_after_seconds=max(1, math.ceil(opened + window_seconds - now)),
                )
            self._windows[key] = (opened, used + 1)
        return RateLimitDecision(allowed=True, remaining=limit - used - 1)

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()


_limiter = FixedWindowRateLimiter()


def enforce_auth_rate_limit(
    request: Request,
    scope: RateLimitScope,
    email: str,
    settings: Settings | None = None,
) -> RateLimitDecision:
    settings = settings or get_settings()
    client = request.client.host if request.client else "unknown"
    decision = _limiter.consume(
        f"{scope.value}:{client}:{email.strip().lower()}",
        limit=scope.max_requests(settings),
        window_seconds=settings.auth_rate_limit_window_seconds,
    )
    if decision.allowed:
        return decision

    logger.warning(
        "RATE LIMITED | scope=%s | client=%s | retry_after=%s",
        scope.value,
        client,
        decision.retry_after_seconds,
    )
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=f"Too many {scope.name} attempts. Try again in {decision.retry_after_seconds} second(s).",
        headers={"Retry-After": str(decision.retry_after_seconds)},
    )


def clear_rate_limiter() -> None:
    _limiter.clear()

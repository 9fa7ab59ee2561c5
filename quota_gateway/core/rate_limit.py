"""Per-caller HTTP rate limiting.

This guards the gateway's own HTTP surface (per API key, or client IP when
auth is disabled) and is independent of the quota ledger, which meters the
upstream completion provider per identity.

Windows are fixed and live in the counter store, so with the Redis backend
the limit is shared by every worker. An unreachable store rejects the
request (503) like the ledger does.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Annotated, Callable

from fastapi import Depends, Header, HTTPException, Request, status

from quota_gateway.adapters.store.base import AbstractCounterStore
from quota_gateway.api.dependencies import get_counter_store
from quota_gateway.core.config import settings
from quota_gateway.core.logging import hash_for_log

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window resets.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class FixedWindowRateLimiter:
    """Fixed-window limiter storing one expiring counter per caller and window."""

    def __init__(
        self,
        store: AbstractCounterStore,
        *,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._store = store
        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock

    async def consume(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and decide whether it may proceed.

        Raises:
            ValueError: If key is empty.
            StoreUnavailableError: If the counter store is unreachable.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        window_start = int(now // self._window_seconds) * self._window_seconds
        reset_at = window_start + self._window_seconds

        count = await self._store.increment(
            f"http:rl:{hash_for_log(key)}:{window_start}",
            ttl_seconds=self._window_seconds,
        )

        if count <= self._limit:
            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                remaining=self._limit - count,
                reset_at=reset_at,
                retry_after_seconds=None,
            )

        return RateLimitResult(
            allowed=False,
            limit=self._limit,
            remaining=0,
            reset_at=reset_at,
            retry_after_seconds=max(0, int(math.ceil(reset_at - now))),
        )


def _build_rate_limit_key(request: Request, x_api_key: str | None) -> str:
    if x_api_key:
        return f"api_key:{x_api_key}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


async def enforce_rate_limit(
    request: Request,
    store: Annotated[AbstractCounterStore, Depends(get_counter_store)],
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency consuming one unit of the caller's HTTP budget.

    Raises:
        HTTPException: 429 Too Many Requests when the window is exhausted.
    """

    if not settings.app.rate_limit_enabled:
        return

    limiter = FixedWindowRateLimiter(
        store,
        limit=settings.app.rate_limit_requests,
        window_seconds=settings.app.rate_limit_window_seconds,
    )
    key = _build_rate_limit_key(request, x_api_key)

    result = await limiter.consume(key)
    if result.allowed:
        return

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_type": "api_key" if x_api_key else "ip",
            "key_hash": hash_for_log(key),
            "limit": result.limit,
            "window_s": settings.app.rate_limit_window_seconds,
            "retry_after_s": retry_after,
        },
    )

    headers: dict[str, str] = {}
    if settings.app.rate_limit_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        headers["X-RateLimit-Reset"] = str(result.reset_at)

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Try again later.",
        headers=headers or None,
    )

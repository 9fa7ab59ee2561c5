"""Charge actual token usage after a completion call returns.

Each token write refreshes its key's expiry in the same atomic step, so a
failure partway through leaves every key already written still expiring.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from quota_gateway.adapters.store.base import AbstractCounterStore
from quota_gateway.core.errors import StoreUnavailableError
from quota_gateway.core.logging import hash_for_log
from quota_gateway.services.buckets import TTL_SECONDS, Granularity, Scope, counter_key, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    success: bool
    error: str | None = None


class UsageReconciler:
    """Adds actual token usage to the global and per-identity token counters."""

    def __init__(
        self,
        store: AbstractCounterStore,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._clock = clock

    async def record(self, identity: str, actual_tokens: int) -> ReconcileResult:
        """Increment global tpm/tpd and identity tpd by ``actual_tokens``.

        Store failures are logged and reported, not raised: the response has
        already been served and the tokens simply go unaccounted.

        Raises:
            ValueError: If actual_tokens is negative.
        """
        if actual_tokens < 0:
            raise ValueError("actual_tokens must be >= 0")
        if actual_tokens == 0:
            return ReconcileResult(success=True)

        now = self._clock()
        minute, day = Granularity.MINUTE, Granularity.DAY
        writes = (
            (counter_key(Scope.GLOBAL, "tpm", None, minute, now), TTL_SECONDS[minute]),
            (counter_key(Scope.GLOBAL, "tpd", None, day, now), TTL_SECONDS[day]),
            (counter_key(Scope.IDENTITY, "tpd", identity, day, now), TTL_SECONDS[day]),
        )

        try:
            for key, ttl in writes:
                await self._store.increment_by(key, actual_tokens, ttl_seconds=ttl)
        except StoreUnavailableError as exc:
            logger.error(
                "usage.record_failed",
                extra={
                    "identity_hash": hash_for_log(identity),
                    "actual_tokens": actual_tokens,
                    "error_code": exc.code,
                },
            )
            return ReconcileResult(success=False, error=exc.message)

        logger.debug(
            "usage.recorded",
            extra={"identity_hash": hash_for_log(identity), "actual_tokens": actual_tokens},
        )
        return ReconcileResult(success=True)

"""Two-layer quota ledger.

Layer 1 is the upstream provider's global budget shared by every identity
(requests and tokens, per minute and per day). Layer 2 is the per-identity
daily allowance granted by this service.

Admission reserves request capacity immediately but never touches token
counters: token usage is only known after the completion call returns and is
charged by ``UsageReconciler``. Token dimensions are still *checked* here,
against current usage plus the caller's estimate.

There is no ledger-level lock. Each dimension's decision is followed only
by atomic increments of the counters this call owns, so concurrent callers
can skew the reported remaining quota but never corrupt a counter.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Callable

from quota_gateway.adapters.store.base import AbstractCounterStore
from quota_gateway.core.config import QuotaSettings
from quota_gateway.core.errors import StoreUnavailableError
from quota_gateway.core.logging import hash_for_log
from quota_gateway.services.buckets import (
    TTL_SECONDS,
    Granularity,
    Scope,
    counter_key,
    identity_key_pattern,
    utc_now,
)

logger = logging.getLogger(__name__)

STORE_UNAVAILABLE_REASON = "store_unavailable"


@dataclass(frozen=True)
class LimitSet:
    """Ceilings for every quota dimension."""

    rpm: int
    rpd: int
    tpm: int
    tpd: int
    identity_rpd: int
    identity_tpd: int

    @classmethod
    def from_settings(cls, quota: QuotaSettings) -> "LimitSet":
        return cls(
            rpm=quota.global_rpm,
            rpd=quota.global_rpd,
            tpm=quota.global_tpm,
            tpd=quota.global_tpd,
            identity_rpd=quota.identity_rpd,
            identity_tpd=quota.identity_tpd,
        )

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class UsageSnapshot:
    """Counter values read at one point in time."""

    rpm: int = 0
    rpd: int = 0
    tpm: int = 0
    tpd: int = 0
    identity_rpd: int = 0
    identity_tpd: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def remaining_quota(usage: UsageSnapshot, limits: LimitSet) -> dict[str, int]:
    """Remaining capacity per dimension, floored at zero."""
    used = usage.as_dict()
    return {name: max(0, limit - used[name]) for name, limit in limits.as_dict().items()}


@dataclass(frozen=True)
class QuotaStatus:
    usage: UsageSnapshot
    limits: LimitSet

    def remaining(self) -> dict[str, int]:
        return remaining_quota(self.usage, self.limits)


@dataclass(frozen=True)
class AdmissionResult:
    """Outcome of ``QuotaLedger.admit``.

    Attributes:
        allowed: Whether the request may proceed.
        usage: Snapshot taken before the decision, plus the request
            increments when allowed.
        limits: Effective limits used for the decision.
        reason: Machine-readable name of the tripped dimension, or
            ``store_unavailable``; None when allowed.
        message: Human-readable explanation of ``reason``.
    """

    allowed: bool
    usage: UsageSnapshot
    limits: LimitSet
    reason: str | None = None
    message: str | None = None

    def remaining(self) -> dict[str, int]:
        return remaining_quota(self.usage, self.limits)


@dataclass(frozen=True)
class LimitCheck:
    """One quota dimension in the admission precedence list.

    Request dimensions reject once usage has reached the limit. Token
    dimensions reject when usage plus the estimate would exceed it.
    """

    dimension: str
    field: str
    counts_tokens: bool
    message: str

    def exceeded(self, usage: UsageSnapshot, limits: LimitSet, estimated_tokens: int) -> bool:
        used = getattr(usage, self.field)
        limit = getattr(limits, self.field)
        if self.counts_tokens:
            return used + estimated_tokens > limit
        return used >= limit


# Evaluated in order; the first failing check decides the rejection reason.
LIMIT_CHECKS: tuple[LimitCheck, ...] = (
    LimitCheck("global_rpm", "rpm", False, "Global requests per minute limit exceeded"),
    LimitCheck("global_rpd", "rpd", False, "Global requests per day limit exceeded"),
    LimitCheck("global_tpm", "tpm", True, "Global tokens per minute limit exceeded"),
    LimitCheck("global_tpd", "tpd", True, "Global tokens per day limit exceeded"),
    LimitCheck("identity_rpd", "identity_rpd", False, "Requests per day limit exceeded for this identity"),
    LimitCheck("identity_tpd", "identity_tpd", True, "Tokens per day limit exceeded for this identity"),
)


@dataclass(frozen=True)
class CounterKeys:
    """Store keys of every counter touched for one identity at one instant."""

    rpm: str
    rpd: str
    tpm: str
    tpd: str
    identity_rpd: str
    identity_tpd: str
    identity_bonus_tpd: str

    @classmethod
    def build(cls, identity: str, now: datetime) -> "CounterKeys":
        minute, day = Granularity.MINUTE, Granularity.DAY
        return cls(
            rpm=counter_key(Scope.GLOBAL, "rpm", None, minute, now),
            rpd=counter_key(Scope.GLOBAL, "rpd", None, day, now),
            tpm=counter_key(Scope.GLOBAL, "tpm", None, minute, now),
            tpd=counter_key(Scope.GLOBAL, "tpd", None, day, now),
            identity_rpd=counter_key(Scope.IDENTITY, "rpd", identity, day, now),
            identity_tpd=counter_key(Scope.IDENTITY, "tpd", identity, day, now),
            identity_bonus_tpd=counter_key(Scope.IDENTITY, "bonus_tpd", identity, day, now),
        )


class QuotaLedger:
    """Admission control over the global and per-identity counters."""

    def __init__(
        self,
        store: AbstractCounterStore,
        limits: LimitSet,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._limits = limits
        self._clock = clock

    @property
    def limits(self) -> LimitSet:
        return self._limits

    async def _read(self, keys: CounterKeys) -> tuple[UsageSnapshot, LimitSet]:
        rpm, rpd, tpm, tpd, identity_rpd, identity_tpd, bonus = await asyncio.gather(
            self._store.get(keys.rpm),
            self._store.get(keys.rpd),
            self._store.get(keys.tpm),
            self._store.get(keys.tpd),
            self._store.get(keys.identity_rpd),
            self._store.get(keys.identity_tpd),
            self._store.get(keys.identity_bonus_tpd),
        )
        usage = UsageSnapshot(
            rpm=rpm,
            rpd=rpd,
            tpm=tpm,
            tpd=tpd,
            identity_rpd=identity_rpd,
            identity_tpd=identity_tpd,
        )
        limits = self._limits
        if bonus:
            limits = replace(limits, identity_tpd=limits.identity_tpd + bonus)
        return usage, limits

    async def status(self, identity: str) -> QuotaStatus:
        """Read current usage without side effects.

        Raises:
            StoreUnavailableError: If the store cannot be read.
        """
        usage, limits = await self._read(CounterKeys.build(identity, self._clock()))
        return QuotaStatus(usage=usage, limits=limits)

    async def admit(self, identity: str, estimated_tokens: int) -> AdmissionResult:
        """Check every dimension and reserve one request slot on success.

        Never raises for an exhausted quota or an unreachable store; both
        come back as ``allowed=False``.
        """
        if estimated_tokens < 0:
            raise ValueError("estimated_tokens must be >= 0")

        keys = CounterKeys.build(identity, self._clock())
        identity_hash = hash_for_log(identity)

        try:
            usage, limits = await self._read(keys)
        except StoreUnavailableError:
            logger.error(
                "quota.store_unavailable",
                extra={"identity_hash": identity_hash, "phase": "read"},
            )
            return AdmissionResult(
                allowed=False,
                usage=UsageSnapshot(),
                limits=self._limits,
                reason=STORE_UNAVAILABLE_REASON,
                message="Quota store unavailable",
            )

        for check in LIMIT_CHECKS:
            if check.exceeded(usage, limits, estimated_tokens):
                logger.warning(
                    "quota.rejected",
                    extra={
                        "identity_hash": identity_hash,
                        "dimension": check.dimension,
                        "estimated_tokens": estimated_tokens,
                        "used": getattr(usage, check.field),
                        "limit": getattr(limits, check.field),
                    },
                )
                return AdmissionResult(
                    allowed=False,
                    usage=usage,
                    limits=limits,
                    reason=check.dimension,
                    message=check.message,
                )

        minute_ttl = TTL_SECONDS[Granularity.MINUTE]
        day_ttl = TTL_SECONDS[Granularity.DAY]
        try:
            await self._store.increment(keys.rpm, ttl_seconds=minute_ttl)
            await self._store.increment(keys.rpd, ttl_seconds=day_ttl)
            await self._store.increment(keys.identity_rpd, ttl_seconds=day_ttl)
        except StoreUnavailableError:
            logger.error(
                "quota.store_unavailable",
                extra={"identity_hash": identity_hash, "phase": "increment"},
            )
            return AdmissionResult(
                allowed=False,
                usage=usage,
                limits=limits,
                reason=STORE_UNAVAILABLE_REASON,
                message="Quota store unavailable",
            )

        admitted_usage = replace(
            usage,
            rpm=usage.rpm + 1,
            rpd=usage.rpd + 1,
            identity_rpd=usage.identity_rpd + 1,
        )
        logger.info(
            "quota.admitted",
            extra={
                "identity_hash": identity_hash,
                "estimated_tokens": estimated_tokens,
                "rpm": admitted_usage.rpm,
                "identity_rpd": admitted_usage.identity_rpd,
            },
        )
        return AdmissionResult(allowed=True, usage=admitted_usage, limits=limits)

    async def grant_tokens(self, identity: str, amount: int) -> QuotaStatus:
        """Raise today's identity token ceiling by ``amount``.

        Used by reward and purchase flows. The grant expires with the day
        bucket.

        Raises:
            ValueError: If amount is not positive.
            StoreUnavailableError: If the store cannot be written.
        """
        if amount < 1:
            raise ValueError("amount must be >= 1")
        keys = CounterKeys.build(identity, self._clock())
        await self._store.increment_by(
            keys.identity_bonus_tpd, amount, ttl_seconds=TTL_SECONDS[Granularity.DAY]
        )
        logger.info(
            "quota.tokens_granted",
            extra={"identity_hash": hash_for_log(identity), "amount": amount},
        )
        return await self.status(identity)

    async def reset(self, identity: str) -> list[str]:
        """Delete every counter owned by ``identity`` (admin/testing)."""
        deleted = await self._store.delete_matching(identity_key_pattern(identity))
        logger.warning(
            "quota.reset",
            extra={"identity_hash": hash_for_log(identity), "keys_deleted": len(deleted)},
        )
        return deleted

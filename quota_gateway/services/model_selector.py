"""Model tier selection with hysteresis.

Once global load crosses the trip threshold the degraded tier is pinned for
a cooldown window, whatever the load does meanwhile. After the window the
primary (or caller-preferred) tier is served again unless load is still
over the trip threshold, which re-arms the cooldown. The expired deadline
is cleared once load falls below the lower recovery threshold.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from quota_gateway.core.config import ModelSettings
from quota_gateway.core.errors import StoreUnavailableError
from quota_gateway.core.logging import hash_for_log
from quota_gateway.services.quota_ledger import QuotaLedger, QuotaStatus

logger = logging.getLogger(__name__)


class FallbackState:
    """Process-wide fallback deadline (UNIX seconds) or None.

    The deadline is a single value swapped under a lock, so readers always
    see a committed value. Concurrent trips are last-writer-wins.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._deadline: float | None = None

    @property
    def deadline(self) -> float | None:
        with self._lock:
            return self._deadline

    def is_active(self, now: float) -> bool:
        with self._lock:
            return self._deadline is not None and now < self._deadline

    def trip(self, until: float) -> None:
        with self._lock:
            self._deadline = until

    def clear(self) -> None:
        with self._lock:
            self._deadline = None


def load_fractions(status: QuotaStatus) -> tuple[float, float]:
    """Return global (tpd, rpm) usage as fractions of their limits."""
    usage, limits = status.usage, status.limits
    return usage.tpd / limits.tpd, usage.rpm / limits.rpm


class ModelSelector:
    """Chooses between the primary and the degraded tier."""

    def __init__(
        self,
        ledger: QuotaLedger,
        model_settings: ModelSettings,
        *,
        state: FallbackState | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ledger = ledger
        self._settings = model_settings
        self._state = state or FallbackState()
        self._clock = clock

    @property
    def primary(self) -> str:
        return self._settings.primary

    @property
    def degraded(self) -> str:
        return self._settings.degraded

    @property
    def state(self) -> FallbackState:
        return self._state

    async def select(self, identity: str, preferred_tier: str | None = None) -> str:
        """Return the tier to use for the next completion call.

        Args:
            identity: Requesting identity (used for the status read and logs).
            preferred_tier: Tier to use when no fallback condition applies.
        """
        try:
            status = await self._ledger.status(identity)
        except StoreUnavailableError:
            # Load unknown: prefer the cheaper tier, leave the deadline alone.
            logger.warning(
                "model.status_unavailable",
                extra={"identity_hash": hash_for_log(identity), "tier": self.degraded},
            )
            return self.degraded

        now = self._clock()
        deadline = self._state.deadline
        if deadline is not None and now < deadline:
            return self.degraded

        tpd_fraction, rpm_fraction = load_fractions(status)
        trip = self._settings.trip_threshold
        if tpd_fraction > trip or rpm_fraction > trip:
            self._state.trip(now + self._settings.cooldown_seconds)
            logger.warning(
                "model.fallback_tripped",
                extra={
                    "tpd_fraction": round(tpd_fraction, 4),
                    "rpm_fraction": round(rpm_fraction, 4),
                    "cooldown_s": self._settings.cooldown_seconds,
                    "tier": self.degraded,
                },
            )
            return self.degraded

        recovery = self._settings.recovery_threshold
        if deadline is not None and tpd_fraction < recovery and rpm_fraction < recovery:
            self._state.clear()
            logger.info(
                "model.fallback_cleared",
                extra={
                    "tpd_fraction": round(tpd_fraction, 4),
                    "rpm_fraction": round(rpm_fraction, 4),
                },
            )

        return preferred_tier or self.primary

    def fallback_active(self) -> bool:
        return self._state.is_active(self._clock())

    def recommend(self, status: QuotaStatus) -> str:
        """Tier a client should expect, judged from daily token load only."""
        tpd_fraction, _ = load_fractions(status)
        if tpd_fraction > self._settings.trip_threshold:
            return self.degraded
        return self.primary

"""Counter store interface.

Keys are opaque strings to the store; it knows nothing about buckets or
limits. Every operation is atomic at the single-key level.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractCounterStore(ABC):
    """Interface for atomic, expiring integer counters.

    Implementations raise ``StoreUnavailableError`` for any backend failure.
    """

    @abstractmethod
    async def increment(self, key: str, *, ttl_seconds: int | None = None) -> int:
        """Atomically add 1 to ``key`` and return the new value.

        A missing key is created at 1. ``ttl_seconds`` is applied only when
        this call created the key.
        """
        raise NotImplementedError

    @abstractmethod
    async def increment_by(self, key: str, amount: int, *, ttl_seconds: int | None = None) -> int:
        """Atomically add ``amount`` to ``key`` and return the new value.

        When ``ttl_seconds`` is given the expiry is (re)set in the same atomic
        step as the write, so the key can never be left without one.
        """
        raise NotImplementedError

    @abstractmethod
    async def get(self, key: str) -> int:
        """Return the current value, or 0 if the key is absent or expired."""
        raise NotImplementedError

    @abstractmethod
    async def set_expiry(self, key: str, seconds: int) -> None:
        """(Re)set the time-to-live of an existing key."""
        raise NotImplementedError

    @abstractmethod
    async def delete_matching(self, pattern: str) -> list[str]:
        """Delete every key matching a glob ``pattern`` and return them."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release backend resources (no-op by default)."""
        return None

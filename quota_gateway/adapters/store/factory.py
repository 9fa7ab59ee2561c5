"""Factory pattern for creating counter store instances."""

from quota_gateway.adapters.store.base import AbstractCounterStore
from quota_gateway.adapters.store.in_memory import InMemoryCounterStore
from quota_gateway.adapters.store.redis_store import RedisCounterStore
from quota_gateway.core.config import StoreSettings, settings
from quota_gateway.core.errors import ValidationAppError


def create_counter_store(store_settings: StoreSettings | None = None) -> AbstractCounterStore:
    """Instantiate the configured counter store backend.

    Args:
        store_settings: Optional override; defaults to ``settings.store``.

    Returns:
        AbstractCounterStore: Configured store.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "memory":
        return InMemoryCounterStore()

    if backend == "redis":
        return RedisCounterStore.from_url(
            cfg.redis_url,
            socket_timeout=cfg.socket_timeout_seconds,
        )

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown counter store backend: '{backend}'. Supported backends: memory, redis",
    )

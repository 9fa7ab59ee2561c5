"""Redis-backed counter store.

Relies on Redis atomicity (single INCR/INCRBY commands, or a short Lua script
when a write carries an expiry), so concurrent workers sharing one Redis
never lose an update. No retries happen here; transport-level retries
belong to the redis client configuration.
"""

from __future__ import annotations

import logging
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from quota_gateway.adapters.store.base import AbstractCounterStore
from quota_gateway.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

# A counter write and its expiry land together or not at all.
# KEYS: counter  ARGV: ttl_seconds
_LUA_INCR_TTL_ON_CREATE = r"""
local value = redis.call('INCR', KEYS[1])
if value == 1 then
  redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return value
"""

# KEYS: counter  ARGV: amount, ttl_seconds
_LUA_INCRBY_TTL = r"""
local value = redis.call('INCRBY', KEYS[1], ARGV[1])
redis.call('EXPIRE', KEYS[1], ARGV[2])
return value
"""


def _safe_redis_url(url: str) -> str:
    """Mask credentials in a Redis URL for logging."""
    if "://" not in url:
        return url
    scheme, rest = url.split("://", 1)
    if "@" not in rest:
        return url
    _, host = rest.split("@", 1)
    return f"{scheme}://***@{host}"


class RedisCounterStore(AbstractCounterStore):
    """Counter store using ``redis.asyncio``."""

    def __init__(self, client: Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str, *, socket_timeout: float = 2.0) -> "RedisCounterStore":
        """Build a store from a connection URL.

        Args:
            url: ``redis://`` or ``rediss://`` (TLS) URL.
            socket_timeout: Seconds before a command is considered failed.
        """
        client = Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )
        logger.info("store.redis_configured", extra={"redis_url": _safe_redis_url(url)})
        return cls(client)

    def _unavailable(self, op: str, key: str, exc: Exception) -> StoreUnavailableError:
        logger.error(
            "store.redis_error",
            extra={"op": op, "counter_key": key, "error_type": type(exc).__name__},
        )
        return StoreUnavailableError(
            message=f"Counter store error during {op}",
            details={"context": {"op": op}},
        )

    async def increment(self, key: str, *, ttl_seconds: int | None = None) -> int:
        try:
            if ttl_seconds is None:
                return int(await self._redis.incr(key))
            return int(await self._redis.eval(_LUA_INCR_TTL_ON_CREATE, 1, key, ttl_seconds))
        except (RedisError, OSError) as exc:
            raise self._unavailable("increment", key, exc) from exc

    async def increment_by(self, key: str, amount: int, *, ttl_seconds: int | None = None) -> int:
        if amount < 0:
            raise ValueError("amount must be >= 0")
        try:
            if ttl_seconds is None:
                return int(await self._redis.incrby(key, amount))
            return int(await self._redis.eval(_LUA_INCRBY_TTL, 1, key, amount, ttl_seconds))
        except (RedisError, OSError) as exc:
            raise self._unavailable("increment_by", key, exc) from exc

    async def get(self, key: str) -> int:
        try:
            value: Any = await self._redis.get(key)
        except (RedisError, OSError) as exc:
            raise self._unavailable("get", key, exc) from exc
        return int(value) if value else 0

    async def set_expiry(self, key: str, seconds: int) -> None:
        try:
            await self._redis.expire(key, seconds)
        except (RedisError, OSError) as exc:
            raise self._unavailable("set_expiry", key, exc) from exc

    async def delete_matching(self, pattern: str) -> list[str]:
        try:
            keys = [key async for key in self._redis.scan_iter(match=pattern, count=500)]
            if keys:
                await self._redis.delete(*keys)
            return keys
        except (RedisError, OSError) as exc:
            raise self._unavailable("delete_matching", pattern, exc) from exc

    async def close(self) -> None:
        await self._redis.aclose()

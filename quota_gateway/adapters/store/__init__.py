"""Counter store adapters.

The quota services depend only on ``AbstractCounterStore`` so the backing
store can be a process-local dictionary (tests, single worker) or Redis
(shared across workers) without changing the ledger.
"""

from quota_gateway.adapters.store.base import AbstractCounterStore
from quota_gateway.adapters.store.factory import create_counter_store
from quota_gateway.adapters.store.in_memory import InMemoryCounterStore
from quota_gateway.adapters.store.redis_store import RedisCounterStore

__all__ = [
    "AbstractCounterStore",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "create_counter_store",
]

"""Process-wide service wiring for the HTTP layer.

Services are built lazily and cached in-module so counters and the fallback
state survive across requests. Tests swap them through
``app.dependency_overrides`` or ``reset_services()``.
"""

from __future__ import annotations

from functools import lru_cache

from quota_gateway.adapters.llm.base import AbstractLLMClient
from quota_gateway.adapters.llm.factory import create_llm_client
from quota_gateway.adapters.store.base import AbstractCounterStore
from quota_gateway.adapters.store.factory import create_counter_store
from quota_gateway.core.config import settings
from quota_gateway.services.model_selector import ModelSelector
from quota_gateway.services.quota_ledger import LimitSet, QuotaLedger
from quota_gateway.services.request_router import RequestRouter
from quota_gateway.services.usage_reconciler import UsageReconciler


@lru_cache(maxsize=1)
def get_counter_store() -> AbstractCounterStore:
    return create_counter_store(settings.store)


@lru_cache(maxsize=1)
def get_quota_ledger() -> QuotaLedger:
    return QuotaLedger(get_counter_store(), LimitSet.from_settings(settings.quota))


@lru_cache(maxsize=1)
def get_usage_reconciler() -> UsageReconciler:
    return UsageReconciler(get_counter_store())


@lru_cache(maxsize=1)
def get_model_selector() -> ModelSelector:
    return ModelSelector(get_quota_ledger(), settings.models)


@lru_cache(maxsize=1)
def get_llm_client() -> AbstractLLMClient:
    """Raises ConfigurationMissingError when no provider key is set."""
    return create_llm_client(settings.llm)


def get_request_router() -> RequestRouter:
    return RequestRouter(
        ledger=get_quota_ledger(),
        selector=get_model_selector(),
        reconciler=get_usage_reconciler(),
        llm=get_llm_client(),
    )


def reset_services() -> None:
    """Drop cached services so the next request rebuilds them."""
    for factory in (
        get_counter_store,
        get_quota_ledger,
        get_usage_reconciler,
        get_model_selector,
        get_llm_client,
    ):
        factory.cache_clear()

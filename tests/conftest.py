"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any import that loads settings, so the
suite never depends on a local .env file or real credentials.
"""

import os
from datetime import datetime, timedelta, timezone

os.environ["APP_ENV"] = "testing"

os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("LLM_API_KEY", "test-key-123")
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from quota_gateway.adapters.store.in_memory import InMemoryCounterStore
from quota_gateway.core.config import ModelSettings
from quota_gateway.services.model_selector import ModelSelector
from quota_gateway.services.quota_ledger import LimitSet, QuotaLedger
from quota_gateway.services.usage_reconciler import UsageReconciler


class FakeClock:
    """Deterministic UTC clock shared by the store, ledger and selector."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, 10, 30, 15, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def time(self) -> float:
        return self.current.timestamp()

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


# Limits from the reference scenario: a small upstream tier and a free identity plan.
SCENARIO_LIMITS = LimitSet(
    rpm=30,
    rpd=14400,
    tpm=6000,
    tpd=500000,
    identity_rpd=50,
    identity_tpd=20000,
)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryCounterStore:
    return InMemoryCounterStore(clock=clock.time)


@pytest.fixture
def limits() -> LimitSet:
    return SCENARIO_LIMITS


@pytest.fixture
def ledger(store: InMemoryCounterStore, limits: LimitSet, clock: FakeClock) -> QuotaLedger:
    return QuotaLedger(store, limits, clock=clock.now)


@pytest.fixture
def reconciler(store: InMemoryCounterStore, clock: FakeClock) -> UsageReconciler:
    return UsageReconciler(store, clock=clock.now)


@pytest.fixture
def model_settings() -> ModelSettings:
    return ModelSettings(
        primary="primary-model",
        degraded="degraded-model",
        trip_threshold=0.70,
        recovery_threshold=0.50,
        cooldown_seconds=300,
    )


@pytest.fixture
def selector(ledger: QuotaLedger, model_settings: ModelSettings, clock: FakeClock) -> ModelSelector:
    return ModelSelector(ledger, model_settings, clock=clock.time)

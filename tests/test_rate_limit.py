"""Unit tests for the per-caller HTTP rate limiter."""

from unittest.mock import Mock, patch

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from quota_gateway.adapters.store.in_memory import InMemoryCounterStore
from quota_gateway.api.dependencies import get_counter_store
from quota_gateway.core.exception_handlers import setup_exception_handlers
from quota_gateway.core.rate_limit import FixedWindowRateLimiter, enforce_rate_limit


def _limiter(limit: int, window_seconds: int, now: float = 1000.0):
    clock = Mock(return_value=now)
    store = InMemoryCounterStore(clock=clock)
    return FixedWindowRateLimiter(store, limit=limit, window_seconds=window_seconds, clock=clock), clock


@pytest.mark.asyncio
async def test_allows_up_to_limit_in_same_window() -> None:
    limiter, _ = _limiter(limit=3, window_seconds=60)

    assert (await limiter.consume("k")).allowed is True
    assert (await limiter.consume("k")).allowed is True
    result = await limiter.consume("k")
    assert result.allowed is True
    assert result.remaining == 0


@pytest.mark.asyncio
async def test_blocks_when_over_limit() -> None:
    limiter, _ = _limiter(limit=2, window_seconds=60, now=1010.0)

    await limiter.consume("k")
    await limiter.consume("k")
    blocked = await limiter.consume("k")

    assert blocked.allowed is False
    assert blocked.remaining == 0
    # Window [960, 1020) resets 10 seconds from now.
    assert blocked.reset_at == 1020
    assert blocked.retry_after_seconds == 10


@pytest.mark.asyncio
async def test_resets_on_new_window() -> None:
    limiter, clock = _limiter(limit=1, window_seconds=10)

    assert (await limiter.consume("k")).allowed is True
    assert (await limiter.consume("k")).allowed is False

    clock.return_value = 1010.0
    assert (await limiter.consume("k")).allowed is True


@pytest.mark.asyncio
async def test_isolated_by_key() -> None:
    limiter, _ = _limiter(limit=1, window_seconds=60)

    assert (await limiter.consume("k1")).allowed is True
    assert (await limiter.consume("k1")).allowed is False
    assert (await limiter.consume("k2")).allowed is True


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit": 0, "window_seconds": 60},
        {"limit": 1, "window_seconds": 0},
    ],
)
def test_invalid_configuration_raises(kwargs) -> None:
    with pytest.raises(ValueError):
        FixedWindowRateLimiter(InMemoryCounterStore(), **kwargs)


@pytest.mark.asyncio
async def test_empty_key_raises() -> None:
    limiter, _ = _limiter(limit=1, window_seconds=60)

    with pytest.raises(ValueError):
        await limiter.consume("")


@pytest.fixture
def limited_client():
    app = FastAPI()
    setup_exception_handlers(app)
    store = InMemoryCounterStore()

    @app.get("/limited", dependencies=[Depends(enforce_rate_limit)])
    async def limited() -> dict:
        return {"ok": True}

    app.dependency_overrides[get_counter_store] = lambda: store
    return TestClient(app)


@patch("quota_gateway.core.rate_limit.settings")
def test_dependency_returns_429_with_headers(mock_settings, limited_client: TestClient) -> None:
    mock_settings.app.rate_limit_enabled = True
    mock_settings.app.rate_limit_requests = 2
    mock_settings.app.rate_limit_window_seconds = 60
    mock_settings.app.rate_limit_include_headers = True
    headers = {"X-API-Key": "caller-a"}

    assert limited_client.get("/limited", headers=headers).status_code == 200
    assert limited_client.get("/limited", headers=headers).status_code == 200
    blocked = limited_client.get("/limited", headers=headers)

    assert blocked.status_code == 429
    assert blocked.headers["X-RateLimit-Limit"] == "2"
    assert blocked.headers["X-RateLimit-Remaining"] == "0"
    assert "Retry-After" in blocked.headers

    assert limited_client.get("/limited", headers={"X-API-Key": "caller-b"}).status_code == 200


@patch("quota_gateway.core.rate_limit.settings")
def test_dependency_is_noop_when_disabled(mock_settings, limited_client: TestClient) -> None:
    mock_settings.app.rate_limit_enabled = False

    for _ in range(5):
        assert limited_client.get("/limited").status_code == 200

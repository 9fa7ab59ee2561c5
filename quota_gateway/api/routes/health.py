from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from quota_gateway.adapters.store.base import AbstractCounterStore
from quota_gateway.api.dependencies import get_counter_store

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe; does not touch the counter store."""

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(
    store: Annotated[AbstractCounterStore, Depends(get_counter_store)],
) -> dict:
    """Readiness probe.

    Performs one counter read so a load balancer stops routing traffic
    when quota state is unreachable (which would reject every request).
    StoreUnavailableError surfaces as 503 through the global handlers.
    """

    await store.get("health:probe::")
    return {"status": "ready"}

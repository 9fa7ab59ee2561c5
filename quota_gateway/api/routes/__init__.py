from __future__ import annotations

from quota_gateway.api.routes.completions import router as completions_router
from quota_gateway.api.routes.health import router as health_router
from quota_gateway.api.routes.quota import router as quota_router

__all__ = ["completions_router", "health_router", "quota_router"]

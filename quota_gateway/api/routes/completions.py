from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from quota_gateway.api.dependencies import get_request_router
from quota_gateway.core.auth import verify_api_key
from quota_gateway.core.config import settings
from quota_gateway.core.errors import LimitExceededError, StoreUnavailableError, ValidationAppError
from quota_gateway.core.rate_limit import enforce_rate_limit
from quota_gateway.schemas.quota import RemainingQuota, RouteModelRequest, RouteModelResponse
from quota_gateway.services.quota_ledger import STORE_UNAVAILABLE_REASON
from quota_gateway.services.request_router import CompletionRequest, RequestRouter

router = APIRouter(tags=["Completions"])


@router.post(
    "/route-model",
    response_model=RouteModelResponse,
    dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)],
)
async def route_model(
    body: RouteModelRequest,
    request_router: Annotated[RequestRouter, Depends(get_request_router)],
) -> RouteModelResponse:
    """Run a completion through the quota gate.

    The request is admitted against the global and per-identity quotas,
    served by the tier the model selector picks, and charged with the
    provider-reported token usage.

    Raises:
        LimitExceededError: 429 with the exhausted dimension and remaining quota.
        StoreUnavailableError: 503 when quota state cannot be read (fail closed).
        LLMAppError: 502 when the provider call fails after admission.
    """
    if len(body.prompt) + len(body.system_prompt) > settings.app.max_prompt_chars:
        raise ValidationAppError(
            code="prompt_too_long",
            message="Prompt exceeds the maximum allowed length",
            details={"limit": settings.app.max_prompt_chars},
        )

    result = await request_router.route(CompletionRequest(**body.model_dump()))

    if not result.success:
        if result.error == STORE_UNAVAILABLE_REASON:
            # Usage is unknown, so no remaining quota is reported.
            raise StoreUnavailableError(message=result.message or "Counter store unavailable")
        context = {"remaining_quota": result.remaining_quota}
        raise LimitExceededError(
            result.error or "unknown",
            message=result.message,
            details={"context": context},
        )

    return RouteModelResponse(
        response=result.response or "",
        model_used=result.model_used or "",
        tokens_used=result.tokens_used,
        remaining_quota=RemainingQuota(**result.remaining_quota),
    )

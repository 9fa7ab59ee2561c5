from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from quota_gateway.api.dependencies import get_model_selector, get_quota_ledger
from quota_gateway.core.auth import verify_api_key
from quota_gateway.core.rate_limit import enforce_rate_limit
from quota_gateway.schemas.quota import (
    IDENTITY_PATTERN,
    DimensionStatus,
    GrantTokensRequest,
    QuotaStatusResponse,
    ResetQuotaResponse,
)
from quota_gateway.services.model_selector import ModelSelector
from quota_gateway.services.quota_ledger import QuotaLedger, QuotaStatus

router = APIRouter(
    tags=["Quota"],
    dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)],
)

IdentityPath = Annotated[str, Path(pattern=IDENTITY_PATTERN)]

# Public names of the snapshot fields.
DIMENSION_LABELS = {
    "rpm": "requests_per_minute",
    "rpd": "requests_per_day",
    "tpm": "tokens_per_minute",
    "tpd": "tokens_per_day",
    "identity_rpd": "identity_requests_per_day",
    "identity_tpd": "identity_tokens_per_day",
}


def _build_status_response(identity: str, status: QuotaStatus, selector: ModelSelector) -> QuotaStatusResponse:
    usage = status.usage.as_dict()
    limits = status.limits.as_dict()
    remaining = status.remaining()
    quotas = {
        label: DimensionStatus(used=usage[name], limit=limits[name], remaining=remaining[name])
        for name, label in DIMENSION_LABELS.items()
    }
    return QuotaStatusResponse(
        identity=identity,
        quotas=quotas,
        recommended_model=selector.recommend(status),
        fallback_active=selector.fallback_active(),
    )


@router.get("/quota/{identity}", response_model=QuotaStatusResponse)
async def quota_status(
    identity: IdentityPath,
    ledger: Annotated[QuotaLedger, Depends(get_quota_ledger)],
    selector: Annotated[ModelSelector, Depends(get_model_selector)],
) -> QuotaStatusResponse:
    """Current usage, limits and remaining quota; no side effects."""
    status = await ledger.status(identity)
    return _build_status_response(identity, status, selector)


@router.post("/quota/{identity}/grant", response_model=QuotaStatusResponse)
async def grant_tokens(
    identity: IdentityPath,
    body: GrantTokensRequest,
    ledger: Annotated[QuotaLedger, Depends(get_quota_ledger)],
    selector: Annotated[ModelSelector, Depends(get_model_selector)],
) -> QuotaStatusResponse:
    """Add tokens to today's allowance of an identity (rewards, purchases)."""
    status = await ledger.grant_tokens(identity, body.tokens)
    return _build_status_response(identity, status, selector)


@router.delete("/quota/{identity}", response_model=ResetQuotaResponse)
async def reset_quota(
    identity: IdentityPath,
    ledger: Annotated[QuotaLedger, Depends(get_quota_ledger)],
) -> ResetQuotaResponse:
    """Delete every counter of an identity (testing/support)."""
    deleted = await ledger.reset(identity)
    return ResetQuotaResponse(keys_deleted=deleted)

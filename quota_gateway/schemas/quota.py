"""Pydantic schemas for quota and completion routing endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

# Identities become part of counter keys; keep them free of separators and glob characters.
IDENTITY_PATTERN = r"^[A-Za-z0-9_.@-]{1,128}$"


class RemainingQuota(BaseModel):
    """Remaining capacity per dimension (limit minus usage, floored at 0)."""

    rpm: int = Field(..., description="Global requests left this minute.")
    rpd: int = Field(..., description="Global requests left today.")
    tpm: int = Field(..., description="Global tokens left this minute.")
    tpd: int = Field(..., description="Global tokens left today.")
    identity_rpd: int = Field(..., description="Requests left today for this identity.")
    identity_tpd: int = Field(..., description="Tokens left today for this identity.")


class RouteModelRequest(BaseModel):
    identity: str = Field(..., pattern=IDENTITY_PATTERN, description="End-user or tenant key.")
    prompt: str = Field(..., min_length=1, description="User prompt.")
    system_prompt: str = Field("", description="Optional system prompt, sent first.")
    max_tokens: int = Field(1000, ge=1, le=32768, description="Completion token cap.")
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    task_type: str = Field("general", max_length=64, description="Free-form label used in logs.")
    preferred_tier: str | None = Field(
        None,
        description="Tier to use when the selector is not forcing the degraded tier.",
    )


class RouteModelResponse(BaseModel):
    success: bool = True
    response: str
    model_used: str
    tokens_used: int
    remaining_quota: RemainingQuota


class DimensionStatus(BaseModel):
    used: int
    limit: int
    remaining: int


class QuotaStatusResponse(BaseModel):
    identity: str
    quotas: dict[str, DimensionStatus]
    recommended_model: str
    fallback_active: bool


class GrantTokensRequest(BaseModel):
    tokens: int = Field(..., ge=1, le=10_000_000, description="Tokens added to today's identity allowance.")


class ResetQuotaResponse(BaseModel):
    success: bool = True
    keys_deleted: list[str]

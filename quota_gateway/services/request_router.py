"""Quota-gated completion routing.

Sequence per request: estimate -> admit -> select tier -> complete ->
record actual usage. A rejected admission never reaches the provider. A
failed provider call is not reconciled and its request slot is not
refunded.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field

from quota_gateway.adapters.llm.base import AbstractLLMClient
from quota_gateway.core.errors import LLMAppError
from quota_gateway.core.logging import hash_for_log
from quota_gateway.services.model_selector import ModelSelector
from quota_gateway.services.quota_ledger import QuotaLedger
from quota_gateway.services.usage_reconciler import UsageReconciler

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

# Rough words-to-tokens ratio; not a tokenizer.
TOKENS_PER_WORD = 0.75


def estimate_tokens(text: str) -> int:
    """Estimate the token count of ``text`` as ceil(0.75 x word count)."""
    words = [word for word in _WHITESPACE.split(text) if word]
    return math.ceil(len(words) * TOKENS_PER_WORD)


@dataclass(frozen=True)
class CompletionRequest:
    identity: str
    prompt: str
    system_prompt: str = ""
    max_tokens: int = 1000
    temperature: float = 0.7
    task_type: str = "general"
    preferred_tier: str | None = None

    def messages(self) -> list[dict[str, str]]:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": self.prompt})
        return messages

    def estimated_tokens(self) -> int:
        """Prompt estimate plus the full completion allowance."""
        # Joined with a space so the last prompt word and the first system word stay separate.
        return estimate_tokens(f"{self.prompt} {self.system_prompt}") + self.max_tokens


@dataclass(frozen=True)
class RouteResult:
    success: bool
    remaining_quota: dict[str, int] = field(default_factory=dict)
    response: str | None = None
    model_used: str | None = None
    tokens_used: int = 0
    error: str | None = None
    message: str | None = None


class RequestRouter:
    """Orchestrates the quota services around one completion call."""

    def __init__(
        self,
        ledger: QuotaLedger,
        selector: ModelSelector,
        reconciler: UsageReconciler,
        llm: AbstractLLMClient,
    ) -> None:
        self._ledger = ledger
        self._selector = selector
        self._reconciler = reconciler
        self._llm = llm

    async def route(self, request: CompletionRequest) -> RouteResult:
        """Admit, run and account one completion request.

        Returns:
            RouteResult: ``success=False`` with the rejection reason when the
            ledger refuses the request.

        Raises:
            LLMAppError: If the provider call fails after admission.
        """
        identity_hash = hash_for_log(request.identity)
        estimated = request.estimated_tokens()

        admission = await self._ledger.admit(request.identity, estimated)
        if not admission.allowed:
            return RouteResult(
                success=False,
                remaining_quota=admission.remaining(),
                error=admission.reason,
                message=admission.message,
            )

        tier = await self._selector.select(request.identity, request.preferred_tier)

        try:
            completion = await self._llm.complete(
                request.messages(),
                model=tier,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )
        except LLMAppError:
            logger.error(
                "route.downstream_failed",
                extra={
                    "identity_hash": identity_hash,
                    "tier": tier,
                    "task_type": request.task_type,
                },
            )
            raise

        actual_tokens = completion.total_tokens
        if actual_tokens is None:
            logger.info(
                "route.usage_missing",
                extra={"tier": tier, "estimated_tokens": estimated},
            )
            actual_tokens = estimated

        await self._reconciler.record(request.identity, actual_tokens)

        logger.info(
            "route.completed",
            extra={
                "identity_hash": identity_hash,
                "task_type": request.task_type,
                "tier": tier,
                "estimated_tokens": estimated,
                "actual_tokens": actual_tokens,
            },
        )

        return RouteResult(
            success=True,
            remaining_quota=admission.remaining(),
            response=completion.content,
            model_used=tier,
            tokens_used=actual_tokens,
        )

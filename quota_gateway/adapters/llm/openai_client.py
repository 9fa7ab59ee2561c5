"""OpenAI-compatible chat completion client adapter."""

from typing import Any

from openai import AsyncOpenAI, OpenAIError

from quota_gateway.adapters.llm.base import AbstractLLMClient, Completion
from quota_gateway.core.errors import LLMAppError


class OpenAIClient(AbstractLLMClient):
    """Client for OpenAI-compatible chat completions (OpenAI, Groq, ...).

    Uses the official OpenAI Python SDK with async support.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        timeout_seconds: float = 45.0,
        top_p: float | None = None,
    ) -> None:
        """Initialize OpenAI async client.

        Args:
            api_key: Provider API key for authentication.
            base_url: Optional custom base URL (e.g. the Groq endpoint).
            timeout_seconds: Timeout for requests in seconds.
            top_p: Default nucleus sampling value sent with every call.
        """
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
        )
        self.top_p = top_p

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        **kwargs: Any,
    ) -> Completion:
        """Run a chat completion and surface the provider's token usage.

        Raises:
            LLMAppError: If the API call fails.
        """
        request_params: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if self.top_p is not None:
            request_params["top_p"] = self.top_p

        # Pass through additional parameters if provided
        allowed_params = {
            "top_p",
            "frequency_penalty",
            "presence_penalty",
            "seed",
        }
        for param in allowed_params:
            if param in kwargs:
                request_params[param] = kwargs[param]

        try:
            response = await self.client.chat.completions.create(**request_params)
        except OpenAIError as exc:
            raise LLMAppError(
                code="downstream_call_failed",
                message="Completion provider call failed",
                details={"model": model, "hint": type(exc).__name__},
            ) from exc

        content = ""
        if response.choices:
            content = (response.choices[0].message.content or "").strip()

        usage = getattr(response, "usage", None)
        total_tokens = getattr(usage, "total_tokens", None) if usage is not None else None

        return Completion(
            content=content,
            model=model,
            total_tokens=total_tokens if isinstance(total_tokens, int) else None,
        )

"""Integration tests for LLM adapter layer."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from openai import OpenAIError

from quota_gateway.adapters.llm import Completion, OpenAIClient, create_llm_client
from quota_gateway.core.config import LLMSettings
from quota_gateway.core.errors import ConfigurationMissingError, LLMAppError, ValidationAppError


def _mock_response(content: str | None, total_tokens: int | None = 87) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    response.usage = MagicMock(total_tokens=total_tokens) if total_tokens is not None else None
    return response


class TestOpenAIClientIntegration:
    """Test OpenAI client integration with mocked API calls."""

    @pytest.mark.asyncio
    async def test_complete_returns_content_and_usage(self) -> None:
        client = OpenAIClient(api_key="test-key-123")

        with patch.object(
            client.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_mock_response("  Quantum bits are...  "),
        ) as mock_create:
            result = await client.complete(
                [{"role": "user", "content": "Explain quantum computing"}],
                model="llama-3.1-8b-instant",
                temperature=0.2,
                max_tokens=500,
            )

        assert result == Completion(content="Quantum bits are...", model="llama-3.1-8b-instant", total_tokens=87)
        call_kwargs = mock_create.call_args.kwargs
        assert call_kwargs["model"] == "llama-3.1-8b-instant"
        assert call_kwargs["temperature"] == 0.2
        assert call_kwargs["max_tokens"] == 500
        assert "top_p" not in call_kwargs

    @pytest.mark.asyncio
    async def test_complete_sends_default_top_p_and_passthrough_params(self) -> None:
        client = OpenAIClient(api_key="test-key", top_p=0.9)

        with patch.object(
            client.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_mock_response("ok"),
        ) as mock_create:
            await client.complete([{"role": "user", "content": "hi"}], model="m", seed=7, logprobs=True)

        call_kwargs = mock_create.call_args.kwargs
        assert call_kwargs["top_p"] == 0.9
        assert call_kwargs["seed"] == 7
        assert "logprobs" not in call_kwargs

    @pytest.mark.asyncio
    async def test_missing_usage_reports_none(self) -> None:
        client = OpenAIClient(api_key="test-key")

        with patch.object(
            client.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_mock_response(None, total_tokens=None),
        ):
            result = await client.complete([{"role": "user", "content": "hi"}], model="m")

        assert result.content == ""
        assert result.total_tokens is None

    @pytest.mark.asyncio
    async def test_provider_error_becomes_llm_app_error(self) -> None:
        client = OpenAIClient(api_key="test-key")

        with patch.object(
            client.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            side_effect=OpenAIError("upstream exploded"),
        ):
            with pytest.raises(LLMAppError) as exc_info:
                await client.complete([{"role": "user", "content": "hi"}], model="compound-mini")

        assert exc_info.value.code == "downstream_call_failed"
        assert exc_info.value.details["model"] == "compound-mini"


class TestLLMFactory:
    """Test LLM client factory pattern."""

    def test_create_llm_client_with_settings(self) -> None:
        client = create_llm_client(
            LLMSettings(
                provider="openai",
                api_key="test-key",
                base_url="https://api.groq.com/openai/v1",
                timeout_seconds=30.0,
                top_p=0.8,
            )
        )

        assert isinstance(client, OpenAIClient)
        assert client.top_p == 0.8
        assert str(client.client.base_url).startswith("https://api.groq.com/openai/v1")

    def test_create_llm_client_defaults_to_global_settings(self) -> None:
        assert isinstance(create_llm_client(), OpenAIClient)

    def test_create_llm_client_missing_api_key_raises_error(self) -> None:
        with pytest.raises(ConfigurationMissingError) as exc:
            create_llm_client(LLMSettings(provider="openai", api_key=None))

        assert exc.value.code == "llm_missing_api_key"
        assert exc.value.details["setting"] == "LLM_API_KEY"

    def test_create_llm_client_unknown_provider_raises_error(self) -> None:
        with pytest.raises(ValidationAppError, match="Unknown LLM provider") as exc:
            create_llm_client(LLMSettings(provider="unknown-provider", api_key="test-key"))

        assert exc.value.code == "llm_unknown_provider"

"""Factory pattern for creating LLM client instances."""

from quota_gateway.adapters.llm.base import AbstractLLMClient
from quota_gateway.adapters.llm.openai_client import OpenAIClient
from quota_gateway.core.config import LLMSettings, settings
from quota_gateway.core.errors import ConfigurationMissingError, ValidationAppError


def create_llm_client(llm_settings: LLMSettings | None = None) -> AbstractLLMClient:
    """Instantiate the completion client for the configured provider.

    Args:
        llm_settings: Optional override; defaults to ``settings.llm``.

    Returns:
        AbstractLLMClient: Configured LLM client instance.

    Raises:
        ConfigurationMissingError: If the provider credential is absent.
        ValidationAppError: If the provider is unknown.
    """
    cfg = llm_settings or settings.llm
    provider = cfg.provider.lower()

    if provider == "openai":
        if not cfg.api_key:
            raise ConfigurationMissingError(
                code="llm_missing_api_key",
                message="Completion provider is not configured",
                details={"setting": "LLM_API_KEY"},
            )
        return OpenAIClient(
            api_key=cfg.api_key,
            base_url=cfg.base_url,
            timeout_seconds=cfg.timeout_seconds,
            top_p=cfg.top_p,
        )

    raise ValidationAppError(
        code="llm_unknown_provider",
        message=(
            f"Unknown LLM provider: '{provider}'. Supported providers: openai"
        ),
    )

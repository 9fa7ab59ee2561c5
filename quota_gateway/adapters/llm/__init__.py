"""LLM adapter layer - abstracts over completion providers."""

from quota_gateway.adapters.llm.base import AbstractLLMClient, Completion
from quota_gateway.adapters.llm.factory import create_llm_client
from quota_gateway.adapters.llm.openai_client import OpenAIClient

__all__ = [
    "AbstractLLMClient",
    "Completion",
    "OpenAIClient",
    "create_llm_client",
]

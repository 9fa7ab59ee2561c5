from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Completion:
	"""Text returned by a completion call and the tokens it consumed.

	``total_tokens`` is None when the provider did not report usage.
	"""

	content: str
	model: str
	total_tokens: int | None


class AbstractLLMClient(ABC):
	"""Interface for chat completion clients."""

	@abstractmethod
	async def complete(
		self,
		messages: list[dict[str, str]],
		*,
		model: str,
		temperature: float = 0.7,
		max_tokens: int = 1000,
		**kwargs: Any,
	) -> Completion:
		"""Run one chat completion.

		Args:
			messages: Chat messages (``role``/``content`` dicts), system first.
			model: Tier/model name to call.
			temperature: Sampling temperature.
			max_tokens: Completion token cap.
			**kwargs: Provider-specific options (e.g., top_p).

		Returns:
			Completion: Generated text plus reported token usage.

		Raises:
			LLMAppError: If the provider call fails.
		"""
		...

"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    hint: str
    dimension: str
    limit: int
    model: str
    setting: str
    context: dict[str, Any]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input validation fails."""


class LLMAppError(AppError):
    """Raised when the downstream completion call fails after admission."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class StoreUnavailableError(AppError):
    """Raised when the counter store cannot be reached or errors out."""

    def __init__(self, message: str = "Counter store unavailable", details: ErrorDetails | None = None) -> None:
        super().__init__(code="store_unavailable", message=message, details=details)


class LimitExceededError(AppError):
    """Raised when one named quota dimension is exhausted."""

    def __init__(self, dimension: str, message: str | None = None, details: ErrorDetails | None = None) -> None:
        merged: ErrorDetails = {"dimension": dimension}
        if details:
            merged.update(details)
        super().__init__(
            code="limit_exceeded",
            message=message or f"Quota exceeded: {dimension}",
            details=merged,
        )
        self.dimension = dimension


class ConfigurationMissingError(AppError):
    """Raised when a required credential or setting is absent."""

"""API key authentication for the gateway's HTTP surface.

Keys are validated against a comma-separated list from ``APP_API_KEYS``.
When authentication is required but no keys are configured the gateway
refuses requests (503) instead of silently running unauthenticated.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Header

from quota_gateway.core.config import settings
from quota_gateway.core.errors import AuthenticationAppError, ConfigurationMissingError
from quota_gateway.core.logging import hash_for_log

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Examples:
        >>> parse_api_keys("key1, key2 , key3 ")
        {'key1', 'key2', 'key3'}
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()

    return {key.strip() for key in keys_string.split(",") if key.strip()}


def validate_api_key(provided_key: str | None) -> None:
    """Validate the provided API key against configured keys.

    Raises:
        ConfigurationMissingError: If auth is required but no keys are configured.
        AuthenticationAppError: If the key is missing or unknown.
    """
    if not settings.app.api_key_required:
        return

    valid_keys = parse_api_keys(settings.app.api_keys)

    if not valid_keys:
        logger.error(
            "auth.keys_not_configured",
            extra={"auth_required": True},
        )
        raise ConfigurationMissingError(
            code="api_keys_not_configured",
            message="API key authentication is enabled but no keys are configured",
            details={
                "setting": "APP_API_KEYS",
                "hint": "Set APP_API_KEYS or disable auth with APP_API_KEY_REQUIRED=false",
            },
        )

    if not provided_key:
        logger.warning("auth.missing_key", extra={"auth_required": True})
        raise AuthenticationAppError(
            code="missing_api_key",
            message="Missing API key. Provide X-API-Key header.",
        )

    if provided_key not in valid_keys:
        logger.warning(
            "auth.invalid_key",
            extra={"api_key_hash": hash_for_log(provided_key)},
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


async def verify_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency for API key authentication.

    Usage:
        @router.post("/protected", dependencies=[Depends(verify_api_key)])
    """
    validate_api_key(x_api_key)
    if x_api_key:
        logger.debug("auth.success", extra={"api_key_hash": hash_for_log(x_api_key)})

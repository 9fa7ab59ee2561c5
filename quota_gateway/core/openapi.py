"""OpenAPI customization: API key security scheme and tag metadata."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "Completions",
        "description": "Quota-gated completion routing with automatic tier selection.",
    },
    {
        "name": "Quota",
        "description": "Usage inspection, token grants and admin resets per identity.",
    },
    {
        "name": "Health",
        "description": "Liveness and readiness checks.",
    },
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security.

    - Injects components.securitySchemes for API Key auth (header ``X-API-Key``)
    - Marks all operations as requiring API Key by default, then exempts health
      endpoints by setting ``security: []``
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Provide your API key via the X-API-Key header.",
            },
        )
        schema.setdefault("security", [{"ApiKeyAuth": []}])

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        tags.extend(tag for tag in TAGS_METADATA if tag["name"] not in existing_tag_names)

        for path, methods in schema.get("paths", {}).items():
            if path.startswith("/health"):
                for method_obj in methods.values():
                    if isinstance(method_obj, dict):
                        method_obj["security"] = []

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]

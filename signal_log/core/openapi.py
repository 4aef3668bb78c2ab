"""OpenAPI customization for the security admin API.

Adds the ``X-API-Key`` security scheme, marks every operation as requiring
it except the health check, and documents the rate limit response.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {"name": "Security", "description": "Security event log queries (admin API key required)."},
    {"name": "Health", "description": "Liveness checks."},
]

_RATE_LIMITED_RESPONSE = {
    "description": "Rate limit exceeded. Retry after the number of seconds in Retry-After.",
    "content": {"text/plain": {"schema": {"type": "string", "example": "Rate limit exceeded"}}},
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch ``app.openapi`` to add the security scheme, tags and 429 docs."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "AdminApiKey",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Admin key from SECURITY_ADMIN_API_KEYS.",
            },
        )
        schema.setdefault("security", [{"AdminApiKey": []}])

        tags = schema.setdefault("tags", [])
        existing = {t.get("name") for t in tags}
        tags.extend(tag for tag in _TAGS if tag["name"] not in existing)

        for path, methods in schema.get("paths", {}).items():
            for operation in methods.values():
                if not isinstance(operation, dict):
                    continue
                if path.endswith("/health"):
                    operation["security"] = []
                else:
                    operation.setdefault("responses", {}).setdefault("429", _RATE_LIMITED_RESPONSE)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]

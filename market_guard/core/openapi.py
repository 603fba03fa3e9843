"""OpenAPI customization.

Adds the bearer token security scheme, tag descriptions, and exempts the
health and public rate-limit endpoints from the global security requirement.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {
        "name": "Rate limit",
        "description": "Consume throttling budget under a named policy.",
    },
    {
        "name": "Admin",
        "description": "Limiter maintenance. Requires the admin role.",
    },
    {
        "name": "Health",
        "description": "Liveness checks.",
    },
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to document bearer auth."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "BearerAuth",
            {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
                "description": "Signed JWT with `sub` and optional `roles` claims.",
            },
        )
        schema.setdefault("security", [{"BearerAuth": []}])

        tags = schema.setdefault("tags", [])
        existing = {t.get("name") for t in tags}
        tags.extend(tag for tag in _TAGS if tag["name"] not in existing)

        # Anonymous callers are allowed on health and rate-limit routes.
        for path, methods in schema.get("paths", {}).items():
            if path.endswith("/health") or path.startswith("/v1/rate-limit"):
                for method_obj in methods.values():
                    if isinstance(method_obj, dict):
                        method_obj["security"] = [{}, {"BearerAuth": []}]

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]

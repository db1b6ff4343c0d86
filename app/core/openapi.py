"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- Two equivalent security schemes: ``X-API-Key`` header and bearer token
- Per-operation exemptions for liveness/readiness probes
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

# (path suffix, method) pairs that never require a credential
_UNAUTHENTICATED_OPERATIONS = {
    ("/health", "get"),
    ("/ready", "get"),
    ("/relay", "get"),
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and security."""

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
        security_schemes.setdefault(
            "BearerAuth",
            {
                "type": "http",
                "scheme": "bearer",
                "description": "Alternatively, send the API key as a bearer token.",
            },
        )

        # Either scheme satisfies the requirement
        schema.setdefault("security", [{"ApiKeyAuth": []}, {"BearerAuth": []}])

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in (
            {"name": "Relay", "description": "Rate-limited webhook relay with failover."},
            {"name": "Health", "description": "Liveness and readiness checks."},
        ):
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            for method, operation in methods.items():
                if not isinstance(operation, dict):
                    continue
                if any(
                    path.endswith(suffix) and method == verb
                    for suffix, verb in _UNAUTHENTICATED_OPERATIONS
                ):
                    operation["security"] = []

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]

"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- The shared error envelope schema
- 429 and 500 responses on every operation (rate limiting and server
  failures can happen anywhere under ``/v1``)

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from movie_catalog.schemas.movie import ErrorResponse

_ERROR_REF = {"$ref": "#/components/schemas/ErrorResponse"}

_SHARED_RESPONSES = {
    "429": "Rate limit exceeded for this client.",
    "500": "The server encountered a problem and could not process the request.",
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and shared errors."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema and app.openapi_schema.get("x-customized"):
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        schemas = components.setdefault("schemas", {})
        schemas.setdefault(
            "ErrorResponse",
            ErrorResponse.model_json_schema(ref_template="#/components/schemas/{model}"),
        )
        # Nested models of ErrorResponse are emitted under $defs; hoist them.
        for name, definition in schemas["ErrorResponse"].pop("$defs", {}).items():
            schemas.setdefault(name, definition)

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Movies",
                "description": "Create, read, update, delete and list movies.",
            },
            {
                "name": "Health",
                "description": "Liveness check with environment and version.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for methods in schema.get("paths", {}).values():
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                responses = method_obj.setdefault("responses", {})
                for code, description in _SHARED_RESPONSES.items():
                    responses.setdefault(
                        code,
                        {
                            "description": description,
                            "content": {"application/json": {"schema": _ERROR_REF}},
                        },
                    )

        schema["x-customized"] = True
        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]

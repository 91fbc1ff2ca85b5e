"""OpenAPI customization.

Adds the session cookie security scheme, marks authenticated operations
(everything under ``/api/user``) as requiring it, and fills in tag
descriptions. Documentation concerns stay out of the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from compiler_api.core.config import settings

AUTHENTICATED_PREFIX = "/api/user"

TAGS = [
    {"name": "Auth", "description": "Passwordless login with emailed one-time passcodes."},
    {"name": "Compiler", "description": "Run programs on the remote judge."},
    {"name": "User", "description": "Profile, saved snippets, export and import."},
    {"name": "Health", "description": "Liveness and limiter store status."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and cookie security."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "SessionCookie",
            {
                "type": "apiKey",
                "in": "cookie",
                "name": settings.auth.cookie_name,
                "description": "Session token set by POST /api/auth/verify-otp.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if not path.startswith(AUTHENTICATED_PREFIX):
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = [{"SessionCookie": []}]

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]

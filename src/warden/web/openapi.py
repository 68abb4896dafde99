from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from pydantic import BaseModel, Field

PUBLIC_ENDPOINTS = {
    ("POST", "/api/v1/auth/login"),
    ("GET", "/health"),
}


def set_custom_openapi(app: FastAPI) -> None:
    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title="Warden API",
            version="0.1.0",
            summary="Accounts, sessions and role-gated access",
            routes=app.routes,
        )

        openapi_schema.setdefault("components", {})["securitySchemes"] = {
            "BearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
                "description": "Token returned by /auth/login, bound to a server-side session",
            },
        }
        openapi_schema["security"] = [{"BearerAuth": []}]

        for path, path_item in openapi_schema["paths"].items():
            for method, operation in path_item.items():
                if (method.upper(), path) in PUBLIC_ENDPOINTS:
                    operation["security"] = []

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi  # type: ignore[method-assign]


class ErrorResponse(BaseModel):
    """Standard error response format."""

    message: str = Field(..., description="Human-readable error message")
    type: str = Field(..., description="Machine-readable error type")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"message": "Token expired", "type": "token_expired"},
                {"message": "Session terminated", "type": "session_terminated"},
                {"message": "Access denied", "type": "access_denied"},
            ]
        }
    }

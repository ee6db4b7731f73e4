"""
FastAPI application entrypoint for the Cognito hosted login service.
"""

from __future__ import annotations

from fastapi import FastAPI

from cognito_auth.api.routes import router as api_router
from cognito_auth.core.config import get_settings
from cognito_auth.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Cognito Hosted Login",
        version="0.1.0",
        description="Authorization Code flow against the Amazon Cognito hosted UI.",
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]

"""
FastAPI application entrypoint for the token exchange service.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from token_exchange.api.routes import router as api_router
from token_exchange.core.config import get_settings
from token_exchange.core.logging import configure_logging
from token_exchange.dependencies import close_clients


@asynccontextmanager
async def _lifespan(_: FastAPI):
    yield
    await close_clients()


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Communication Token Exchange",
        version="0.1.0",
        description=(
            "Exchanges gateway-authenticated identities for Azure Communication "
            "Services access tokens."
        ),
        lifespan=_lifespan,
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]

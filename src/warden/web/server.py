from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from warden.app import App
from warden.config import Config
from warden.errors import UserError
from warden.web.error_handlers import general_exception_handler, user_error_handler
from warden.web.openapi import set_custom_openapi
from warden.web.routers import accounts_router, auth_router, blocks_router, profile_router


def create_fastapi_app(app_instance: App, config: Config) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """FastAPI application lifespan management."""
        app.state.config = config
        async with app_instance.lifespan():
            yield

    app = FastAPI(
        title="Warden API",
        lifespan=lifespan,
        openapi_tags=[],
    )
    # Set before startup so dependencies work even when lifespan is not run
    app.state.app = app_instance

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Health check endpoint (at root level, not versioned)
    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(profile_router, prefix="/api/v1")
    app.include_router(accounts_router, prefix="/api/v1")
    app.include_router(blocks_router, prefix="/api/v1")

    app.add_exception_handler(UserError, user_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    set_custom_openapi(app)

    return app

from contextlib import asynccontextmanager
from typing import Optional
import asyncio

import uvicorn
from fastapi import FastAPI

from docgate.core.logger import get_logger
from docgate.core.backend_manager import backend_manager
from docgate.core.config import Settings, get_settings, settings
from docgate.shared.error_handlers import register_error_handlers
from docgate.api_router import api_router

logger = get_logger(__name__)


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Builds the gateway application for the given settings."""
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handles application startup and shutdown events."""
        logger.info("Application startup...")

        # Build the back-end clients in a worker thread
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, backend_manager.load_backends, app_settings)
        app.state.backends = backend_manager

        yield

        logger.info("Application shutdown...")
        await backend_manager.close()

    app = FastAPI(
        title="DocGate API",
        description="Document conversion and parsing gateway",
        version="0.1.0",
        lifespan=lifespan
    )

    if app_settings is not settings:
        app.dependency_overrides[get_settings] = lambda: app_settings

    register_error_handlers(app)

    # Include the single, aggregated API router with a global prefix
    app.include_router(api_router, prefix=app_settings.api_prefix)

    return app


app = create_app()


def run():
    """Console entry point: serve the gateway with uvicorn."""
    uvicorn.run(
        "docgate.main:app",
        host=settings.app_host,
        port=settings.app_port,
        log_level=settings.log_level.lower(),
    )

"""FastAPI application factory and main app.

This module creates the FastAPI application with all routers and
dependency injection configured. Routes are thin proxies to the core
services in appgen/.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from appgen import __version__
from appgen.builds.jobs import create_background_service
from appgen.config import configure_logging, get_settings
from appgen.db import create_all_tables, get_engine, get_session_factory
from web.routers import builds, config, generated_apps, health


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager.

    Initializes logging, database tables and the background dispatcher on
    startup, and drains the dispatcher on shutdown.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    engine = get_engine(settings.db_url)
    create_all_tables(engine)
    app.state.session_factory = get_session_factory(engine)
    app.state.background = create_background_service(
        settings, app.state.session_factory
    )
    try:
        yield
    finally:
        app.state.background.shutdown(wait=True)
        engine.dispose()


def include_routers(application: FastAPI) -> None:
    """Mount all API routers on an application."""
    application.include_router(health.router, tags=["health"])
    application.include_router(config.router, prefix="/config", tags=["config"])
    application.include_router(builds.router, prefix="/builds", tags=["builds"])
    application.include_router(
        generated_apps.router, prefix="/generated-apps", tags=["generated-apps"]
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application.
    """
    application = FastAPI(
        title="App Generation API",
        description="HTTP API for build records, app generation jobs "
        "and generated app downloads",
        version=__version__,
        lifespan=lifespan,
    )
    include_routers(application)
    return application


# Create the default application instance
app = create_app()

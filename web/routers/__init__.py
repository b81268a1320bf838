"""Router modules for FastAPI web API."""

from web.routers import builds, config, generated_apps, health

__all__ = ["builds", "config", "generated_apps", "health"]

"""FastAPI web application for the App Generation Server.

This module provides the HTTP API over the build service, including the
endpoint that runs generated-app jobs dispatched over HTTP.

All business logic is delegated to core modules in appgen/.
"""

from web.app import app, create_app

__all__ = ["app", "create_app"]

"""Background job dispatch."""

from appgen.background.service import (
    BackgroundService,
    HttpBackgroundService,
    LocalBackgroundService,
    UnknownJobError,
)

__all__ = [
    "BackgroundService",
    "HttpBackgroundService",
    "LocalBackgroundService",
    "UnknownJobError",
]

"""Configuration endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from appgen.config import Settings, get_settings

router = APIRouter()


@router.get("")
def get_config(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    """Get effective configuration.

    Returns:
        Current configuration as JSON.
    """
    return {
        "artifacts_dir": str(settings.artifacts_dir),
        "db_url": settings.db_url,
        "log_level": settings.log_level,
        "background_mode": settings.background_mode,
        "background_base_url": settings.background_base_url,
        "background_timeout": settings.background_timeout,
        "max_background_workers": settings.max_background_workers,
    }

"""Wiring between the build service and its collaborators.

Both entry points (CLI and web) assemble a BuildService the same way, and
the local background dispatcher runs the generated-app job through
run_generated_app_job().
"""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from appgen.actions.service import ActionService
from appgen.apps.service import AppRoleService
from appgen.background.service import (
    BackgroundService,
    HttpBackgroundService,
    JobPayload,
    LocalBackgroundService,
)
from appgen.builds.repository import BuildRepository
from appgen.builds.service import CREATE_GENERATED_APP_PATH, BuildService
from appgen.builds.storage import LocalArtifactStore
from appgen.db import get_session
from appgen.entities.service import EntityService

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker

    from appgen.config import Settings

logger = logging.getLogger(__name__)


def create_build_service(
    session: Session,
    settings: Settings,
    background: BackgroundService,
) -> BuildService:
    """Assemble a BuildService bound to one database session."""
    return BuildService(
        builds=BuildRepository(session),
        storage=LocalArtifactStore(settings.artifacts_dir),
        entities=EntityService(session),
        roles=AppRoleService(session),
        actions=ActionService(session),
        background=background,
    )


def run_generated_app_job(
    session_factory: sessionmaker[Session],
    settings: Settings,
    background: BackgroundService,
    payload: JobPayload,
) -> None:
    """Run build() for the build named in a generated-app job payload.

    Args:
        session_factory: Factory for the job's own session.
        settings: Application settings.
        background: Dispatcher handed to the job's BuildService.
        payload: Job payload ({"buildId": ...}).

    Raises:
        KeyError: If the payload has no buildId.
    """
    build_id = payload["buildId"]
    logger.info("Running generated-app job for build %s", build_id)
    with get_session(session_factory) as session:
        create_build_service(session, settings, background).build(build_id)


def create_background_service(
    settings: Settings,
    session_factory: sessionmaker[Session],
) -> BackgroundService:
    """Create the dispatcher selected by settings.background_mode.

    Args:
        settings: Application settings.
        session_factory: Session factory used by locally run jobs.

    Returns:
        BackgroundService instance.
    """
    if settings.background_mode == "http":
        return HttpBackgroundService(
            settings.background_base_url, timeout=settings.background_timeout
        )

    service = LocalBackgroundService(max_workers=settings.max_background_workers)
    service.register(
        CREATE_GENERATED_APP_PATH,
        partial(run_generated_app_job, session_factory, settings, service),
    )
    return service


__all__ = [
    "create_background_service",
    "create_build_service",
    "run_generated_app_job",
]

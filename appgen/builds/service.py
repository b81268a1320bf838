"""Build service module.

This module owns the build lifecycle:
- create(): persist a waiting build and queue the generation job
- find_many() / find_one(): build lookups
- download(): open the generated archive of a completed build
- build(): drive a build from waiting to active to completed (or failed)

Collaborators (persistence, storage, action log, entity and role lookups,
background queue) are injected so each can be replaced independently.
"""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from typing import TYPE_CHECKING, Any, BinaryIO

from pydantic import BaseModel, Field

from appgen.builds.errors import (
    BuildNotCompleteError,
    BuildNotFoundError,
    BuildResultNotFound,
    InvalidStatusTransitionError,
)
from appgen.builds.generator import AppGenerator, generate_app_archive
from appgen.builds.storage import ArtifactStore, get_build_file_path
from appgen.db import utcnow
from appgen.types import (
    ActionLogLevel,
    ActionStepData,
    ActionStepStatus,
    BuildStatus,
)

if TYPE_CHECKING:
    from appgen.actions.models import ActionStep
    from appgen.actions.service import ActionService
    from appgen.apps.service import AppRoleService
    from appgen.background.service import BackgroundService
    from appgen.builds.models import Build
    from appgen.builds.repository import BuildRepository
    from appgen.entities.service import EntityService

logger = logging.getLogger(__name__)

CREATE_GENERATED_APP_PATH = "/generated-apps/"
ACTION_MESSAGE = "Building app"
ENTITIES_INCLUDE: dict[str, Any] = {
    "fields": True,
    "permissions": {"roles": True},
}


def create_initial_step_data(version: str, message: str) -> ActionStepData:
    """Describe the first step recorded on a new build's action.

    Args:
        version: Build version.
        message: Build message.

    Returns:
        Step data with its log entries.
    """
    return {
        "name": "ADD_TO_QUEUE",
        "message": "Adding task to queue",
        "status": ActionStepStatus.SUCCESS,
        "logs": [
            {
                "level": ActionLogLevel.INFO,
                "message": "create build generation task",
                "meta": {},
            },
            {
                "level": ActionLogLevel.INFO,
                "message": f"Build Version: {version}",
                "meta": {},
            },
            {
                "level": ActionLogLevel.INFO,
                "message": f"Build message: {message}",
                "meta": {},
            },
        ],
    }


class BuildCreateInput(BaseModel):
    """Caller supplied fields of a new build."""

    user_id: str = Field(min_length=1)
    app_id: str = Field(min_length=1)
    version: str = Field(min_length=1, max_length=50)
    message: str = ""


class BuildLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter tagging every record with a build id."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        kwargs["extra"] = {**extra, **kwargs.get("extra", {})}
        return f"[build {extra.get('build_id')}] {msg}", kwargs


def get_build_logger(build_id: str) -> BuildLoggerAdapter:
    """Return a logger scoped to one build."""
    return BuildLoggerAdapter(logger, {"build_id": build_id})


def build_to_dict(build: Build) -> dict[str, Any]:
    """Convert a build record to a JSON-ready dictionary."""
    return {
        "id": build.id,
        "status": build.status,
        "created_at": build.created_at.isoformat() if build.created_at else None,
        "user_id": build.user_id,
        "app_id": build.app_id,
        "version": build.version,
        "message": build.message,
        "action_id": build.action_id,
    }


class BuildService:
    """Orchestrate build records, the generation job and downloads.

    Args:
        builds: Build persistence.
        storage: Store holding generated archives.
        entities: Entity lookups.
        roles: App role lookups.
        actions: Action log.
        background: Background job queue.
        generator: Produces the archive for a build.
    """

    def __init__(
        self,
        *,
        builds: BuildRepository,
        storage: ArtifactStore,
        entities: EntityService,
        roles: AppRoleService,
        actions: ActionService,
        background: BackgroundService,
        generator: AppGenerator = generate_app_archive,
    ) -> None:
        self.builds = builds
        self.storage = storage
        self.entities = entities
        self.roles = roles
        self.actions = actions
        self.background = background
        self.generator = generator

    def create(self, data: BuildCreateInput) -> Build:
        """Create a waiting build and queue its generation job.

        The build links the latest version of every entity of the app and
        no block versions. Its action starts with a completed queue step.
        The job is queued after the build is persisted; a failing queue call
        leaves the persisted build in place.

        Args:
            data: New build fields.

        Returns:
            The persisted Build.
        """
        latest_versions = self.entities.get_latest_versions(data.app_id)

        now = utcnow()
        initial_step: ActionStepData = {
            **create_initial_step_data(data.version, data.message),
            "completed_at": now,
        }

        build = self.builds.create(
            user_id=data.user_id,
            app_id=data.app_id,
            version=data.version,
            message=data.message,
            status=BuildStatus.WAITING,
            created_at=now,
            entity_version_ids=[v.id for v in latest_versions],
            block_version_ids=[],
            action_steps=[initial_step],
        )

        self.background.queue(CREATE_GENERATED_APP_PATH, {"buildId": build.id})
        logger.info("Queued generation of build %s", build.id)
        return build

    def find_many(
        self,
        app_id: str | None = None,
        user_id: str | None = None,
        status: BuildStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Build]:
        """List builds with optional filters."""
        return self.builds.find_many(
            app_id=app_id, user_id=user_id, status=status, limit=limit, offset=offset
        )

    def find_one(self, build_id: str) -> Build | None:
        """Get a build by ID, or None if not found."""
        return self.builds.find_one(build_id)

    def download(self, build_id: str) -> BinaryIO:
        """Open the generated archive of a completed build.

        Args:
            build_id: Build ID.

        Returns:
            Readable binary stream; the caller closes it.

        Raises:
            BuildNotFoundError: If the build does not exist.
            BuildNotCompleteError: If the build has not completed.
            BuildResultNotFound: If the archive is missing from storage.
        """
        build = self.builds.find_one(build_id)
        if build is None:
            raise BuildNotFoundError(build_id)
        if build.status != BuildStatus.COMPLETED.value:
            raise BuildNotCompleteError(build.id, build.status)

        path = get_build_file_path(build.id)
        if not self.storage.exists(path):
            raise BuildResultNotFound(build.id, path)
        return self.storage.get_stream(path)

    def build(self, build_id: str) -> None:
        """Execute a waiting build.

        Marks the build active, records the generation step on its action,
        gathers the linked entity versions and the app roles, stores the
        generated archive and marks the build completed. Any error after the
        build was picked up marks it failed instead and is re-raised, so
        exactly one terminal status is written.

        Args:
            build_id: Build ID.

        Raises:
            BuildNotFoundError: If the build does not exist.
            InvalidStatusTransitionError: If the build is not waiting.
        """
        build = self.builds.find_one(build_id)
        if build is None:
            raise BuildNotFoundError(build_id)
        if build.status != BuildStatus.WAITING.value:
            raise InvalidStatusTransitionError(
                build_id, build.status, BuildStatus.ACTIVE.value
            )

        build_logger = get_build_logger(build_id)
        step: ActionStep | None = None

        try:
            self.builds.update(build_id, status=BuildStatus.ACTIVE)
            build_logger.info("Build started")

            step = self.actions.run(build.action_id, ACTION_MESSAGE)

            entity_versions = self.entities.get_entities_by_versions(
                build_id, include=ENTITIES_INCLUDE
            )
            roles = self.roles.get_app_roles(build.app_id)
            build_logger.info(
                "Gathered %d entities and %d roles", len(entity_versions), len(roles)
            )
            self.actions.log_info(
                step,
                f"Generating app with {len(entity_versions)} entities",
                {"entities": len(entity_versions), "roles": len(roles)},
            )

            archive = self.generator(build, entity_versions, roles)
            self.storage.put(get_build_file_path(build_id), archive)
            self.actions.complete(step, ActionStepStatus.SUCCESS)
        except Exception as e:
            build_logger.exception("Build failed: %s", e)
            self.builds.update(build_id, status=BuildStatus.FAILED)
            if step is not None:
                try:
                    self.actions.log(step, ActionLogLevel.ERROR, str(e))
                    self.actions.complete(step, ActionStepStatus.FAILED)
                except Exception:
                    build_logger.exception("Could not mark the generation step failed")
            raise

        self.builds.update(build_id, status=BuildStatus.COMPLETED)
        build_logger.info("Build completed")


__all__ = [
    "ACTION_MESSAGE",
    "CREATE_GENERATED_APP_PATH",
    "ENTITIES_INCLUDE",
    "BuildCreateInput",
    "BuildLoggerAdapter",
    "BuildService",
    "build_to_dict",
    "create_initial_step_data",
    "get_build_logger",
]

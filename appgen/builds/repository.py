"""Build persistence.

BuildRepository is the only writer of build state. Writes are committed
immediately so that background jobs running in other sessions observe the
new row and each status transition as soon as it happens.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from appgen.actions.models import Action, ActionLog, ActionStep
from appgen.apps.models import BlockVersion
from appgen.builds.errors import BuildNotFoundError, BuildServiceError
from appgen.builds.models import Build
from appgen.entities.models import EntityVersion
from appgen.types import ActionStepData, BuildStatus

logger = logging.getLogger(__name__)


class BuildRepository:
    """CRUD operations over build records."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def create(
        self,
        *,
        user_id: str,
        app_id: str,
        version: str,
        message: str,
        created_at: datetime,
        status: BuildStatus = BuildStatus.WAITING,
        entity_version_ids: Sequence[str] = (),
        block_version_ids: Sequence[str] = (),
        action_steps: Sequence[ActionStepData] = (),
    ) -> Build:
        """Create a build together with its action, steps and step logs.

        The action and its children are flushed before the build row so the
        build can reference the action; everything commits as one unit.

        Args:
            user_id: Owning user.
            app_id: Owning app.
            version: Version string.
            message: Build message.
            created_at: Creation timestamp.
            status: Initial status.
            entity_version_ids: Entity versions to link.
            block_version_ids: Block versions to link.
            action_steps: Steps to create inline on the new action.

        Returns:
            The persisted Build.

        Raises:
            BuildServiceError: If the app or a linked version does not exist.
        """
        entity_versions = self._load(EntityVersion, entity_version_ids)
        block_versions = self._load(BlockVersion, block_version_ids)

        action = Action(created_at=created_at)
        for step_data in action_steps:
            step = ActionStep(
                name=step_data["name"],
                message=step_data["message"],
                status=step_data["status"].value,
                created_at=created_at,
                completed_at=step_data.get("completed_at"),
            )
            for log_data in step_data.get("logs", []):
                step.logs.append(
                    ActionLog(
                        level=log_data["level"].value,
                        message=log_data["message"],
                        meta=dict(log_data["meta"]),
                    )
                )
            action.steps.append(step)

        try:
            self._session.add(action)
            self._session.flush()

            build = Build(
                user_id=user_id,
                app_id=app_id,
                version=version,
                message=message,
                status=status.value,
                created_at=created_at,
                action_id=action.id,
                entity_versions=entity_versions,
                block_versions=block_versions,
            )
            self._session.add(build)
            self._session.flush()
            self._session.commit()
        except IntegrityError as e:
            self._session.rollback()
            raise BuildServiceError(
                f"Cannot create build for app {app_id}: {e.orig}",
                code="invalid_build_input",
            ) from e
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "Created build %s for app %s (version %s)", build.id, app_id, version
        )
        return build

    def find_many(
        self,
        app_id: str | None = None,
        user_id: str | None = None,
        status: BuildStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Build]:
        """List builds with optional filters, newest first.

        Args:
            app_id: Filter by app.
            user_id: Filter by user.
            status: Filter by status.
            limit: Maximum results to return.
            offset: Number of results to skip.

        Returns:
            List of Build instances.
        """
        stmt = select(Build)

        if app_id is not None:
            stmt = stmt.where(Build.app_id == app_id)
        if user_id is not None:
            stmt = stmt.where(Build.user_id == user_id)
        if status is not None:
            stmt = stmt.where(Build.status == status.value)

        stmt = (
            stmt.order_by(Build.created_at.desc(), Build.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self._session.execute(stmt).scalars().all())

    def find_one(self, build_id: str) -> Build | None:
        """Get a build by ID, or None if not found."""
        return self._session.get(Build, build_id)

    def update(self, build_id: str, *, status: BuildStatus) -> Build:
        """Move a build to a new status and commit.

        Args:
            build_id: Build ID.
            status: Target status.

        Returns:
            The updated Build.

        Raises:
            BuildNotFoundError: If the build does not exist.
            InvalidStatusTransitionError: If the transition is not allowed.
        """
        if not self._session.is_active:
            # a failed flush elsewhere left the transaction needing a rollback
            self._session.rollback()

        build = self._session.get(Build, build_id)
        if build is None:
            raise BuildNotFoundError(build_id)

        build.transition_to(status)
        try:
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.debug("Build %s is now %s", build_id, status.value)
        return build

    def _load(self, model: type, ids: Sequence[str]) -> list:
        if not ids:
            return []
        rows = list(
            self._session.execute(select(model).where(model.id.in_(ids)))
            .scalars()
            .all()
        )
        missing = set(ids) - {row.id for row in rows}
        if missing:
            raise BuildServiceError(
                f"Unknown {model.__tablename__} ids: {', '.join(sorted(missing))}",
                code="invalid_build_input",
            )
        return rows


__all__ = ["BuildRepository"]

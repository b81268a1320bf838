"""Entity lookups used by the build lifecycle.

Authoring entities is out of scope; this module only answers the two
queries a build needs: the latest version of every entity of an app, and
the entity versions a build was created from.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from appgen.builds.models import Build
from appgen.entities.models import Entity, EntityVersion

# Nested relation-include shape: a key maps to True (load the relation) or to
# another mapping (load the relation and the nested relations of its target).
IncludeMap = Mapping[str, Any]


def build_load_options(model: type, include: IncludeMap) -> list[Any]:
    """Translate a nested include mapping into selectinload options.

    Args:
        model: Mapped class the include applies to.
        include: Relation names mapped to True or a nested include.

    Returns:
        Loader options for select().options().

    Raises:
        ValueError: If a key is not a relationship of the model.
    """
    options: list[Any] = []
    for name, nested in include.items():
        if not nested:
            continue
        attr = getattr(model, name, None)
        prop = getattr(attr, "property", None)
        target = getattr(prop, "mapper", None)
        if target is None:
            raise ValueError(f"{model.__name__} has no relationship {name!r}")

        loader = selectinload(attr)
        if isinstance(nested, Mapping):
            children = build_load_options(target.class_, nested)
            if children:
                loader = loader.options(*children)
        options.append(loader)
    return options


class EntityService:
    """Read-only entity queries."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_latest_versions(self, app_id: str) -> list[EntityVersion]:
        """Get the newest version of every non-deleted entity of an app.

        Args:
            app_id: App ID.

        Returns:
            One EntityVersion per entity, ordered by entity name.
        """
        latest = (
            select(
                EntityVersion.entity_id,
                func.max(EntityVersion.version_number).label("version_number"),
            )
            .join(Entity, Entity.id == EntityVersion.entity_id)
            .where(Entity.app_id == app_id, Entity.deleted_at.is_(None))
            .group_by(EntityVersion.entity_id)
            .subquery()
        )
        stmt = (
            select(EntityVersion)
            .join(
                latest,
                (EntityVersion.entity_id == latest.c.entity_id)
                & (EntityVersion.version_number == latest.c.version_number),
            )
            .order_by(EntityVersion.name)
        )
        return list(self._session.execute(stmt).scalars().all())

    def get_entities_by_versions(
        self, build_id: str, include: IncludeMap | None = None
    ) -> list[EntityVersion]:
        """Get the entity versions linked to a build.

        Args:
            build_id: Build ID.
            include: Relations to load eagerly alongside each version.

        Returns:
            List of EntityVersion instances, ordered by name.
        """
        stmt = (
            select(EntityVersion)
            .where(EntityVersion.builds.any(Build.id == build_id))
            .order_by(EntityVersion.name)
        )
        if include:
            stmt = stmt.options(*build_load_options(EntityVersion, include))
        return list(self._session.execute(stmt).scalars().all())


__all__ = ["EntityService", "IncludeMap", "build_load_options"]

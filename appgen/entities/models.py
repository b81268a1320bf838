"""Entity ORM models.

Entities are versioned: each commit of an entity produces a new
EntityVersion holding the fields and permissions at that point. Builds link
to the entity versions they were created from.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appgen.db import Base, new_id

if TYPE_CHECKING:
    from appgen.apps.models import App, AppRole
    from appgen.builds.models import Build


entity_permission_roles = Table(
    "entity_permission_roles",
    Base.metadata,
    Column(
        "permission_id",
        String(36),
        ForeignKey("entity_permissions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "app_role_id",
        String(36),
        ForeignKey("app_roles.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Entity(Base):
    """ORM model for a data entity of an app.

    Attributes:
        id: Opaque primary key.
        app_id: Foreign key to App.
        name: Entity name (e.g. "Customer").
        display_name: Human readable name.
        deleted_at: Soft-delete timestamp; deleted entities are not built.
    """

    __tablename__ = "entities"
    __table_args__ = (UniqueConstraint("app_id", "name", name="uq_entities_name"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    app_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("apps.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    app: Mapped["App"] = relationship("App", back_populates="entities")
    versions: Mapped[list["EntityVersion"]] = relationship(
        "EntityVersion", back_populates="entity", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        """Return string representation of Entity."""
        return f"<Entity(id='{self.id}', name='{self.name}')>"


class EntityVersion(Base):
    """ORM model for a committed version of an entity."""

    __tablename__ = "entity_versions"
    __table_args__ = (
        UniqueConstraint(
            "entity_id", "version_number", name="uq_entity_versions_number"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    entity_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("entities.id"), nullable=False, index=True
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    entity: Mapped["Entity"] = relationship("Entity", back_populates="versions")
    fields: Mapped[list["EntityField"]] = relationship(
        "EntityField",
        back_populates="entity_version",
        cascade="all, delete-orphan",
        order_by="EntityField.name",
    )
    permissions: Mapped[list["EntityPermission"]] = relationship(
        "EntityPermission",
        back_populates="entity_version",
        cascade="all, delete-orphan",
    )
    builds: Mapped[list["Build"]] = relationship(
        "Build", secondary="build_entity_versions", back_populates="entity_versions"
    )

    def __repr__(self) -> str:
        """Return string representation of EntityVersion."""
        return (
            f"<EntityVersion(id='{self.id}', name='{self.name}', "
            f"version={self.version_number})>"
        )


class EntityField(Base):
    """ORM model for a field of an entity version."""

    __tablename__ = "entity_fields"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    entity_version_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("entity_versions.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    data_type: Mapped[str] = mapped_column(String(50), nullable=False)
    required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    entity_version: Mapped["EntityVersion"] = relationship(
        "EntityVersion", back_populates="fields"
    )


class EntityPermission(Base):
    """ORM model for an action permission on an entity version.

    Attributes:
        action: Guarded action (create, read, update, delete, search).
        type: Permission type (AllRoles, Granular, Disabled, Public).
        roles: Roles granted the action when type is Granular.
    """

    __tablename__ = "entity_permissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    entity_version_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("entity_versions.id"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)

    entity_version: Mapped["EntityVersion"] = relationship(
        "EntityVersion", back_populates="permissions"
    )
    roles: Mapped[list["AppRole"]] = relationship(
        "AppRole", secondary=entity_permission_roles
    )


__all__ = [
    "Entity",
    "EntityField",
    "EntityPermission",
    "EntityVersion",
    "entity_permission_roles",
]

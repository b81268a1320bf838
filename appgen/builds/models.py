"""Build ORM models.

This module defines the Build model and the association tables linking a
build to the entity and block versions it was created from.
"""

from datetime import datetime

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

# Related models are imported so the mapper registry is complete whenever
# builds are used on their own
from appgen.actions.models import Action
from appgen.apps.models import App, BlockVersion
from appgen.builds.errors import InvalidStatusTransitionError
from appgen.db import Base, new_id
from appgen.entities.models import EntityVersion
from appgen.types import BUILD_STATUS_TRANSITIONS, BuildStatus

build_entity_versions = Table(
    "build_entity_versions",
    Base.metadata,
    Column(
        "build_id",
        String(36),
        ForeignKey("builds.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "entity_version_id",
        String(36),
        ForeignKey("entity_versions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)

build_block_versions = Table(
    "build_block_versions",
    Base.metadata,
    Column(
        "build_id",
        String(36),
        ForeignKey("builds.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "block_version_id",
        String(36),
        ForeignKey("block_versions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Build(Base):
    """ORM model for a single generation run of an app version.

    Attributes:
        id: Opaque primary key generated at creation.
        status: Build status (waiting, active, completed, failed).
        created_at: Creation timestamp, immutable.
        user_id: Owning user.
        app_id: Foreign key to App.
        version: Semantic version string supplied by the caller.
        message: Free-text description supplied by the caller.
        action_id: Foreign key to the Action created alongside the build.
    """

    __tablename__ = "builds"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BuildStatus.WAITING.value, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Ownership
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    app_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("apps.id"), nullable=False, index=True
    )

    version: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")

    action_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("actions.id"), nullable=False, unique=True
    )

    # Relationships
    app: Mapped["App"] = relationship("App", back_populates="builds")
    action: Mapped["Action"] = relationship("Action")
    entity_versions: Mapped[list["EntityVersion"]] = relationship(
        "EntityVersion", secondary=build_entity_versions, back_populates="builds"
    )
    block_versions: Mapped[list["BlockVersion"]] = relationship(
        "BlockVersion", secondary=build_block_versions, back_populates="builds"
    )

    __table_args__ = (Index("ix_builds_app_created", "app_id", "created_at"),)

    def __repr__(self) -> str:
        """Return string representation of Build."""
        return (
            f"<Build(id='{self.id}', app_id='{self.app_id}', "
            f"version='{self.version}', status='{self.status}')>"
        )

    def transition_to(self, status: BuildStatus) -> None:
        """Move this build to a new status.

        Args:
            status: Target status.

        Raises:
            InvalidStatusTransitionError: If the lifecycle does not allow
                moving from the current status to the target.
        """
        current = BuildStatus(self.status)
        if status not in BUILD_STATUS_TRANSITIONS[current]:
            raise InvalidStatusTransitionError(self.id, current.value, status.value)
        self.status = status.value

    def is_completed(self) -> bool:
        """Check if this build completed."""
        return self.status == BuildStatus.COMPLETED.value


__all__ = ["Build", "build_block_versions", "build_entity_versions"]

"""App ORM models.

An App owns the builds, entities, roles and blocks of one generated
application. Only the columns the build lifecycle reads are modeled here.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appgen.db import Base, new_id

if TYPE_CHECKING:
    from appgen.builds.models import Build
    from appgen.entities.models import Entity


class App(Base):
    """ORM model for an application whose code gets generated.

    Attributes:
        id: Opaque primary key.
        name: Display name of the app.
        created_at: Creation timestamp.
    """

    __tablename__ = "apps"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    roles: Mapped[list["AppRole"]] = relationship(
        "AppRole", back_populates="app", cascade="all, delete-orphan"
    )
    entities: Mapped[list["Entity"]] = relationship(
        "Entity", back_populates="app", cascade="all, delete-orphan"
    )
    blocks: Mapped[list["Block"]] = relationship(
        "Block", back_populates="app", cascade="all, delete-orphan"
    )
    builds: Mapped[list["Build"]] = relationship("Build", back_populates="app")

    def __repr__(self) -> str:
        """Return string representation of App."""
        return f"<App(id='{self.id}', name='{self.name}')>"


class AppRole(Base):
    """ORM model for a role defined on an app."""

    __tablename__ = "app_roles"
    __table_args__ = (UniqueConstraint("app_id", "name", name="uq_app_roles_name"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    app_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("apps.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    app: Mapped["App"] = relationship("App", back_populates="roles")

    def __repr__(self) -> str:
        """Return string representation of AppRole."""
        return f"<AppRole(id='{self.id}', name='{self.name}')>"


class Block(Base):
    """ORM model for a reusable block attached to an app."""

    __tablename__ = "blocks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    app_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("apps.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    block_type: Mapped[str] = mapped_column(String(100), nullable=False)

    app: Mapped["App"] = relationship("App", back_populates="blocks")
    versions: Mapped[list["BlockVersion"]] = relationship(
        "BlockVersion", back_populates="block", cascade="all, delete-orphan"
    )


class BlockVersion(Base):
    """ORM model for a committed version of a block."""

    __tablename__ = "block_versions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    block_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("blocks.id"), nullable=False, index=True
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    block: Mapped["Block"] = relationship("Block", back_populates="versions")
    builds: Mapped[list["Build"]] = relationship(
        "Build", secondary="build_block_versions", back_populates="block_versions"
    )


__all__ = ["App", "AppRole", "Block", "BlockVersion"]

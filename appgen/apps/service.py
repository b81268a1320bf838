"""App role lookups."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from appgen.apps.models import AppRole


class AppRoleService:
    """Read-only queries over the roles of an app."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_app_roles(self, app_id: str) -> list[AppRole]:
        """List the roles defined on an app, ordered by name."""
        stmt = select(AppRole).where(AppRole.app_id == app_id).order_by(AppRole.name)
        return list(self._session.execute(stmt).scalars().all())


__all__ = ["AppRoleService"]

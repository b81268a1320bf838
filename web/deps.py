"""Dependencies for FastAPI route handlers.

Provides the database session, the background dispatcher and the assembled
BuildService via FastAPI dependency injection.

Transaction boundaries are managed here:
- Session is created at request start
- On success (no exception): session is committed automatically
- On exception: session is rolled back automatically
- Session is closed after request completes

Build state changes are committed by the build repository itself, so a
rollback here never undoes a recorded status transition.
"""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

from fastapi import Depends, Request
from sqlalchemy.orm import Session, sessionmaker

from appgen.background.service import BackgroundService
from appgen.builds.jobs import create_build_service
from appgen.builds.service import BuildService
from appgen.config import Settings, get_settings


def get_session_factory(request: Request) -> sessionmaker[Session]:
    """Get session factory from app state."""
    factory: Any = request.app.state.session_factory
    return factory  # type: ignore[no-any-return]


def get_background(request: Request) -> BackgroundService:
    """Get the background dispatcher from app state."""
    background: Any = request.app.state.background
    return background  # type: ignore[no-any-return]


def get_db(
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> Generator[Session, None, None]:
    """Provide a database session for a request.

    Yields:
        Database session.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_build_service(
    db: Session = Depends(get_db),
    background: BackgroundService = Depends(get_background),
    settings: Settings = Depends(get_settings),
) -> BuildService:
    """Provide a BuildService bound to the request session."""
    return create_build_service(db, settings, background)

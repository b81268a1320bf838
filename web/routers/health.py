"""Health check endpoints."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from appgen import __version__
from web.deps import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health(db: Session = Depends(get_db)) -> dict[str, str]:
    """Report service and database health.

    The service stays up when the database is unreachable; the failure is
    reported in the ``database`` field.
    """
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)
        database = "unavailable"
    return {"status": "ok", "database": database, "version": __version__}


@router.get("/")
def root() -> dict[str, str]:
    return {"name": "App Generation API", "version": __version__}

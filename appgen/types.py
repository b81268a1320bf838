"""Shared type definitions for appgen.

This module contains enums and typed dictionaries shared across
subpackages to avoid circular imports.
"""

from datetime import datetime
from enum import Enum
from typing import Any, TypedDict


class BuildStatus(str, Enum):
    """Status of a build."""

    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


# Forward-only lifecycle; completed and failed are terminal
BUILD_STATUS_TRANSITIONS: dict[BuildStatus, frozenset[BuildStatus]] = {
    BuildStatus.WAITING: frozenset({BuildStatus.ACTIVE, BuildStatus.FAILED}),
    BuildStatus.ACTIVE: frozenset({BuildStatus.COMPLETED, BuildStatus.FAILED}),
    BuildStatus.COMPLETED: frozenset(),
    BuildStatus.FAILED: frozenset(),
}


class ActionStepStatus(str, Enum):
    """Status of a single action step."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class ActionLogLevel(str, Enum):
    """Severity of an action log entry."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ActionLogData(TypedDict):
    """Log entry created inline with an action step."""

    level: ActionLogLevel
    message: str
    meta: dict[str, Any]


class ActionStepData(TypedDict, total=False):
    """Action step created inline with a build."""

    name: str
    message: str
    status: ActionStepStatus
    completed_at: datetime
    logs: list[ActionLogData]


__all__ = [
    "BUILD_STATUS_TRANSITIONS",
    "ActionLogData",
    "ActionLogLevel",
    "ActionStepData",
    "ActionStepStatus",
    "BuildStatus",
]

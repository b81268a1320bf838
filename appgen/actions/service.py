"""Action logging service.

Records the progress of long running work (such as a build) as action
steps with structured log entries.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from appgen.actions.models import Action, ActionLog, ActionStep
from appgen.db import utcnow
from appgen.types import ActionLogLevel, ActionStepStatus

logger = logging.getLogger(__name__)

DEFAULT_STEP_NAME = "GENERATE_APP"


class ActionNotFoundError(Exception):
    """Raised when an action is not found."""

    def __init__(self, action_id: str, code: str = "action_not_found") -> None:
        super().__init__(f"Action not found: {action_id}")
        self.action_id = action_id
        self.code = code


class ActionService:
    """Create action steps and append logs to them."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def run(
        self, action_id: str, message: str, name: str = DEFAULT_STEP_NAME
    ) -> ActionStep:
        """Start a new running step on an action.

        Args:
            action_id: Action ID.
            message: Step message, also logged at info level.
            name: Step name.

        Returns:
            The created ActionStep.

        Raises:
            ActionNotFoundError: If the action does not exist.
        """
        action = self._session.get(Action, action_id)
        if action is None:
            raise ActionNotFoundError(action_id)

        step = ActionStep(
            action_id=action.id,
            name=name,
            message=message,
            status=ActionStepStatus.RUNNING.value,
        )
        step.logs.append(ActionLog(level=ActionLogLevel.INFO.value, message=message))
        self._session.add(step)
        self._commit()
        logger.debug("Started step %s on action %s", name, action_id)
        return step

    def log(
        self,
        step: ActionStep,
        level: ActionLogLevel,
        message: str,
        meta: dict[str, Any] | None = None,
    ) -> ActionLog:
        """Append a log entry to a step."""
        entry = ActionLog(
            step_id=step.id,
            level=level.value,
            message=message,
            meta=meta or {},
        )
        self._session.add(entry)
        self._commit()
        return entry

    def log_info(
        self, step: ActionStep, message: str, meta: dict[str, Any] | None = None
    ) -> ActionLog:
        """Append an info log entry to a step."""
        return self.log(step, ActionLogLevel.INFO, message, meta)

    def complete(self, step: ActionStep, status: ActionStepStatus) -> None:
        """Mark a step finished with the given status."""
        step.status = status.value
        step.completed_at = utcnow()
        self._session.add(step)
        self._commit()
        logger.debug("Step %s completed with %s", step.id, status.value)

    def _commit(self) -> None:
        try:
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise


__all__ = ["DEFAULT_STEP_NAME", "ActionNotFoundError", "ActionService"]

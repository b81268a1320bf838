"""Action ORM models.

An Action is a logged unit of work with ordered steps; each step carries
ordered log entries. Builds reference exactly one Action.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appgen.db import Base, new_id, utcnow
from appgen.types import ActionLogLevel, ActionStepStatus


class Action(Base):
    """ORM model for an action (container of steps)."""

    __tablename__ = "actions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    steps: Mapped[list["ActionStep"]] = relationship(
        "ActionStep",
        back_populates="action",
        cascade="all, delete-orphan",
        order_by="ActionStep.created_at",
    )

    def __repr__(self) -> str:
        """Return string representation of Action."""
        return f"<Action(id='{self.id}')>"


class ActionStep(Base):
    """ORM model for one step of an action.

    Attributes:
        id: Opaque primary key.
        action_id: Foreign key to Action.
        name: Machine name of the step (e.g. ADD_TO_QUEUE).
        message: Human readable description.
        status: Step status (running, success, failed).
        created_at: When the step started.
        completed_at: When the step finished, if it has.
    """

    __tablename__ = "action_steps"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    action_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("actions.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ActionStepStatus.RUNNING.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    action: Mapped["Action"] = relationship("Action", back_populates="steps")
    logs: Mapped[list["ActionLog"]] = relationship(
        "ActionLog",
        back_populates="step",
        cascade="all, delete-orphan",
        order_by="ActionLog.created_at",
    )

    def __repr__(self) -> str:
        """Return string representation of ActionStep."""
        return (
            f"<ActionStep(id='{self.id}', name='{self.name}', "
            f"status='{self.status}')>"
        )


class ActionLog(Base):
    """ORM model for a log entry of an action step."""

    __tablename__ = "action_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    step_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("action_steps.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    level: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ActionLogLevel.INFO.value
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    meta: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    step: Mapped["ActionStep"] = relationship("ActionStep", back_populates="logs")


__all__ = ["Action", "ActionLog", "ActionStep"]

"""Tests for actions/service.py module."""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from appgen.actions.models import Action, ActionStep
from appgen.actions.service import (
    DEFAULT_STEP_NAME,
    ActionNotFoundError,
    ActionService,
)
from appgen.db import create_all_tables, get_engine
from appgen.types import ActionLogLevel, ActionStepStatus


@pytest.fixture
def session():
    """Create a session on a fresh in-memory database."""
    engine = get_engine("sqlite:///:memory:")
    create_all_tables(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def action(session):
    """Persist an empty action."""
    action = Action()
    session.add(action)
    session.commit()
    return action


class TestRun:
    """Tests for ActionService.run."""

    def test_creates_running_step(self, session, action):
        """Should add a running step logging its message."""
        step = ActionService(session).run(action.id, "Building app")

        assert step.action_id == action.id
        assert step.name == DEFAULT_STEP_NAME
        assert step.message == "Building app"
        assert step.status == ActionStepStatus.RUNNING.value
        assert step.completed_at is None
        assert [(log.level, log.message) for log in step.logs] == [
            ("info", "Building app")
        ]

    def test_custom_name(self, session, action):
        """Should use the given step name."""
        step = ActionService(session).run(action.id, "Publishing", name="PUBLISH")
        assert step.name == "PUBLISH"

    def test_unknown_action(self, session):
        """Should raise ActionNotFoundError."""
        with pytest.raises(ActionNotFoundError) as exc_info:
            ActionService(session).run("missing", "Building app")

        assert exc_info.value.code == "action_not_found"
        assert exc_info.value.action_id == "missing"

    def test_rejected_step_rolls_back(self, session, action):
        """A failed commit should leave the session usable."""
        service = ActionService(session)

        with pytest.raises(IntegrityError):
            service.run(action.id, "Building app", name=None)

        assert session.is_active
        step = service.run(action.id, "Building app")
        assert step.name == DEFAULT_STEP_NAME


class TestLog:
    """Tests for log and log_info."""

    def test_log_levels(self, session, action):
        """Entries should keep their level, message and meta."""
        service = ActionService(session)
        step = service.run(action.id, "Building app")

        service.log_info(step, "Generating", {"entities": 2})
        service.log(step, ActionLogLevel.ERROR, "Generator crashed")

        session.expire_all()
        logs = session.get(ActionStep, step.id).logs
        assert [(log.level, log.message) for log in logs] == [
            ("info", "Building app"),
            ("info", "Generating"),
            ("error", "Generator crashed"),
        ]
        assert logs[1].meta == {"entities": 2}
        assert logs[2].meta == {}


class TestComplete:
    """Tests for ActionService.complete."""

    @pytest.mark.parametrize(
        "status", [ActionStepStatus.SUCCESS, ActionStepStatus.FAILED]
    )
    def test_complete(self, session, action, status):
        """Should record the final status and completion time."""
        service = ActionService(session)
        step = service.run(action.id, "Building app")

        service.complete(step, status)

        session.expire_all()
        stored = session.get(ActionStep, step.id)
        assert stored.status == status.value
        assert stored.completed_at is not None

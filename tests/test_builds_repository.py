"""Tests for builds/repository.py module.

Uses an in-memory SQLite database.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from appgen.actions.models import Action, ActionStep
from appgen.apps.models import App, Block, BlockVersion
from appgen.builds.errors import (
    BuildNotFoundError,
    BuildServiceError,
    InvalidStatusTransitionError,
)
from appgen.builds.models import Build
from appgen.builds.repository import BuildRepository
from appgen.builds.service import create_initial_step_data
from appgen.db import create_all_tables, get_engine
from appgen.entities.models import Entity, EntityVersion
from appgen.types import BuildStatus


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine for testing."""
    engine = get_engine("sqlite:///:memory:")
    create_all_tables(engine)
    return engine


@pytest.fixture
def session(engine):
    """Create a session for testing."""
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def repo(session):
    """BuildRepository bound to the test session."""
    return BuildRepository(session)


@pytest.fixture
def app_record(session):
    """Persist an app with one entity version and one block version."""
    app = App(name="Shop")
    entity = Entity(app=app, name="Customer", display_name="Customer")
    entity.versions.append(EntityVersion(name="Customer", display_name="Customer"))
    block = Block(app=app, name="Login", block_type="auth")
    block.versions.append(BlockVersion())
    session.add_all([app, entity, block])
    session.commit()
    return app


def create_build(repo, app, **kwargs) -> Build:
    """Create a build with sensible defaults."""
    fields = {
        "user_id": "user-1",
        "app_id": app.id,
        "version": "1.0.0",
        "message": "first",
        "created_at": datetime.now(timezone.utc),
    }
    fields.update(kwargs)
    return repo.create(**fields)


class TestCreate:
    """Tests for BuildRepository.create."""

    def test_create_waiting_build(self, repo, app_record):
        """Should persist a waiting build with a fresh action."""
        build = create_build(repo, app_record)

        assert build.id
        assert build.status == BuildStatus.WAITING.value
        assert build.action_id
        assert build.action.steps == []

    def test_create_with_steps(self, repo, session, app_record):
        """Should create the action's steps and logs inline."""
        completed_at = datetime.now(timezone.utc)
        step = {
            **create_initial_step_data("1.0.0", "first"),
            "completed_at": completed_at,
        }

        build = create_build(repo, app_record, action_steps=[step])

        session.expire_all()
        action = session.get(Action, build.action_id)
        assert len(action.steps) == 1
        created = action.steps[0]
        assert created.name == "ADD_TO_QUEUE"
        assert created.status == "success"
        assert created.completed_at is not None
        assert [log.message for log in created.logs] == [
            "create build generation task",
            "Build Version: 1.0.0",
            "Build message: first",
        ]
        assert all(log.level == "info" for log in created.logs)

    def test_links_versions(self, repo, app_record):
        """Should link the given entity and block versions."""
        entity_version = app_record.entities[0].versions[0]
        block_version = app_record.blocks[0].versions[0]

        build = create_build(
            repo,
            app_record,
            entity_version_ids=[entity_version.id],
            block_version_ids=[block_version.id],
        )

        assert build.entity_versions == [entity_version]
        assert build.block_versions == [block_version]

    def test_unknown_version_ids(self, repo, session, app_record):
        """Unknown version ids should be rejected without writing."""
        with pytest.raises(BuildServiceError) as exc_info:
            create_build(repo, app_record, entity_version_ids=["missing"])

        assert exc_info.value.code == "invalid_build_input"
        assert repo.find_many() == []

    def test_unknown_app(self, repo):
        """Builds for unknown apps should be rejected."""
        with pytest.raises(BuildServiceError) as exc_info:
            repo.create(
                user_id="user-1",
                app_id="missing-app",
                version="1.0.0",
                message="",
                created_at=datetime.now(timezone.utc),
            )

        assert exc_info.value.code == "invalid_build_input"
        assert repo.find_many() == []

    def test_committed(self, repo, engine, app_record):
        """The new build should be visible to other sessions."""
        build = create_build(repo, app_record)

        other = sessionmaker(bind=engine)()
        try:
            assert other.get(Build, build.id) is not None
        finally:
            other.close()


class TestFind:
    """Tests for find_many and find_one."""

    def test_find_one(self, repo, app_record):
        """Should return a build by id."""
        build = create_build(repo, app_record)
        assert repo.find_one(build.id) is build

    def test_find_one_missing(self, repo):
        """Should return None for unknown ids."""
        assert repo.find_one("non-existing-id") is None

    def test_find_many_newest_first(self, repo, app_record):
        """Should order by creation time, newest first."""
        now = datetime.now(timezone.utc)
        old = create_build(repo, app_record, created_at=now - timedelta(hours=1))
        new = create_build(repo, app_record, created_at=now)

        assert [b.id for b in repo.find_many()] == [new.id, old.id]

    def test_find_many_filters(self, repo, app_record):
        """Should filter by app, user and status."""
        mine = create_build(repo, app_record, user_id="user-1")
        theirs = create_build(repo, app_record, user_id="user-2")
        repo.update(theirs.id, status=BuildStatus.ACTIVE)

        assert repo.find_many(user_id="user-1") == [mine]
        assert repo.find_many(status=BuildStatus.ACTIVE) == [theirs]
        assert repo.find_many(app_id="other-app") == []
        assert len(repo.find_many(app_id=app_record.id)) == 2

    def test_find_many_pagination(self, repo, app_record):
        """Should honor limit and offset."""
        now = datetime.now(timezone.utc)
        builds = [
            create_build(repo, app_record, created_at=now - timedelta(minutes=i))
            for i in range(5)
        ]

        page = repo.find_many(limit=2, offset=1)
        assert [b.id for b in page] == [builds[1].id, builds[2].id]


class TestUpdate:
    """Tests for BuildRepository.update."""

    def test_update_status(self, repo, app_record):
        """Should move the build forward."""
        build = create_build(repo, app_record)

        repo.update(build.id, status=BuildStatus.ACTIVE)
        updated = repo.update(build.id, status=BuildStatus.COMPLETED)

        assert updated.status == BuildStatus.COMPLETED.value
        assert repo.find_one(build.id).is_completed()

    def test_update_missing(self, repo):
        """Should raise BuildNotFoundError for unknown ids."""
        with pytest.raises(BuildNotFoundError):
            repo.update("non-existing-id", status=BuildStatus.ACTIVE)

    def test_update_backwards(self, repo, app_record):
        """Should refuse to move a finished build."""
        build = create_build(repo, app_record)
        repo.update(build.id, status=BuildStatus.FAILED)

        with pytest.raises(InvalidStatusTransitionError):
            repo.update(build.id, status=BuildStatus.ACTIVE)

        assert repo.find_one(build.id).status == BuildStatus.FAILED.value

    def test_update_committed(self, repo, engine, app_record):
        """Status changes should be visible to other sessions."""
        build = create_build(repo, app_record)
        repo.update(build.id, status=BuildStatus.ACTIVE)

        other = sessionmaker(bind=engine)()
        try:
            assert other.get(Build, build.id).status == BuildStatus.ACTIVE.value
        finally:
            other.close()

    def test_update_after_failed_flush(self, repo, session, app_record):
        """Should recover a session left needing a rollback."""
        build = create_build(repo, app_record)
        repo.update(build.id, status=BuildStatus.ACTIVE)

        session.add(ActionStep(action_id=build.action_id, name=None, message="x"))
        with pytest.raises(IntegrityError):
            session.flush()
        assert not session.is_active

        updated = repo.update(build.id, status=BuildStatus.FAILED)

        assert updated.status == BuildStatus.FAILED.value
        assert repo.find_one(build.id).status == BuildStatus.FAILED.value

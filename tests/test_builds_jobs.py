"""End-to-end tests for builds/jobs.py wiring.

Runs the whole lifecycle against a SQLite file with the in-process
background dispatcher.
"""

import io
import json
import zipfile
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from appgen.actions.models import ActionStep
from appgen.actions.service import DEFAULT_STEP_NAME, ActionService
from appgen.apps.models import App, AppRole
from appgen.background.service import HttpBackgroundService, LocalBackgroundService
from appgen.builds.errors import BuildNotCompleteError
from appgen.builds.generator import MANIFEST_FILENAME
from appgen.builds.jobs import (
    create_background_service,
    create_build_service,
    run_generated_app_job,
)
from appgen.builds.service import BuildCreateInput
from appgen.config import Settings
from appgen.db import create_all_tables, get_engine, get_session_factory
from appgen.entities.models import Entity, EntityField, EntityVersion
from appgen.types import ActionLogLevel, BuildStatus


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at tmp_path."""
    return Settings(
        _env_file=None,
        artifacts_dir=tmp_path / "artifacts",
        db_url=f"sqlite:///{tmp_path / 'appgen.db'}",
    )


@pytest.fixture
def session_factory(settings):
    """Session factory on a fresh SQLite file."""
    engine = get_engine(settings.db_url)
    create_all_tables(engine)
    yield get_session_factory(engine)
    engine.dispose()


@pytest.fixture
def app_id(session_factory):
    """Persist an app with one entity and one role."""
    with session_factory() as session:
        app = App(name="Shop")
        app.roles.append(AppRole(name="admin", display_name="Admin"))
        entity = Entity(app=app, name="Customer", display_name="Customer")
        version = EntityVersion(name="Customer", display_name="Customer")
        version.fields.append(
            EntityField(name="email", display_name="Email", data_type="text")
        )
        entity.versions.append(version)
        session.add_all([app, entity])
        session.commit()
        return app.id


class NamelessStepActionService(ActionService):
    """Starts steps without a name, which the database rejects."""

    def run(self, action_id, message, name=DEFAULT_STEP_NAME):
        return super().run(action_id, message, name=None)


class EmptyLogActionService(ActionService):
    """Writes info logs without a message, which the database rejects."""

    def log_info(self, step, message, meta=None):
        return self.log(step, ActionLogLevel.INFO, None, meta)


def create_build(session_factory, settings, background, app_id) -> str:
    with session_factory() as session:
        service = create_build_service(session, settings, background)
        build = service.create(
            BuildCreateInput(
                user_id="user-1", app_id=app_id, version="1.0.0", message="first"
            )
        )
        return build.id


class TestCreateBackgroundService:
    """Tests for create_background_service function."""

    def test_local_mode(self, settings, session_factory):
        """Local mode should register the generated-app job."""
        background = create_background_service(settings, session_factory)
        try:
            assert isinstance(background, LocalBackgroundService)
        finally:
            background.shutdown()

    def test_http_mode(self, settings, session_factory):
        """HTTP mode should post to the configured base URL."""
        settings = settings.model_copy(
            update={
                "background_mode": "http",
                "background_base_url": "http://jobs.test",
            }
        )
        background = create_background_service(settings, session_factory)
        try:
            assert isinstance(background, HttpBackgroundService)
            assert background.base_url == "http://jobs.test"
        finally:
            background.shutdown()


class TestRunGeneratedAppJob:
    """Tests for run_generated_app_job function."""

    def test_missing_build_id(self, settings, session_factory):
        """A payload without buildId should raise KeyError."""
        with pytest.raises(KeyError):
            run_generated_app_job(session_factory, settings, MagicMock(), {})

    def test_runs_build(self, settings, session_factory, app_id):
        """Should complete a waiting build."""
        background = MagicMock()
        build_id = create_build(session_factory, settings, background, app_id)

        run_generated_app_job(
            session_factory, settings, background, {"buildId": build_id}
        )

        with session_factory() as session:
            service = create_build_service(session, settings, background)
            assert service.find_one(build_id).status == BuildStatus.COMPLETED.value


class TestLifecycle:
    """Create a build, let the job run, then download it."""

    def test_create_build_download(self, settings, session_factory, app_id):
        """The queued job should complete the build and store its archive."""
        background = create_background_service(settings, session_factory)
        try:
            build_id = create_build(session_factory, settings, background, app_id)
        finally:
            background.shutdown(wait=True)

        with session_factory() as session:
            service = create_build_service(session, settings, MagicMock())
            build = service.find_one(build_id)
            assert build.status == BuildStatus.COMPLETED.value

            with service.download(build_id) as stream:
                data = stream.read()

            steps = session.execute(
                select(ActionStep)
                .where(ActionStep.action_id == build.action_id)
                .order_by(ActionStep.created_at)
            ).scalars().all()

        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            manifest = json.loads(archive.read(MANIFEST_FILENAME))
        assert manifest["build"]["id"] == build_id
        assert [e["name"] for e in manifest["entities"]] == ["Customer"]
        assert manifest["roles"][0]["name"] == "admin"

        assert [s.name for s in steps] == ["ADD_TO_QUEUE", "GENERATE_APP"]
        assert all(s.status == "success" for s in steps)
        assert all(s.created_at <= s.completed_at for s in steps)

    def test_failed_generation(self, settings, session_factory, app_id):
        """A generator error should leave the build failed."""
        background = MagicMock()
        build_id = create_build(session_factory, settings, background, app_id)

        with session_factory() as session:
            service = create_build_service(session, settings, background)
            service.generator = MagicMock(side_effect=RuntimeError("boom"))
            with pytest.raises(RuntimeError):
                service.build(build_id)

        with session_factory() as session:
            service = create_build_service(session, settings, background)
            assert service.find_one(build_id).status == BuildStatus.FAILED.value
            with pytest.raises(BuildNotCompleteError):
                service.download(build_id)

    def test_failed_step_commit(self, settings, session_factory, app_id):
        """A rejected step write should still leave the build failed."""
        background = MagicMock()
        build_id = create_build(session_factory, settings, background, app_id)

        with session_factory() as session:
            service = create_build_service(session, settings, background)
            service.actions = NamelessStepActionService(session)
            service.builds.update = MagicMock(wraps=service.builds.update)

            with pytest.raises(IntegrityError):
                service.build(build_id)

            writes = service.builds.update.call_args_list
            assert [c.kwargs["status"] for c in writes] == [
                BuildStatus.ACTIVE,
                BuildStatus.FAILED,
            ]

        with session_factory() as session:
            service = create_build_service(session, settings, background)
            assert service.find_one(build_id).status == BuildStatus.FAILED.value

    def test_failed_log_commit(self, settings, session_factory, app_id):
        """A rejected log write should fail both the build and its step."""
        background = MagicMock()
        build_id = create_build(session_factory, settings, background, app_id)

        with session_factory() as session:
            service = create_build_service(session, settings, background)
            service.actions = EmptyLogActionService(session)

            with pytest.raises(IntegrityError):
                service.build(build_id)

        with session_factory() as session:
            build = create_build_service(session, settings, background).find_one(
                build_id
            )
            assert build.status == BuildStatus.FAILED.value
            step = session.execute(
                select(ActionStep).where(
                    ActionStep.action_id == build.action_id,
                    ActionStep.name == DEFAULT_STEP_NAME,
                )
            ).scalar_one()
            assert step.status == "failed"
            assert step.completed_at is not None
            assert [log.level for log in step.logs] == ["info", "error"]

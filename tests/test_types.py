"""Tests for shared type definitions."""

import pytest

from appgen.types import (
    BUILD_STATUS_TRANSITIONS,
    ActionLogLevel,
    ActionStepStatus,
    BuildStatus,
)


class TestBuildStatus:
    """Test BuildStatus enum."""

    def test_values(self) -> None:
        """Values should be lowercase strings."""
        assert [s.value for s in BuildStatus] == [
            "waiting",
            "active",
            "completed",
            "failed",
        ]

    def test_is_string(self) -> None:
        """Members should compare equal to their values."""
        assert BuildStatus.COMPLETED == "completed"
        assert BuildStatus("failed") is BuildStatus.FAILED

    def test_invalid_value(self) -> None:
        """Unknown values should raise ValueError."""
        with pytest.raises(ValueError):
            BuildStatus("done")


class TestBuildStatusTransitions:
    """Test the allowed status transitions."""

    def test_every_status_listed(self) -> None:
        """Every status should have an entry."""
        assert set(BUILD_STATUS_TRANSITIONS) == set(BuildStatus)

    def test_waiting(self) -> None:
        """Waiting builds can start or fail."""
        assert BUILD_STATUS_TRANSITIONS[BuildStatus.WAITING] == {
            BuildStatus.ACTIVE,
            BuildStatus.FAILED,
        }

    def test_active(self) -> None:
        """Active builds can only finish."""
        assert BUILD_STATUS_TRANSITIONS[BuildStatus.ACTIVE] == {
            BuildStatus.COMPLETED,
            BuildStatus.FAILED,
        }

    @pytest.mark.parametrize("status", [BuildStatus.COMPLETED, BuildStatus.FAILED])
    def test_terminal(self, status: BuildStatus) -> None:
        """Completed and failed are terminal."""
        assert BUILD_STATUS_TRANSITIONS[status] == frozenset()

    def test_no_backwards_moves(self) -> None:
        """Nothing leads back to waiting."""
        for targets in BUILD_STATUS_TRANSITIONS.values():
            assert BuildStatus.WAITING not in targets


class TestActionEnums:
    """Test action step and log enums."""

    def test_step_status_values(self) -> None:
        """Step statuses should be lowercase strings."""
        assert {s.value for s in ActionStepStatus} == {"running", "success", "failed"}

    def test_log_level_values(self) -> None:
        """Log levels should be lowercase strings."""
        assert {lvl.value for lvl in ActionLogLevel} == {
            "debug",
            "info",
            "warning",
            "error",
        }

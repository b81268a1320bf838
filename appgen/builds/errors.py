"""Build error types.

Each error carries a stable ``code`` so the web and CLI layers can
branch on the failure reason.
"""


class BuildServiceError(Exception):
    """Base error for build operations."""

    def __init__(self, message: str, code: str = "build_service_error") -> None:
        super().__init__(message)
        self.code = code


class BuildNotFoundError(BuildServiceError):
    """Raised when no build matches the lookup."""

    def __init__(self, build_id: str) -> None:
        super().__init__(f"Build not found: {build_id}", code="build_not_found")
        self.build_id = build_id


class BuildNotCompleteError(BuildServiceError):
    """Raised when a build is downloaded before it completed."""

    def __init__(self, build_id: str, status: str) -> None:
        super().__init__(
            f"Build {build_id} is not complete (status: {status})",
            code="build_not_complete",
        )
        self.build_id = build_id
        self.status = status


class BuildResultNotFound(BuildServiceError):
    """Raised when a completed build has no stored archive."""

    def __init__(self, build_id: str, path: str) -> None:
        super().__init__(
            f"Result of build {build_id} not found at {path}",
            code="build_result_not_found",
        )
        self.build_id = build_id
        self.path = path


class InvalidStatusTransitionError(BuildServiceError):
    """Raised when a status change would move a build backwards."""

    def __init__(self, build_id: str, current: str, target: str) -> None:
        super().__init__(
            f"Build {build_id} cannot move from {current} to {target}",
            code="invalid_status_transition",
        )
        self.build_id = build_id
        self.current = current
        self.target = target


__all__ = [
    "BuildNotCompleteError",
    "BuildNotFoundError",
    "BuildResultNotFound",
    "BuildServiceError",
    "InvalidStatusTransitionError",
]

"""Build management endpoints.

- GET /builds - List builds
- GET /builds/{id} - Get build by ID
- POST /builds - Create a build and queue its generation
- GET /builds/{id}/download - Download the generated app archive
"""

from collections.abc import Iterator
from typing import Any, BinaryIO

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi import status as http_status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from appgen.builds.errors import (
    BuildNotCompleteError,
    BuildNotFoundError,
    BuildResultNotFound,
    BuildServiceError,
)
from appgen.builds.service import BuildCreateInput, BuildService, build_to_dict
from appgen.types import BuildStatus
from web.deps import get_build_service

router = APIRouter()

DOWNLOAD_CHUNK_SIZE = 64 * 1024


class BuildCreateRequest(BaseModel):
    """Request body for creating a build."""

    user_id: str = Field(min_length=1)
    app_id: str = Field(min_length=1)
    version: str = Field(min_length=1, max_length=50)
    message: str = ""


def _not_found(build_id: str) -> HTTPException:
    return HTTPException(
        status_code=http_status.HTTP_404_NOT_FOUND,
        detail={
            "code": "build_not_found",
            "message": f"Build not found: {build_id}",
        },
    )


def _iter_stream(stream: BinaryIO) -> Iterator[bytes]:
    try:
        while chunk := stream.read(DOWNLOAD_CHUNK_SIZE):
            yield chunk
    finally:
        stream.close()


@router.get("")
def list_builds_endpoint(
    app_id: str | None = Query(None, description="Filter by app ID"),
    user_id: str | None = Query(None, description="Filter by user ID"),
    status: str | None = Query(None, description="Filter by status"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum results"),
    offset: int = Query(0, ge=0, description="Results to skip"),
    service: BuildService = Depends(get_build_service),
) -> list[dict[str, Any]]:
    """List build records.

    Args:
        app_id: Filter by app ID.
        user_id: Filter by user ID.
        status: Filter by status.
        limit: Maximum results.
        offset: Results to skip.
        service: Build service.

    Returns:
        List of build records.
    """
    status_filter: BuildStatus | None = None
    if status:
        try:
            status_filter = BuildStatus(status)
        except ValueError:
            raise HTTPException(
                status_code=http_status.HTTP_400_BAD_REQUEST,
                detail={
                    "code": "invalid_status",
                    "message": f"Invalid status: {status}. "
                    "Valid values: waiting, active, completed, failed",
                },
            ) from None

    builds = service.find_many(
        app_id=app_id,
        user_id=user_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
    return [build_to_dict(b) for b in builds]


@router.post("", status_code=http_status.HTTP_201_CREATED)
def create_build_endpoint(
    request: BuildCreateRequest,
    service: BuildService = Depends(get_build_service),
) -> dict[str, Any]:
    """Create a build and queue its generation job.

    Args:
        request: New build fields.
        service: Build service.

    Returns:
        The created build record.

    Raises:
        HTTPException: If the build input is invalid.
    """
    try:
        build = service.create(BuildCreateInput(**request.model_dump()))
    except BuildServiceError as e:
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            detail={"code": e.code, "message": str(e)},
        ) from None
    return build_to_dict(build)


@router.get("/{build_id}")
def get_build_endpoint(
    build_id: str,
    service: BuildService = Depends(get_build_service),
) -> dict[str, Any]:
    """Get a build record by ID.

    Raises:
        HTTPException: If build not found.
    """
    build = service.find_one(build_id)
    if build is None:
        raise _not_found(build_id)
    return build_to_dict(build)


@router.get("/{build_id}/download")
def download_build_endpoint(
    build_id: str,
    service: BuildService = Depends(get_build_service),
) -> StreamingResponse:
    """Download the generated app archive of a completed build.

    Args:
        build_id: Build ID.
        service: Build service.

    Returns:
        Streaming zip response.

    Raises:
        HTTPException: If the build is missing, not completed, or has no
            stored archive.
    """
    try:
        stream = service.download(build_id)
    except BuildNotFoundError:
        raise _not_found(build_id) from None
    except BuildNotCompleteError as e:
        raise HTTPException(
            status_code=http_status.HTTP_409_CONFLICT,
            detail={"code": e.code, "message": str(e)},
        ) from None
    except BuildResultNotFound as e:
        raise HTTPException(
            status_code=http_status.HTTP_404_NOT_FOUND,
            detail={"code": e.code, "message": str(e)},
        ) from None

    return StreamingResponse(
        _iter_stream(stream),
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{build_id}.zip"'},
    )

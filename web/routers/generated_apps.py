"""Generated-app job endpoint.

The HTTP background dispatcher posts ``{"buildId": ...}`` here; the
request runs the build to completion before responding.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status
from pydantic import BaseModel, ConfigDict, Field

from appgen.builds.errors import BuildNotFoundError, InvalidStatusTransitionError
from appgen.builds.service import BuildService
from web.deps import get_build_service

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateGeneratedAppRequest(BaseModel):
    """Payload of a generated-app job."""

    model_config = ConfigDict(populate_by_name=True)

    build_id: str = Field(alias="buildId", min_length=1)


@router.post("/", status_code=http_status.HTTP_204_NO_CONTENT)
def create_generated_app_endpoint(
    request: CreateGeneratedAppRequest,
    service: BuildService = Depends(get_build_service),
) -> None:
    """Run the build named in the job payload.

    Raises:
        HTTPException: If the build is missing, already picked up, or fails.
    """
    try:
        service.build(request.build_id)
    except BuildNotFoundError as e:
        raise HTTPException(
            status_code=http_status.HTTP_404_NOT_FOUND,
            detail={"code": e.code, "message": str(e)},
        ) from None
    except InvalidStatusTransitionError as e:
        raise HTTPException(
            status_code=http_status.HTTP_409_CONFLICT,
            detail={"code": e.code, "message": str(e)},
        ) from None
    except Exception as e:
        logger.exception("Generated-app job for build %s failed", request.build_id)
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "build_failed", "message": str(e)},
        ) from e

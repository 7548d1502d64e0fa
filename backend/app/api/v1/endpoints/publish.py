import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from app.api import deps
from app.api.v1.helpers.publish import read_publish_form
from app.api.v1.helpers.responses import RESP_400, RESP_401, RESP_404, RESP_413, RESP_422, RESP_500
from app.core.config import settings
from app.core.exceptions import ClientError
from app.schemas.publish import PublishHeaders, PublishResponse
from app.services.publish import PublishService

logger = logging.getLogger(__name__)

router = APIRouter()


def request_origin(request: Request) -> str:
    """Public origin the published URLs are built on."""
    if settings.PUBLIC_BASE_URL:
        return settings.PUBLIC_BASE_URL.rstrip("/")
    return str(request.base_url).rstrip("/")


def declared_content_length(request: Request) -> Optional[int]:
    value = request.headers.get("content-length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError as e:
        raise ClientError(f"Invalid content-length: {value}") from e


@router.post(
    "/publish",
    summary="Publish Preview Packages",
    response_model=PublishResponse,
    responses={**RESP_400, **RESP_401, **RESP_404, **RESP_413, **RESP_422, **RESP_500},
)
async def publish(
    request: Request,
    service: PublishService = Depends(deps.get_publish_service),
):
    """
    Publish the packages built by a registered CI run.

    Expects a multipart body with ``package:<name>`` files and optional
    ``template:<template>:<asset>`` fields, plus the ``sb-*`` headers.
    Returns one installable URL per package, in submission order.
    """
    headers = PublishHeaders.from_headers(request.headers)

    result = await service.publish(
        headers,
        content_length=declared_content_length(request),
        load_form=lambda: read_publish_form(request),
        origin=request_origin(request),
    )
    return PublishResponse(ok=True, urls=result.urls)

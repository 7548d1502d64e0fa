import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from app.api import deps
from app.api.v1.helpers.responses import RESP_404
from app.services.artifacts import ArtifactResolver, parse_artifact_path
from app.services.storage import BlobStore, iter_chunks

logger = logging.getLogger(__name__)

router = APIRouter()

PACKAGE_MEDIA_TYPE = "application/tar+gzip"


@router.get("/template/{key}", summary="Download Template Bundle", responses={**RESP_404})
async def get_template(
    key: str,
    templates: BlobStore = Depends(deps.get_templates_store),
):
    """Stored template bundle (HTML) or binary template asset."""
    grid_out = await templates.open(key)
    if grid_out is None:
        raise HTTPException(status_code=404, detail="Template not found")

    metadata = grid_out.metadata or {}
    media_type = metadata.get("contentType") or "application/octet-stream"
    return StreamingResponse(iter_chunks(grid_out), media_type=media_type)


@router.get("/{artifact:path}", summary="Download Package", responses={**RESP_404})
async def get_package(
    artifact: str,
    resolver: ArtifactResolver = Depends(deps.get_artifact_resolver),
):
    """
    Package tarball for ``{owner}/{repo}/{package}@{tag}`` or the compact
    ``{package}@{tag}``, where the tag is a ref or a commit sha.
    """
    ref = parse_artifact_path(artifact)
    if ref is None:
        raise HTTPException(status_code=404, detail="Not found")

    key = await resolver.resolve(ref)
    grid_out = await resolver.packages.open(key) if key else None
    if grid_out is None:
        raise HTTPException(status_code=404, detail=f"{ref.package}@{ref.tag} not found")

    filename = f"{ref.package.replace('/', '-').lstrip('@')}.tgz"
    return StreamingResponse(
        iter_chunks(grid_out),
        media_type=PACKAGE_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

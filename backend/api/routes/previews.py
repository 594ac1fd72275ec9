"""
Workflow Preview API — store, capture and delete light/dark previews.

Endpoints:
  POST   /workflow-preview                           — Store a client-rendered pair
  POST   /workflow-preview/capture                   — Render a pair server-side
  DELETE /workflow-preview/{workflow_id}/{preview_id} — Delete both images
  GET    /workflow-preview/files/{key:path}          — Serve a locally stored image
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse

from api.schemas.common import ErrorResponse
from api.schemas.preview import PreviewCaptureRequest, PreviewDeleteResponse, PreviewResponse
from app.config import get_settings
from app.dependencies import get_preview_service
from core.exceptions import ValidationError
from preview.models import ImageFormat
from services.preview_service import PreviewService
from services.storage_service import LocalStorageBackend

logger = logging.getLogger(__name__)
router = APIRouter(tags=["previews"])

_ERRORS = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


async def _read_upload(upload: Optional[UploadFile]) -> Optional[bytes]:
    if upload is None:
        return None
    try:
        return await upload.read()
    finally:
        await upload.close()


@router.post("", response_model=PreviewResponse, responses=_ERRORS)
async def upload_preview(
    workflow_id: Optional[str] = Form(default=None, alias="workflowId"),
    light_mode_image: Optional[UploadFile] = File(default=None, alias="lightModeImage"),
    dark_mode_image: Optional[UploadFile] = File(default=None, alias="darkModeImage"),
    image_format: Optional[str] = Form(default=None, alias="format"),
    service: PreviewService = Depends(get_preview_service),
):
    """Store a light/dark preview pair rendered by the client."""
    missing = [
        name
        for name, value in (
            ("workflowId", workflow_id),
            ("lightModeImage", light_mode_image),
            ("darkModeImage", dark_mode_image),
        )
        if value is None or value == ""
    ]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing required fields: {', '.join(missing)}")

    light = await _read_upload(light_mode_image)
    dark = await _read_upload(dark_mode_image)

    result = await service.publish(workflow_id, light, dark, image_format)
    return PreviewResponse.from_result(result)


@router.post(
    "/capture",
    response_model=PreviewResponse,
    responses={**_ERRORS, 404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def capture_preview(
    body: PreviewCaptureRequest,
    service: PreviewService = Depends(get_preview_service),
):
    """Render a workflow page in headless Chromium and store both themes."""
    request = service.build_request(
        body.workflow_id,
        selector=body.selector,
        padding=body.padding,
        scale=body.scale,
        format=body.format,
        quality=body.quality,
        width=body.width,
        height=body.height,
    )
    result = await service.capture(body.url, request)
    return PreviewResponse.from_result(result)


@router.delete(
    "/{workflow_id}/{preview_id}",
    response_model=PreviewDeleteResponse,
    responses=_ERRORS,
)
async def delete_preview(
    workflow_id: str,
    preview_id: str,
    image_format: Optional[str] = Query(default=None, alias="format"),
    service: PreviewService = Depends(get_preview_service),
):
    """Delete both theme images of a preview. Unknown previews succeed."""
    await service.delete(workflow_id, preview_id, image_format)
    return PreviewDeleteResponse(workflow_id=workflow_id, preview_id=preview_id, deleted=True)


@router.get("/files/{key:path}")
async def serve_preview_file(
    key: str,
    service: PreviewService = Depends(get_preview_service),
):
    """Serve a preview image from local storage (development mode only)."""
    backend = service.uploader.backend
    if not isinstance(backend, LocalStorageBackend):
        raise HTTPException(status_code=404, detail="File not found")

    resolved = backend.get_file_path(key)
    if not resolved:
        raise HTTPException(status_code=404, detail="File not found")

    try:
        media_type = ImageFormat.parse(resolved.suffix.lstrip(".")).content_type
    except ValidationError:
        media_type = "application/octet-stream"

    return FileResponse(
        path=str(resolved),
        media_type=media_type,
        headers={"Cache-Control": get_settings().PREVIEW_CACHE_CONTROL},
    )

"""Preview generation: clone → rasterize → upload, for both themes at once.

Usage:
    orchestrator = PreviewOrchestrator(uploader)
    result = await orchestrator.generate(page, PreviewRequest(workflow_id="wf1"))

Both themes fan out with asyncio.gather and join before the next stage.
Generation is all-or-nothing: when one theme fails the caller gets an
exception and no URLs, and an image the sibling branch already uploaded
is deleted again.
"""

import asyncio
from typing import Any, Dict, Optional

import structlog

from core.exceptions import UploadError, ValidationError
from preview.models import (
    THEMES,
    ImageFormat,
    PreviewRequest,
    PreviewResult,
    Theme,
    new_preview_id,
    now_millis,
)
from preview.rasterizer import Rasterizer
from preview.renderer import ThemeCloneRenderer, ThemedClone
from services.storage_service import StorageUploader

logger = structlog.get_logger(__name__)


async def _rollback(uploader: StorageUploader, keys: Dict[Theme, str]) -> None:
    """Best-effort removal of images uploaded before a sibling failed."""
    for theme, key in keys.items():
        try:
            await uploader.delete(key)
            logger.info("Rolled back orphaned preview image", theme=theme.value, key=key)
        except Exception as exc:
            logger.warning("Rollback of preview image failed", theme=theme.value, key=key,
                           error=str(exc))


async def publish_preview_pair(
    uploader: StorageUploader,
    workflow_id: str,
    light: bytes,
    dark: bytes,
    image_format: ImageFormat = ImageFormat.WEBP,
    preview_id: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> PreviewResult:
    """Upload a light/dark image pair concurrently and build the result.

    Args:
        uploader: Storage uploader to write through
        workflow_id: Workflow the preview belongs to
        light: Encoded light-theme image
        dark: Encoded dark-theme image
        image_format: Encoding of both images
        preview_id: Identifier to store under (generated when omitted)
        timestamp: Epoch milliseconds for the result (now when omitted)

    Returns:
        PreviewResult with both public URLs

    Raises:
        UploadError: If either upload fails; the other image is removed again
        ValidationError: If the storage backend rejects a key
    """
    fmt = ImageFormat.parse(image_format)
    preview_id = preview_id or new_preview_id()
    timestamp = timestamp if timestamp is not None else now_millis()

    images = {Theme.LIGHT: light, Theme.DARK: dark}
    keys = {theme: uploader.preview_key(workflow_id, preview_id, theme, fmt) for theme in THEMES}

    outcomes = await asyncio.gather(
        *(uploader.upload(images[theme], keys[theme], fmt) for theme in THEMES),
        return_exceptions=True,
    )

    failures = [o for o in outcomes if isinstance(o, BaseException)]
    if failures:
        uploaded = {
            theme: keys[theme]
            for theme, outcome in zip(THEMES, outcomes)
            if not isinstance(outcome, BaseException)
        }
        if uploaded:
            await _rollback(uploader, uploaded)
        error = failures[0]
        logger.error("Preview upload failed", workflow_id=workflow_id, preview_id=preview_id,
                     error=str(error))
        if isinstance(error, (UploadError, ValidationError)):
            raise error
        raise UploadError("Failed to upload workflow preview", cause=error) from error

    urls = dict(zip(THEMES, outcomes))
    result = PreviewResult(
        preview_id=preview_id,
        workflow_id=workflow_id,
        light_mode_url=urls[Theme.LIGHT],
        dark_mode_url=urls[Theme.DARK],
        timestamp=timestamp,
    )
    logger.info("Preview published", workflow_id=workflow_id, preview_id=preview_id,
                format=fmt.value)
    return result


class PreviewOrchestrator:
    """Runs the two theme pipelines against a live page."""

    def __init__(
        self,
        uploader: StorageUploader,
        renderer: Optional[ThemeCloneRenderer] = None,
        rasterizer: Optional[Rasterizer] = None,
    ):
        self.uploader = uploader
        self.renderer = renderer or ThemeCloneRenderer()
        self.rasterizer = rasterizer or Rasterizer()

    async def capture(self, page: Any, request: PreviewRequest) -> Dict[Theme, bytes]:
        """Render both themes of the request's element into encoded images.

        Off-screen containers are removed before returning, whether or not
        rasterization succeeded.
        """
        clones: Dict[Theme, ThemedClone] = {}
        try:
            for theme in THEMES:
                clones[theme] = await self.renderer.clone(page, request.selector, theme)

            buffers = await asyncio.gather(
                *(
                    self.rasterizer.rasterize(
                        page,
                        clones[theme],
                        padding=request.padding,
                        scale=request.scale,
                        image_format=request.format,
                        quality=request.quality,
                    )
                    for theme in THEMES
                )
            )
            return dict(zip(THEMES, buffers))
        finally:
            for clone in clones.values():
                try:
                    await self.renderer.discard(page, clone)
                except Exception as exc:
                    logger.warning("Could not remove off-screen clone",
                                   container_id=clone.container_id, error=str(exc))

    async def generate(self, page: Any, request: PreviewRequest) -> PreviewResult:
        """Capture both themes and upload them as one preview.

        Raises:
            ElementNotFoundError: If the selector matches nothing on the page
            RasterizationError: If either theme cannot be rendered
            UploadError: If either image cannot be stored
        """
        preview_id = new_preview_id()
        timestamp = now_millis()
        log = logger.bind(workflow_id=request.workflow_id, preview_id=preview_id)
        log.info("Generating workflow preview", selector=request.selector,
                 format=request.format.value)

        images = await self.capture(page, request)
        return await publish_preview_pair(
            self.uploader,
            request.workflow_id,
            images[Theme.LIGHT],
            images[Theme.DARK],
            image_format=request.format,
            preview_id=preview_id,
            timestamp=timestamp,
        )

"""Preview service — the operations the workflow-preview API exposes.

- publish: store a client-rendered light/dark pair
- capture: render the pair server-side in headless Chromium, then store it
- delete:  remove both images of a preview
"""

import logging
from typing import Any, Callable, Optional
from urllib.parse import urlparse

from app.config import Settings, get_settings
from core.exceptions import ValidationError
from preview.browser import BrowserSession
from preview.models import ImageFormat, PreviewRequest, PreviewResult, check_key_segment
from preview.orchestrator import PreviewOrchestrator, publish_preview_pair
from services.storage_service import StorageUploader, get_storage_uploader

logger = logging.getLogger(__name__)


class PreviewService:
    """Publishes, captures and deletes workflow previews."""

    def __init__(
        self,
        uploader: StorageUploader,
        settings: Optional[Settings] = None,
        orchestrator: Optional[PreviewOrchestrator] = None,
        session_factory: Optional[Callable[..., Any]] = None,
    ):
        self.uploader = uploader
        self.settings = settings or get_settings()
        self.orchestrator = orchestrator or PreviewOrchestrator(uploader)
        self.session_factory = session_factory or BrowserSession

    def build_request(self, workflow_id: str, **overrides: Any) -> PreviewRequest:
        """PreviewRequest with configured defaults for every option not given."""
        s = self.settings
        options = {
            "selector": s.PREVIEW_DEFAULT_SELECTOR,
            "padding": s.PREVIEW_DEFAULT_PADDING,
            "scale": s.PREVIEW_DEFAULT_SCALE,
            "format": s.PREVIEW_DEFAULT_FORMAT,
            "quality": s.PREVIEW_DEFAULT_QUALITY,
            "width": s.PREVIEW_DEFAULT_WIDTH,
            "height": s.PREVIEW_DEFAULT_HEIGHT,
        }
        options.update({k: v for k, v in overrides.items() if v is not None})
        return PreviewRequest(workflow_id=workflow_id, **options)

    def _check_image(self, name: str, data: Optional[bytes]) -> None:
        if not data:
            raise ValidationError(f"{name} is required")
        if len(data) > self.settings.PREVIEW_MAX_UPLOAD_BYTES:
            raise ValidationError(
                f"{name} exceeds {self.settings.PREVIEW_MAX_UPLOAD_BYTES} bytes"
            )

    def _check_capture_url(self, url: str) -> None:
        parsed = urlparse(url or "")
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValidationError("url must be an absolute http(s) URL")
        allowed = self.settings.capture_allowed_hosts_list
        if allowed and parsed.hostname.lower() not in allowed:
            raise ValidationError(f"Capturing from host '{parsed.hostname}' is not allowed")

    async def publish(
        self,
        workflow_id: Optional[str],
        light: Optional[bytes],
        dark: Optional[bytes],
        image_format: Any = None,
    ) -> PreviewResult:
        """
        Store a light/dark pair rendered by the client.

        Every field is validated before any storage I/O happens.

        Raises:
            ValidationError: Missing or malformed workflow id, missing image,
                unknown format, oversized image
            UploadError: If either image cannot be stored
        """
        if not workflow_id or not workflow_id.strip():
            raise ValidationError("Missing required fields: workflowId")
        check_key_segment("workflowId", workflow_id)
        self._check_image("lightModeImage", light)
        self._check_image("darkModeImage", dark)
        fmt = ImageFormat.parse(image_format or self.settings.PREVIEW_DEFAULT_FORMAT)

        return await publish_preview_pair(self.uploader, workflow_id, light, dark, fmt)

    async def capture(self, url: str, request: PreviewRequest) -> PreviewResult:
        """
        Open ``url`` in headless Chromium and generate a preview of
        ``request.selector``.

        Raises:
            ValidationError: If the URL is not capturable
            CaptureError: If the page cannot be loaded
            ElementNotFoundError / RasterizationError / UploadError: from generation
        """
        self._check_capture_url(url)
        logger.info(f"Capturing preview of workflow {request.workflow_id} from {url}")

        session = self.session_factory(
            url,
            selector=request.selector,
            width=request.width,
            height=request.height,
            scale=request.scale,
            headless=self.settings.BROWSER_HEADLESS,
            timeout_ms=self.settings.CAPTURE_TIMEOUT_MS,
        )
        async with session as page:
            return await self.orchestrator.generate(page, request)

    async def delete(
        self,
        workflow_id: str,
        preview_id: str,
        image_format: Any = None,
    ) -> dict:
        """Delete both theme images. Unknown previews are not an error."""
        check_key_segment("workflowId", workflow_id)
        check_key_segment("previewId", preview_id)
        fmt = ImageFormat.parse(image_format or self.settings.PREVIEW_DEFAULT_FORMAT)
        outcome = await self.uploader.delete_preview(workflow_id, preview_id, fmt)
        logger.info(f"Deleted preview {preview_id} of workflow {workflow_id}: {outcome}")
        return outcome


# Singleton instance
_preview_service: Optional[PreviewService] = None


def get_preview_service() -> PreviewService:
    """Get or create the preview service singleton."""
    global _preview_service
    if _preview_service is None:
        _preview_service = PreviewService(get_storage_uploader())
    return _preview_service

"""Shared pytest fixtures for the Workflow Preview Service test suite.

Provides:
- In-memory storage backend with failure injection
- Local filesystem backend rooted in a temp dir
- FakePage: stands in for a Playwright page (evaluate + screenshot)
- FastAPI test client (httpx.AsyncClient) wired to test services
"""

import io
import os
from typing import AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

# Override settings BEFORE any app imports
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("STORAGE_MODE", "local")
os.environ.setdefault("LOG_FORMAT", "text")

from app.config import Settings  # noqa: E402
from core.exceptions import UploadError  # noqa: E402
from preview.renderer import CLONE_SCRIPT, DISCARD_SCRIPT  # noqa: E402
from services.preview_service import PreviewService  # noqa: E402
from services.storage_service import (  # noqa: E402
    LocalStorageBackend,
    StorageBackend,
    StorageUploader,
)


# ---------------------------------------------------------------------------
# Storage fixtures
# ---------------------------------------------------------------------------

class MemoryBackend(StorageBackend):
    """Dict-backed storage that can be told to fail for matching keys."""

    name = "memory"

    def __init__(self, fail_on: Optional[str] = None):
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.fail_on = fail_on
        self.calls: List[tuple] = []

    def public_url(self, key: str) -> str:
        return f"https://cdn.test/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        self.calls.append(("put", key))
        if self.fail_on and self.fail_on in key:
            raise UploadError(f"Could not upload {key}", cause=RuntimeError("bucket offline"), backend=self.name)
        self.objects[key] = data
        self.content_types[key] = content_type
        return self.public_url(key)

    async def delete(self, key: str) -> bool:
        self.calls.append(("delete", key))
        return self.objects.pop(key, None) is not None


@pytest.fixture
def memory_backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def uploader(memory_backend) -> StorageUploader:
    return StorageUploader(memory_backend)


@pytest.fixture
def local_backend(tmp_path) -> LocalStorageBackend:
    return LocalStorageBackend(
        base_path=str(tmp_path / "previews"),
        public_base_url="/api/v1/workflow-preview/files",
    )


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        ENVIRONMENT="testing",
        STORAGE_MODE="local",
        LOCAL_STORAGE_PATH=str(tmp_path / "previews"),
        PREVIEW_MAX_UPLOAD_BYTES=1024 * 1024,
    )


# ---------------------------------------------------------------------------
# Fake browser page
# ---------------------------------------------------------------------------

def png_bytes(width: int = 8, height: int = 8, color=(120, 40, 200, 255)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(buffer, "PNG")
    return buffer.getvalue()


class FakePage:
    """Just enough of a Playwright page for the capture pipeline.

    Elements are declared as {selector: (width, height)}. Cloning parks a
    container below the current document height, like the real script.
    """

    def __init__(
        self,
        elements: Optional[Dict[str, tuple]] = None,
        device_scale_factor: float = 1.5,
        fail_themes: tuple = (),
        empty_themes: tuple = (),
    ):
        self.elements = elements if elements is not None else {".react-flow": (400, 300)}
        self.device_scale_factor = device_scale_factor
        self.fail_themes = set(fail_themes)
        self.empty_themes = set(empty_themes)
        self.document_height = 800
        self.containers: Dict[str, dict] = {}
        self.clone_args: List[dict] = []
        self.screenshot_calls: List[dict] = []

    async def evaluate(self, script, arg=None):
        if script is CLONE_SCRIPT:
            return self._clone(arg)
        if script is DISCARD_SCRIPT:
            return self.containers.pop(arg["containerId"], None) is not None
        raise AssertionError("unexpected script")

    def _clone(self, arg: dict):
        self.clone_args.append(arg)
        size = self.elements.get(arg["selector"])
        if size is None:
            return None
        width, height = size
        gap = arg["gap"]
        box = {"x": float(gap), "y": float(self.document_height + gap),
               "width": float(width), "height": float(height)}
        self.document_height += gap + height
        self.containers[arg["containerId"]] = {"theme": arg["theme"], "box": box}
        return box

    def _theme_at(self, clip: dict) -> Optional[str]:
        cy = clip["y"] + clip["height"] / 2
        for container in self.containers.values():
            box = container["box"]
            if box["y"] <= cy <= box["y"] + box["height"]:
                return container["theme"]
        return None

    async def screenshot(self, **kwargs):
        self.screenshot_calls.append(kwargs)
        theme = self._theme_at(kwargs["clip"])
        if theme in self.fail_themes:
            raise RuntimeError("Tainted canvases may not be exported")
        if theme in self.empty_themes:
            return b""
        clip = kwargs["clip"]
        width = int(round(clip["width"] * self.device_scale_factor))
        height = int(round(clip["height"] * self.device_scale_factor))
        color = (255, 255, 255, 255) if theme == "light" else (9, 9, 11, 255)
        return png_bytes(width, height, color)


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()


class FakeSession:
    """BrowserSession stand-in that yields a FakePage."""

    instances: List["FakeSession"] = []

    def __init__(self, url, **kwargs):
        self.url = url
        self.kwargs = kwargs
        self.page = FakePage()
        self.closed = False
        FakeSession.instances.append(self)

    async def __aenter__(self):
        return self.page

    async def __aexit__(self, exc_type, exc, tb):
        self.closed = True


# ---------------------------------------------------------------------------
# App / HTTP client fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def preview_service(test_settings, local_backend) -> PreviewService:
    FakeSession.instances.clear()
    return PreviewService(
        StorageUploader(local_backend),
        settings=test_settings,
        session_factory=FakeSession,
    )


@pytest_asyncio.fixture
async def app(preview_service):
    """Create a FastAPI app instance wired to test services."""
    from app.dependencies import get_preview_service, get_uploader
    from app.main import create_app

    test_app = create_app()
    test_app.dependency_overrides[get_preview_service] = lambda: preview_service
    test_app.dependency_overrides[get_uploader] = lambda: preview_service.uploader

    yield test_app

    test_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

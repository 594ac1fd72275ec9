"""FastAPI dependency injection functions."""

from services.preview_service import PreviewService
from services.preview_service import get_preview_service as _get_preview_service
from services.storage_service import StorageUploader, get_storage_uploader


def get_uploader() -> StorageUploader:
    """Provide the storage uploader configured by STORAGE_MODE."""
    return get_storage_uploader()


def get_preview_service() -> PreviewService:
    """
    Provide the preview service for API endpoints.

    Tests swap it out through ``app.dependency_overrides``.
    """
    return _get_preview_service()

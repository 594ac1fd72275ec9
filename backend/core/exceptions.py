"""Custom exceptions for the workflow preview service."""

from typing import Optional


class PreviewError(Exception):
    """Base exception for the workflow preview service."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code.

        Args:
            message: Exception message
            status_code: HTTP status code
        """
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(PreviewError):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize NotFoundError with 404 status code."""
        super().__init__(message, 404)


class ElementNotFoundError(NotFoundError):
    """The capture target could not be located on the page."""

    def __init__(self, selector: str):
        self.selector = selector
        super().__init__(f'Element with selector "{selector}" not found')


class ValidationError(PreviewError):
    """A request is missing required fields or carries invalid values."""

    def __init__(self, message: str = "Validation failed"):
        """Initialize ValidationError with 400 status code."""
        super().__init__(message, 400)


class RasterizationError(PreviewError):
    """A themed clone could not be turned into an encoded image."""

    def __init__(self, message: str = "Rasterization failed"):
        super().__init__(message, 500)


class UploadError(PreviewError):
    """A storage backend failed to persist or remove an object.

    The backend exception is kept on ``cause`` (and chained with ``from``)
    so callers can inspect what the backend reported.
    """

    def __init__(
        self,
        message: str = "Upload failed",
        cause: Optional[BaseException] = None,
        backend: Optional[str] = None,
    ):
        self.cause = cause
        self.backend = backend
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, 500)


class CaptureError(PreviewError):
    """The page holding the capture target could not be loaded."""

    def __init__(self, message: str = "Could not load page for capture"):
        super().__init__(message, 502)

"""Preview domain types.

- Theme / ImageFormat enums
- PreviewRequest: caller-constructed capture options
- PreviewResult: the record handed back for a generated light/dark pair
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from core.exceptions import ValidationError


class Theme(str, Enum):
    """Color themes a preview is rendered in."""
    LIGHT = "light"
    DARK = "dark"


# Capture and upload order; light always comes first.
THEMES = (Theme.LIGHT, Theme.DARK)


class ImageFormat(str, Enum):
    """Encodings a preview image can be stored in."""
    WEBP = "webp"
    PNG = "png"
    JPEG = "jpeg"

    @property
    def content_type(self) -> str:
        return f"image/{self.value}"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def pillow_format(self) -> str:
        return self.value.upper()

    @classmethod
    def parse(cls, value: Any) -> "ImageFormat":
        """Coerce a user-supplied format name ("webp", "PNG", "jpg", ...)."""
        if isinstance(value, cls):
            return value
        name = str(value or "").strip().lower()
        if name == "jpg":
            name = "jpeg"
        try:
            return cls(name)
        except ValueError:
            allowed = ", ".join(f.value for f in cls)
            raise ValidationError(f"Unsupported image format '{value}'. Allowed: {allowed}")


_RESERVED_SEGMENTS = {".", ".."}


def check_key_segment(name: str, value: Any) -> str:
    """Reject ids that would escape their place in a storage key."""
    text = str(value or "").strip()
    if not text:
        raise ValidationError(f"{name} is required")
    if text in _RESERVED_SEGMENTS or "/" in text or "\\" in text:
        raise ValidationError(f"Invalid {name}: '{value}'")
    return text


def new_preview_id() -> str:
    """Generate a unique preview identifier."""
    return str(uuid4())


def now_millis() -> int:
    return int(time.time() * 1000)


@dataclass
class PreviewRequest:
    """Options for capturing a workflow preview.

    Defaults match what the workflow editor renders: the React Flow canvas,
    32px of breathing room, 1.5x pixel density, 80% quality webp.
    """
    workflow_id: str
    selector: str = ".react-flow"
    padding: int = 32
    scale: float = 1.5
    format: ImageFormat = ImageFormat.WEBP
    quality: int = 80
    width: int = 1200
    height: int = 630

    def __post_init__(self) -> None:
        self.format = ImageFormat.parse(self.format)
        self.validate()

    def validate(self) -> None:
        """Raise ValidationError when any option is out of range."""
        check_key_segment("workflowId", self.workflow_id)
        if not self.selector or not self.selector.strip():
            raise ValidationError("selector must not be empty")
        if self.padding < 0:
            raise ValidationError("padding must be >= 0")
        if self.scale <= 0:
            raise ValidationError("scale must be > 0")
        if not 1 <= self.quality <= 100:
            raise ValidationError("quality must be between 1 and 100")
        if self.width <= 0 or self.height <= 0:
            raise ValidationError("viewport width and height must be > 0")


@dataclass(frozen=True)
class PreviewResult:
    """A generated pair of theme screenshots."""
    preview_id: str
    workflow_id: str
    light_mode_url: str
    dark_mode_url: str
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "previewId": self.preview_id,
            "lightModeUrl": self.light_mode_url,
            "darkModeUrl": self.dark_mode_url,
            "timestamp": self.timestamp,
            "workflowId": self.workflow_id,
        }


def preview_key(
    workflow_id: str,
    preview_id: str,
    theme: Theme,
    image_format: Optional[ImageFormat] = None,
) -> str:
    """Storage key for one theme image: ``{workflowId}/{previewId}-{theme}.{ext}``."""
    fmt = ImageFormat.parse(image_format or ImageFormat.WEBP)
    return f"{workflow_id}/{preview_id}-{Theme(theme).value}.{fmt.extension}"

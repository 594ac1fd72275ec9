"""Workflow preview schemas."""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional

from preview.models import PreviewResult


class PreviewResponse(BaseModel):
    """A stored light/dark preview pair."""

    preview_id: str = Field(description="Unique preview identifier")
    light_mode_url: str = Field(description="Public URL of the light theme image")
    dark_mode_url: str = Field(description="Public URL of the dark theme image")
    timestamp: int = Field(description="Generation time, Unix epoch milliseconds")
    workflow_id: str = Field(description="Workflow the preview belongs to")

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @classmethod
    def from_result(cls, result: PreviewResult) -> "PreviewResponse":
        return cls(**result.to_dict())


class PreviewCaptureRequest(BaseModel):
    """Request to render a preview server-side from a live workflow page."""

    workflow_id: str = Field(min_length=1, description="Workflow the preview belongs to")
    url: str = Field(min_length=1, description="Page that renders the workflow canvas")
    selector: Optional[str] = Field(default=None, description="CSS selector of the capture target")
    padding: Optional[int] = Field(default=None, ge=0, description="Pixels captured around the target")
    scale: Optional[float] = Field(default=None, gt=0, le=4, description="Output resolution multiplier")
    format: Optional[str] = Field(default=None, description="webp, png or jpeg")
    quality: Optional[int] = Field(default=None, ge=1, le=100, description="Lossy encoding quality")
    width: Optional[int] = Field(default=None, ge=1, description="Viewport width")
    height: Optional[int] = Field(default=None, ge=1, description="Viewport height")

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class PreviewDeleteResponse(BaseModel):
    """Result of deleting a preview pair."""

    workflow_id: str
    preview_id: str
    deleted: bool = True

    class Config:
        alias_generator = to_camel
        populate_by_name = True

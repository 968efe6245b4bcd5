"""
Composition Models
==================

Request/response shapes for rendering a canvas into a final image, plus the
normalized asset reference handed out by the asset listing collaborator.
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, Field, model_validator

OutputFormat = Literal["png", "jpeg", "webp"]

MEDIA_TYPES = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
}


class AssetRef(BaseModel):
    """A selectable asset as returned by the listing service."""
    id: str
    url: str
    filename: str


class AssetSource(BaseModel):
    """Raster bytes inline (base64) or a fetchable URL. Exactly one is set."""
    url: Optional[str] = None
    data: Optional[str] = None
    filename: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "AssetSource":
        if (self.url is None) == (self.data is None):
            raise ValueError("Provide exactly one of 'url' or 'data'")
        return self

    @property
    def label(self) -> str:
        return self.filename or self.url or "<inline>"


class Placement(BaseModel):
    """Overlay placement in base-image pixels. Out-of-range positions are clamped."""
    x: float = 0.0
    y: float = 0.0
    scale: float = Field(default=1.0, gt=0)
    # Text box width used for wrapping; ignored for image overlays
    width: Optional[float] = Field(default=None, gt=0)


class OverlaySpec(BaseModel):
    """One overlay to composite."""
    id: Optional[str] = None
    kind: Literal["image", "text"] = "image"
    source: Optional[AssetSource] = None
    text: Optional[str] = None
    color: str = Field(default="#FFFFFF", pattern=r"^#([0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
    font_size: float = Field(default=32.0, gt=0)
    is_bold: bool = False
    is_italic: bool = False
    transform: Placement = Field(default_factory=Placement)
    z_order: int = 0
    visible: bool = True

    @model_validator(mode="after")
    def _payload_matches_kind(self) -> "OverlaySpec":
        if self.kind == "image" and self.source is None:
            raise ValueError("Image overlays need a 'source'")
        return self


class ComposeOptions(BaseModel):
    """Knobs of the composition policy."""
    target_width_fraction: float = Field(default=0.2, gt=0, le=1)
    allow_upscale: bool = False
    output_format: OutputFormat = "png"
    jpeg_quality: int = Field(default=90, ge=1, le=95)

    @property
    def media_type(self) -> str:
        return MEDIA_TYPES[self.output_format]


class ComposeRequest(BaseModel):
    """Base image, overlays in any order (sorted by z_order), and options."""
    base: AssetSource
    overlays: List[OverlaySpec] = Field(default_factory=list)
    options: ComposeOptions = Field(default_factory=ComposeOptions)


class ComposeErrorResponse(BaseModel):
    """Tagged error returned instead of image bytes."""
    error: Literal["AssetFetchFailed", "InvalidAsset", "CompositionFailed"]
    message: str
    asset: Optional[str] = None

"""
Canvas Models for Overlay Canvas
================================

Models for canvas state, element transforms, and active gesture sessions.

All models are frozen: every mutation of the canvas produces a new snapshot.
"""

from enum import Enum
from typing import Annotated, List, Literal, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field

Point = Tuple[float, float]


class AspectRatio(str, Enum):
    """Canvas aspect ratios selectable in advanced mode."""
    WIDE = "16:9"
    SQUARE = "1:1"
    TALL = "9:16"
    STANDARD = "4:3"
    PORTRAIT = "3:4"


class ElementKind(str, Enum):
    """Kinds of element that can be placed on the canvas."""
    BASE_IMAGE = "base_image"
    LOGO = "logo"
    TEXT = "text"


class Corner(str, Enum):
    """Corners of an element's bounding box."""
    TL = "TL"
    TR = "TR"
    BL = "BL"
    BR = "BR"

    @property
    def opposite(self) -> "Corner":
        return _OPPOSITE[self]


_OPPOSITE = {
    Corner.TL: Corner.BR,
    Corner.TR: Corner.BL,
    Corner.BL: Corner.TR,
    Corner.BR: Corner.TL,
}


class Transform(BaseModel):
    """Position (top-left) and extent of an element in base-image pixels."""
    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    width: float = Field(gt=0)
    height: float = Field(gt=0)
    scale: float = Field(default=1.0, gt=0)

    def corner(self, corner: Corner) -> Point:
        right = self.x + self.width
        bottom = self.y + self.height
        return {
            Corner.TL: (self.x, self.y),
            Corner.TR: (right, self.y),
            Corner.BL: (self.x, bottom),
            Corner.BR: (right, bottom),
        }[corner]

    def contains(self, point: Point) -> bool:
        px, py = point
        return self.x <= px <= self.x + self.width and self.y <= py <= self.y + self.height


class _CanvasElementBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    z_order: int = 0
    visible: bool = True
    transform: Transform


class BaseImage(_CanvasElementBase):
    """The primary photo overlays are composited onto."""
    kind: Literal["base_image"] = "base_image"
    url: Optional[str] = None
    filename: Optional[str] = None
    natural_width: int = Field(gt=0)
    natural_height: int = Field(gt=0)

    @property
    def aspect_locked(self) -> bool:
        return True


class LogoOverlay(_CanvasElementBase):
    """A logo or secondary photo placed over the base image."""
    kind: Literal["logo"] = "logo"
    asset_type: Literal["logo", "photo"] = "logo"
    url: Optional[str] = None
    filename: Optional[str] = None
    natural_width: int = Field(gt=0)
    natural_height: int = Field(gt=0)

    @property
    def aspect_locked(self) -> bool:
        return True


class TextOverlay(_CanvasElementBase):
    """A line (or lines) of text placed over the base image."""
    kind: Literal["text"] = "text"
    text: str = ""
    color: str = Field(default="#FFFFFF", pattern=r"^#([0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
    font_size: float = Field(default=32.0, gt=0)
    is_bold: bool = False
    is_italic: bool = False

    @property
    def aspect_locked(self) -> bool:
        return False


CanvasElement = Annotated[
    Union[BaseImage, LogoOverlay, TextOverlay],
    Field(discriminator="kind"),
]


class CanvasState(BaseModel):
    """Immutable snapshot of a canvas."""
    model_config = ConfigDict(frozen=True)

    elements: Tuple[CanvasElement, ...] = ()
    aspect_ratio: AspectRatio = AspectRatio.STANDARD
    advanced_mode_enabled: bool = False
    # Older single-text field, kept alongside the text overlay list
    legacy_text: Optional[TextOverlay] = None
    version: int = 0

    def get(self, element_id: str) -> Optional[Union[BaseImage, LogoOverlay, TextOverlay]]:
        for element in self.elements:
            if element.id == element_id:
                return element
        if self.legacy_text is not None and self.legacy_text.id == element_id:
            return self.legacy_text
        return None

    def index_of(self, element_id: str) -> int:
        for i, element in enumerate(self.elements):
            if element.id == element_id:
                return i
        return -1

    @property
    def base_image(self) -> Optional[BaseImage]:
        for element in self.elements:
            if isinstance(element, BaseImage):
                return element
        return None

    @property
    def text_overlays(self) -> List[TextOverlay]:
        return [e for e in self.elements if isinstance(e, TextOverlay)]

    @property
    def overlays(self) -> List[Union[LogoOverlay, TextOverlay]]:
        """Everything except the base image, in paint order."""
        return sorted(
            (e for e in self.elements if not isinstance(e, BaseImage)),
            key=lambda e: e.z_order,
        )

    @property
    def layers(self) -> List[Union[LogoOverlay, TextOverlay]]:
        """Overlays in paint order, with the legacy text painted last."""
        layers = self.overlays
        if self.legacy_text is not None:
            layers.append(self.legacy_text)
        return layers


class DragSession(BaseModel):
    """An active drag gesture on one element."""
    model_config = ConfigDict(frozen=True)

    element_id: str
    pointer_start: Point
    transform_start: Transform


class ResizeSession(BaseModel):
    """An active resize gesture. `anchor_corner` stays fixed while resizing."""
    model_config = ConfigDict(frozen=True)

    element_id: str
    pointer_start: Point
    transform_start: Transform
    anchor_corner: Corner

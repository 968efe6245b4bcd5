"""
Coordinate Mapping
==================

Pure conversions between display (on-screen canvas) space and base-image
pixel space.

The image is fitted into the display with `s = min(dw / iw, dh / ih) * zoom`,
centered, then shifted by the pan offset. Display points are CSS pixels;
raw backing-store pixels are divided by the device pixel ratio first.
"""

from typing import Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from ..models.canvas_models import AspectRatio, Point


class Viewport(BaseModel):
    """How the base image is currently shown on screen."""
    model_config = ConfigDict(frozen=True)

    display_width: float = Field(gt=0)
    display_height: float = Field(gt=0)
    image_width: float = Field(gt=0)
    image_height: float = Field(gt=0)
    zoom: float = Field(default=1.0, gt=0)
    device_pixel_ratio: float = Field(default=1.0, gt=0)
    pan_x: float = 0.0
    pan_y: float = 0.0


def scale_factor(viewport: Viewport) -> float:
    """Display pixels per image pixel."""
    fit = min(
        viewport.display_width / viewport.image_width,
        viewport.display_height / viewport.image_height,
    )
    return fit * viewport.zoom


def _origin(viewport: Viewport) -> Point:
    s = scale_factor(viewport)
    ox = (viewport.display_width - viewport.image_width * s) / 2 + viewport.pan_x
    oy = (viewport.display_height - viewport.image_height * s) / 2 + viewport.pan_y
    return ox, oy


def to_image_space(display_point: Point, viewport: Viewport) -> Point:
    """Map a display point (device pixels) to base-image pixels."""
    s = scale_factor(viewport)
    ox, oy = _origin(viewport)
    dpr = viewport.device_pixel_ratio
    x, y = display_point
    return (x / dpr - ox) / s, (y / dpr - oy) / s


def to_display_space(image_point: Point, viewport: Viewport) -> Point:
    """Map a base-image point to display (device pixel) coordinates."""
    s = scale_factor(viewport)
    ox, oy = _origin(viewport)
    dpr = viewport.device_pixel_ratio
    x, y = image_point
    return (x * s + ox) * dpr, (y * s + oy) * dpr


def delta_to_image_space(dx: float, dy: float, viewport: Viewport) -> Point:
    """Map a pointer delta in display space to an image-space delta."""
    k = scale_factor(viewport) * viewport.device_pixel_ratio
    return dx / k, dy / k


def parse_aspect_ratio(ratio: Union[str, AspectRatio]) -> float:
    """'16:9' -> 1.777..."""
    value = ratio.value if isinstance(ratio, AspectRatio) else ratio
    try:
        w, h = (float(part) for part in value.split(":"))
    except ValueError as e:
        raise ValueError(f"Invalid aspect ratio: {value!r}") from e
    if w <= 0 or h <= 0:
        raise ValueError(f"Invalid aspect ratio: {value!r}")
    return w / h


def fit_canvas_to_aspect_ratio(width: float, ratio: Union[str, AspectRatio]) -> Tuple[float, float]:
    """Canvas size for a fixed display width under the given aspect ratio."""
    if width <= 0:
        raise ValueError(f"Canvas width must be positive, got {width}")
    return width, width / parse_aspect_ratio(ratio)

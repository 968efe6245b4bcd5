"""
Composition Engine
==================

Deterministic Pillow renderer that layers overlays onto a base image.

Sizing policy (one policy for every image overlay):
- width  = round(target_width_fraction * base_width * scale)
- height = width scaled by the overlay's natural aspect ratio
- never upscaled past the natural size unless allowed
- shrunk to fit the base image, then positioned with a clamp so the whole
  overlay stays inside the base image

Text overlays are aspect-free: their size is the rendered text extent.

The engine keeps no state between calls; each call owns its buffers.
"""

import io
import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

from PIL import Image, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError

from ..errors import CompositionFailed, InvalidAsset
from ..models.composition_models import ComposeOptions

logger = logging.getLogger(__name__)

RESAMPLE = Image.Resampling.LANCZOS
LINE_SPACING = 1.2
TEXT_PADDING = 0.5
# Synthetic styles for the single built-in face
BOLD_STROKE = 1 / 24
ITALIC_SHEAR = 0.2


@dataclass(frozen=True)
class OverlayLayer:
    """A decoded overlay ready to be composited."""
    x: float
    y: float
    scale: float = 1.0
    image: Optional[Image.Image] = None
    text: Optional[str] = None
    color: str = "#FFFFFF"
    font_size: float = 32.0
    max_width: Optional[float] = None
    is_bold: bool = False
    is_italic: bool = False
    z_order: int = 0
    visible: bool = True
    asset: Optional[str] = None

    @property
    def is_text(self) -> bool:
        return self.image is None


def _round(value: float) -> int:
    # Half-up, matching what the browser canvas does with Math.round
    return int(math.floor(value + 0.5))


def open_image(data: bytes, asset: Optional[str] = None) -> Image.Image:
    """Decode raster bytes, applying EXIF orientation like browsers do."""
    if not data:
        raise InvalidAsset("Asset is empty", asset=asset)
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
        image = ImageOps.exif_transpose(image)
    except (UnidentifiedImageError, OSError, SyntaxError, EOFError, ValueError, Image.DecompressionBombError) as e:
        raise InvalidAsset(f"Unreadable image: {e}", asset=asset) from e
    validate_dimensions(image.width, image.height, asset)
    return image


def decode_image(data: bytes, asset: Optional[str] = None) -> Image.Image:
    """Decode raster bytes into an RGBA image."""
    return open_image(data, asset).convert("RGBA")


def _has_alpha(image: Image.Image) -> bool:
    return "A" in image.getbands() or "transparency" in image.info


def validate_dimensions(width: Optional[float], height: Optional[float], asset: Optional[str] = None) -> None:
    if not width or not height or width <= 0 or height <= 0:
        raise InvalidAsset(f"Asset has no usable dimensions ({width}x{height})", asset=asset)


def overlay_target_size(
    natural_width: float,
    natural_height: float,
    base_width: int,
    base_height: int,
    scale: float = 1.0,
    target_width_fraction: float = 0.2,
    allow_upscale: bool = False,
) -> Tuple[int, int]:
    """Pixel size of an aspect-locked overlay on a base image of the given size."""
    validate_dimensions(natural_width, natural_height, "overlay")
    validate_dimensions(base_width, base_height, "base")
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")

    ratio = natural_height / natural_width
    width = max(1, _round(target_width_fraction * base_width * scale))
    if not allow_upscale and width > natural_width:
        width = max(1, int(natural_width))
    height = max(1, _round(width * ratio))
    return fit_within(width, height, base_width, base_height, ratio)


def fit_within(width: int, height: int, base_width: int, base_height: int,
               ratio: Optional[float] = None) -> Tuple[int, int]:
    """Shrink (width, height) to fit the base, keeping the aspect ratio."""
    if width <= base_width and height <= base_height:
        return width, height
    ratio = ratio if ratio is not None else height / width
    k = min(base_width / width, base_height / height)
    width = max(1, min(base_width, _round(width * k)))
    height = max(1, min(base_height, _round(width * ratio)))
    return width, height


def clamp_position(x: float, y: float, width: int, height: int,
                   base_width: int, base_height: int) -> Tuple[int, int]:
    """Top-left that keeps a (width, height) box inside the base image."""
    left = min(max(_round(x), 0), max(0, base_width - width))
    top = min(max(_round(y), 0), max(0, base_height - height))
    return left, top


def resolve_overlay_box(
    x: float,
    y: float,
    natural_width: float,
    natural_height: float,
    base_width: int,
    base_height: int,
    scale: float = 1.0,
    options: Optional[ComposeOptions] = None,
) -> Tuple[int, int, int, int]:
    """(left, top, width, height) an image overlay will occupy in the output."""
    options = options or ComposeOptions()
    width, height = overlay_target_size(
        natural_width,
        natural_height,
        base_width,
        base_height,
        scale=scale,
        target_width_fraction=options.target_width_fraction,
        allow_upscale=options.allow_upscale,
    )
    left, top = clamp_position(x, y, width, height, base_width, base_height)
    return left, top, width, height


def _load_font(size: float) -> ImageFont.ImageFont:
    return ImageFont.load_default(size=max(1.0, size))


def _wrap(text: str, font: ImageFont.ImageFont, max_width: Optional[float]) -> List[str]:
    lines: List[str] = []
    for paragraph in text.split("\n"):
        if max_width is None:
            lines.append(paragraph)
            continue
        current = ""
        for word in paragraph.split(" "):
            candidate = f"{current} {word}" if current else word
            if current and font.getlength(candidate) > max_width:
                lines.append(current)
                current = word
            else:
                current = candidate
        lines.append(current)
    return lines


def render_text(layer: OverlayLayer) -> Image.Image:
    """Rasterize a text overlay onto a transparent, padded RGBA tile."""
    size = layer.font_size * layer.scale
    font = _load_font(size)
    padding = _round(size * TEXT_PADDING)
    wrap_width = layer.max_width - 2 * padding if layer.max_width else None
    if wrap_width is not None and wrap_width <= 0:
        wrap_width = None
    lines = _wrap(layer.text or "", font, wrap_width)

    line_height = _round(size * LINE_SPACING)
    text_width = max((_round(font.getlength(line)) for line in lines), default=0)
    tile = Image.new(
        "RGBA",
        (max(1, text_width + 2 * padding), max(1, line_height * len(lines) + 2 * padding)),
        (0, 0, 0, 0),
    )
    draw = ImageDraw.Draw(tile)
    stroke = max(1, _round(size * BOLD_STROKE)) if layer.is_bold else 0
    for i, line in enumerate(lines):
        draw.text(
            (padding, padding + i * line_height),
            line,
            font=font,
            fill=layer.color,
            stroke_width=stroke,
            stroke_fill=layer.color,
        )
    if layer.is_italic:
        tile = _shear(tile, ITALIC_SHEAR)
    return tile


def _shear(tile: Image.Image, shear: float) -> Image.Image:
    """Slant a tile to the right, widening it so no glyph is cut off."""
    extra = int(math.ceil(tile.height * shear))
    return tile.transform(
        (tile.width + extra, tile.height),
        Image.Transform.AFFINE,
        (1, shear, -extra, 0, 1, 0),
        resample=Image.Resampling.BICUBIC,
    )


def _prepare(layer: OverlayLayer, base_width: int, base_height: int,
             options: ComposeOptions) -> Tuple[Image.Image, int, int]:
    if layer.is_text:
        raster = render_text(layer)
        width, height = fit_within(raster.width, raster.height, base_width, base_height)
    else:
        raster = layer.image
        validate_dimensions(raster.width, raster.height, layer.asset)
        width, height = overlay_target_size(
            raster.width,
            raster.height,
            base_width,
            base_height,
            scale=layer.scale,
            target_width_fraction=options.target_width_fraction,
            allow_upscale=options.allow_upscale,
        )
    if raster.mode != "RGBA":
        raster = raster.convert("RGBA")
    if raster.size != (width, height):
        raster = raster.resize((width, height), RESAMPLE)
    left, top = clamp_position(layer.x, layer.y, width, height, base_width, base_height)
    return raster, left, top


def _encode(canvas: Image.Image, options: ComposeOptions) -> bytes:
    buf = io.BytesIO()
    if options.output_format == "jpeg":
        canvas.convert("RGB").save(buf, format="JPEG", quality=options.jpeg_quality)
    elif options.output_format == "webp":
        canvas.save(buf, format="WEBP", lossless=True)
    else:
        canvas.save(buf, format="PNG", compress_level=6)
    return buf.getvalue()


def compose(
    base_image: Union[bytes, Image.Image],
    overlays: Iterable[OverlayLayer],
    options: Optional[ComposeOptions] = None,
) -> bytes:
    """
    Composite overlays onto the base image and return the encoded output.

    Raises:
        InvalidAsset: base or overlay raster is unreadable or has no dimensions
        CompositionFailed: compositing or encoding failed
    """
    options = options or ComposeOptions()

    if isinstance(base_image, (bytes, bytearray)):
        base_image = open_image(bytes(base_image), asset="base")
    else:
        validate_dimensions(base_image.width, base_image.height, "base")
    has_alpha = _has_alpha(base_image)
    base = base_image.convert("RGBA")

    base_width, base_height = base.size
    canvas = base.copy()

    layers = sorted(overlays, key=lambda layer: layer.z_order)
    for layer in layers:
        if not layer.visible or (layer.is_text and not layer.text):
            continue
        raster, left, top = _prepare(layer, base_width, base_height, options)
        try:
            canvas.alpha_composite(raster, dest=(left, top))
        except (ValueError, OSError) as e:
            raise CompositionFailed(f"Failed to composite overlay: {e}", asset=layer.asset) from e
        logger.debug(
            f"[COMPOSE] Placed {layer.asset or 'overlay'} at ({left}, {top}) size {raster.size}"
        )

    if not has_alpha:
        canvas = canvas.convert("RGB")

    try:
        data = _encode(canvas, options)
    except (OSError, ValueError, KeyError) as e:
        raise CompositionFailed(f"Failed to encode {options.output_format}: {e}") from e

    logger.info(
        f"[COMPOSE] Rendered {base_width}x{base_height} {options.output_format} "
        f"with {len(layers)} overlays ({len(data)} bytes)"
    )
    return data

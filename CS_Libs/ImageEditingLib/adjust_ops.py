"""
Whole-image color operations for Color Separator.

These operations produce a new image buffer and never touch layer masks:
their output replaces the original image wholesale.

Classes:
    Adjustments: Brightness/contrast/saturation slider values

Functions:
    invert_raster: Invert RGB (negative to positive), alpha unchanged
    adjust_raster: Apply brightness, contrast and saturation
    replace_color: Replace every pixel near one color with another color
    stitch_rasters: Combine several rasters horizontally, vertically or in a grid
"""

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Sequence

import numpy as np

from CS_Libs.ColorLib.color_utils import RgbColor, match_mask
from CS_Libs.LayerLib.layer_models import RasterBuffer, normalize_color, to_byte_array
from CS_Libs.constants import (
    DEFAULT_REPLACE_TOLERANCE,
    MAX_ADJUSTMENT,
    MIN_ADJUSTMENT,
    STITCH_HORIZONTAL,
    STITCH_LAYOUTS,
    STITCH_VERTICAL,
)

# Rec. 601 luma weights
_LUMA = np.array([0.299, 0.587, 0.114])


@dataclass(frozen=True)
class Adjustments:
    """Adjustment slider values, each -100..100 (0 = no change).

    Attributes:
        brightness: Brightness offset in percent
        contrast: Contrast offset in percent
        saturation: Saturation offset in percent
    """
    brightness: float = 0.0
    contrast: float = 0.0
    saturation: float = 0.0

    def __post_init__(self):
        """Validate slider ranges."""
        for name in ("brightness", "contrast", "saturation"):
            value = getattr(self, name)
            if not (MIN_ADJUSTMENT <= value <= MAX_ADJUSTMENT):
                raise ValueError(f"{name} must be {MIN_ADJUSTMENT}-{MAX_ADJUSTMENT}, got {value}")

    @property
    def is_identity(self) -> bool:
        return self.brightness == 0 and self.contrast == 0 and self.saturation == 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Adjustments":
        filtered = {k: float(v) for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**filtered)


def invert_raster(raster: RasterBuffer) -> RasterBuffer:
    """Invert RGB channels. Alpha is unchanged."""
    pixels = raster.pixels().copy()
    pixels[..., :3] = 255 - pixels[..., :3]
    return RasterBuffer.from_pixels(pixels)


def adjust_raster(raster: RasterBuffer, adjustments: Adjustments) -> RasterBuffer:
    """
    Apply brightness, contrast and saturation.

    Brightness and contrast scale each channel around the mid-point 127.5;
    saturation then moves each channel away from (or towards) the pixel's
    luma. Alpha is unchanged.

    Args:
        raster: Source raster (not modified)
        adjustments: Slider values

    Returns:
        New adjusted RasterBuffer
    """
    if adjustments.is_identity:
        return raster.copy()

    pixels = raster.pixels()
    rgb = pixels[..., :3].astype(np.float64)

    brightness = 1 + adjustments.brightness / 100
    contrast = 1 + adjustments.contrast / 100
    saturation = 1 + adjustments.saturation / 100

    rgb = np.clip((rgb - 127.5) * contrast * brightness + 127.5, 0, 255)
    if saturation != 1:
        gray = (rgb * _LUMA).sum(axis=-1, keepdims=True)
        rgb = np.clip(gray + (rgb - gray) * saturation, 0, 255)

    out = pixels.copy()
    out[..., :3] = to_byte_array(rgb)
    return RasterBuffer.from_pixels(out)


def replace_color(
    raster: RasterBuffer,
    from_color: RgbColor,
    to_color: RgbColor,
    tolerance: float = DEFAULT_REPLACE_TOLERANCE,
) -> RasterBuffer:
    """
    Replace every pixel within ``tolerance`` of ``from_color`` by ``to_color``.

    Alpha is kept, so transparent pixels stay transparent.
    """
    to_color = normalize_color(to_color)
    pixels = raster.pixels().copy()
    selected = match_mask(pixels, from_color, tolerance)
    pixels[selected, :3] = np.asarray(to_color, dtype=np.uint8)
    return RasterBuffer.from_pixels(pixels)


def stitch_rasters(rasters: Sequence[RasterBuffer], layout: str = STITCH_HORIZONTAL) -> RasterBuffer:
    """
    Stitch several rasters into one.

    Layouts:
        horizontal: side by side, height of the tallest image
        vertical: stacked, width of the widest image
        grid: ceil(sqrt(n)) columns; every cell is the size of the largest
              width and the largest height

    Each image is placed at the top-left of its slot; uncovered pixels are
    fully transparent.

    Raises:
        ValueError: If no rasters are given or the layout is unknown
    """
    if not rasters:
        raise ValueError("No images to stitch")
    if layout not in STITCH_LAYOUTS:
        raise ValueError(f"Unknown stitch layout: {layout}. Use one of {', '.join(STITCH_LAYOUTS)}")

    max_w = max(r.width for r in rasters)
    max_h = max(r.height for r in rasters)

    if layout == STITCH_HORIZONTAL:
        total_w, total_h = sum(r.width for r in rasters), max_h
        offsets = []
        x = 0
        for r in rasters:
            offsets.append((x, 0))
            x += r.width
    elif layout == STITCH_VERTICAL:
        total_w, total_h = max_w, sum(r.height for r in rasters)
        offsets = []
        y = 0
        for r in rasters:
            offsets.append((0, y))
            y += r.height
    else:
        cols = math.ceil(math.sqrt(len(rasters)))
        rows = math.ceil(len(rasters) / cols)
        total_w, total_h = cols * max_w, rows * max_h
        offsets = [((i % cols) * max_w, (i // cols) * max_h) for i in range(len(rasters))]

    canvas = np.zeros((total_h, total_w, 4), dtype=np.uint8)
    for raster, (ox, oy) in zip(rasters, offsets):
        canvas[oy:oy + raster.height, ox:ox + raster.width] = raster.pixels()
    return RasterBuffer.from_pixels(canvas)

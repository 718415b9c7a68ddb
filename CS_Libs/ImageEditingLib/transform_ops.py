"""
Geometric transforms for Color Separator.

Rotate, flip and crop work on three kinds of row-major buffers that must
stay congruent with each other: the RGBA image, the per-layer 0/1 masks
and the per-layer RGBA paint overlays. Each function returns a new buffer;
the input is never modified.

Functions:
    normalize_rotation: Map a rotation angle to a quarter-turn count
    rotate_raster / rotate_mask / rotate_paint: Rotate by 90, -90 or 180 degrees
    flip_raster / flip_mask / flip_paint: Mirror horizontally and/or vertically
    crop_raster / crop_mask / crop_paint: Extract a sub-rectangle
    rotated_size: Dimensions after a rotation
"""

from typing import Any, Dict, Tuple

import numpy as np

from CS_Libs.LayerLib.layer_models import CropRect, DimensionMismatchError, RasterBuffer

# Degrees -> np.rot90 k (positive k is counter-clockwise)
_QUARTER_TURNS: Dict[int, int] = {
    90: -1,
    -270: -1,
    -90: 1,
    270: 1,
    180: 2,
    -180: 2,
}


def normalize_rotation(angle: Any) -> int:
    """
    Convert a clockwise rotation angle to an np.rot90 ``k`` value.

    Args:
        angle: 90 (clockwise), -90 (counter-clockwise) or 180; 270, -270 and
               -180 are accepted as equivalents

    Returns:
        Quarter-turn count for np.rot90

    Raises:
        ValueError: For any other angle
    """
    try:
        return _QUARTER_TURNS[int(angle)]
    except (KeyError, TypeError, ValueError):
        raise ValueError(f"Rotation angle must be 90, -90 or 180, got {angle!r}") from None


def rotated_size(width: int, height: int, angle: Any) -> Tuple[int, int]:
    """Dimensions after rotating a width x height buffer."""
    if normalize_rotation(angle) % 2:
        return height, width
    return width, height


def _as_plane(buffer: Any, width: int, height: int, channels: int, what: str) -> np.ndarray:
    array = np.asarray(buffer, dtype=np.uint8).reshape(-1)
    expected = width * height * channels
    if array.size != expected:
        raise DimensionMismatchError(f"{what} has {array.size} entries, expected {expected} for {width}x{height}")
    if channels == 1:
        return array.reshape(height, width)
    return array.reshape(height, width, channels)


def _flat(plane: np.ndarray) -> np.ndarray:
    return np.ascontiguousarray(plane).reshape(-1).copy()


# ============================================================================
# Rotate
# ============================================================================

def rotate_raster(raster: RasterBuffer, angle: Any) -> RasterBuffer:
    """
    Rotate an image.

    90 turns clockwise: the source pixel (x, y) lands at
    (new_width - 1 - y, x). 90 and -90 swap width and height.
    """
    return RasterBuffer.from_pixels(np.rot90(raster.pixels(), k=normalize_rotation(angle)).copy())


def rotate_mask(mask: Any, width: int, height: int, angle: Any) -> np.ndarray:
    """Rotate a width x height mask exactly like rotate_raster rotates pixels."""
    plane = _as_plane(mask, width, height, 1, "Mask")
    return _flat(np.rot90(plane, k=normalize_rotation(angle)))


def rotate_paint(paint: Any, width: int, height: int, angle: Any) -> np.ndarray:
    """Rotate an RGBA paint overlay."""
    plane = _as_plane(paint, width, height, 4, "Paint overlay")
    return _flat(np.rot90(plane, k=normalize_rotation(angle)))


# ============================================================================
# Flip
# ============================================================================

def _flip_axes(horizontal: bool, vertical: bool) -> Tuple[int, ...]:
    axes = []
    if vertical:
        axes.append(0)
    if horizontal:
        axes.append(1)
    return tuple(axes)


def _flip_plane(plane: np.ndarray, horizontal: bool, vertical: bool) -> np.ndarray:
    axes = _flip_axes(horizontal, vertical)
    if not axes:
        return plane
    return np.flip(plane, axis=axes)


def flip_raster(raster: RasterBuffer, horizontal: bool = True, vertical: bool = False) -> RasterBuffer:
    """Mirror an image left-right and/or top-bottom. Dimensions are kept."""
    return RasterBuffer.from_pixels(_flip_plane(raster.pixels(), horizontal, vertical).copy())


def flip_mask(mask: Any, width: int, height: int, horizontal: bool = True, vertical: bool = False) -> np.ndarray:
    plane = _as_plane(mask, width, height, 1, "Mask")
    return _flat(_flip_plane(plane, horizontal, vertical))


def flip_paint(paint: Any, width: int, height: int, horizontal: bool = True, vertical: bool = False) -> np.ndarray:
    plane = _as_plane(paint, width, height, 4, "Paint overlay")
    return _flat(_flip_plane(plane, horizontal, vertical))


# ============================================================================
# Crop
# ============================================================================

def crop_raster(raster: RasterBuffer, rect: CropRect) -> RasterBuffer:
    """
    Extract a sub-rectangle of an image.

    Raises:
        ValueError: If the rectangle is empty or exceeds the image
    """
    rect.validate_within(raster.width, raster.height)
    region = raster.pixels()[rect.y:rect.y + rect.height, rect.x:rect.x + rect.width]
    return RasterBuffer.from_pixels(region.copy())


def crop_mask(mask: Any, width: int, rect: CropRect) -> np.ndarray:
    """
    Extract a sub-rectangle of a mask.

    The mask height is derived from its length and ``width``.

    Returns:
        Flat mask of length rect.width * rect.height

    Raises:
        DimensionMismatchError: If the mask length is not a multiple of width
        ValueError: If the rectangle exceeds the mask
    """
    array = np.asarray(mask, dtype=np.uint8).reshape(-1)
    if width <= 0 or array.size % width:
        raise DimensionMismatchError(f"Mask of {array.size} entries does not have rows of width {width}")
    height = array.size // width
    rect.validate_within(width, height)
    plane = array.reshape(height, width)
    return _flat(plane[rect.y:rect.y + rect.height, rect.x:rect.x + rect.width])


def crop_paint(paint: Any, width: int, height: int, rect: CropRect) -> np.ndarray:
    """Extract a sub-rectangle of an RGBA paint overlay."""
    rect.validate_within(width, height)
    plane = _as_plane(paint, width, height, 4, "Paint overlay")
    return _flat(plane[rect.y:rect.y + rect.height, rect.x:rect.x + rect.width])

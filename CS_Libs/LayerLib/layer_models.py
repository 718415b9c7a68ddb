"""
Layer data models for Color Separator.

This module defines core data structures used throughout the editing engine.

Classes:
    RasterBuffer: Row-major RGBA pixel buffer with its dimensions
    ColorLayer: One color layer with its mask, paint overlay and settings
    CropRect: Rectangle used by crop operations
    DimensionMismatchError: Raised when a buffer does not fit the image size

Functions:
    create_full_mask: Build an all-ones mask for given dimensions
    validate_mask: Check a mask against image dimensions
    validate_paint: Check a paint overlay against image dimensions
    to_byte_array: Round and clamp float channel values to uint8
    new_layer_id: Generate a unique layer id
    create_layer: Create a ColorLayer from a color
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np

from CS_Libs.ColorLib.color_utils import RgbColor, rgb_to_hex
from CS_Libs.constants import (
    DEFAULT_TOLERANCE,
    LAYER_ID_HEX_LENGTH,
    LAYER_ID_PREFIX,
    MAX_TOLERANCE,
    MIN_TOLERANCE,
)

RgbaPixel = Tuple[int, int, int, int]


class DimensionMismatchError(ValueError):
    """A mask, paint overlay or raster does not match the expected size."""


def to_byte_array(values: np.ndarray) -> np.ndarray:
    """Round half-up and clamp float channel values into a uint8 array."""
    return np.clip(np.floor(np.asarray(values, dtype=np.float64) + 0.5), 0, 255).astype(np.uint8)


@dataclass(eq=False)
class RasterBuffer:
    """Row-major RGBA pixel buffer.

    Attributes:
        width: Image width in pixels
        height: Image height in pixels
        data: Flat uint8 array of length width * height * 4
    """
    width: int
    height: int
    data: np.ndarray

    def __post_init__(self):
        """Validate dimensions and normalize the pixel array."""
        self.width = int(self.width)
        self.height = int(self.height)
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Raster dimensions must be non-negative, got {self.width}x{self.height}")

        self.data = np.ascontiguousarray(np.asarray(self.data, dtype=np.uint8).reshape(-1))
        expected = self.width * self.height * 4
        if self.data.size != expected:
            raise DimensionMismatchError(
                f"Raster data has {self.data.size} bytes, expected {expected} "
                f"for {self.width}x{self.height} RGBA"
            )

    @classmethod
    def blank(cls, width: int, height: int) -> "RasterBuffer":
        """Create a fully transparent raster."""
        return cls(width, height, np.zeros(int(width) * int(height) * 4, dtype=np.uint8))

    @classmethod
    def filled(cls, width: int, height: int, rgba: RgbaPixel) -> "RasterBuffer":
        """Create a raster where every pixel has the same RGBA value."""
        pixels = np.empty((int(height), int(width), 4), dtype=np.uint8)
        pixels[...] = np.asarray(rgba, dtype=np.uint8)
        return cls.from_pixels(pixels)

    @classmethod
    def from_pixels(cls, pixels: np.ndarray) -> "RasterBuffer":
        """Create a raster from an (H, W, 4) array."""
        pixels = np.asarray(pixels)
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise DimensionMismatchError(f"Expected an (H, W, 4) pixel array, got shape {pixels.shape}")
        height, width = pixels.shape[:2]
        return cls(width, height, pixels.reshape(-1))

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def pixels(self) -> np.ndarray:
        """Return an (H, W, 4) view onto the pixel data."""
        return self.data.reshape(self.height, self.width, 4)

    def pixel_at(self, x: int, y: int) -> RgbaPixel:
        """
        Read a single pixel.

        Raises:
            IndexError: If (x, y) lies outside the raster
        """
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) is outside the {self.width}x{self.height} raster")
        i = (y * self.width + x) * 4
        return tuple(int(v) for v in self.data[i:i + 4])

    def copy(self) -> "RasterBuffer":
        return RasterBuffer(self.width, self.height, self.data.copy())

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, RasterBuffer):
            return NotImplemented
        return self.size == other.size and np.array_equal(self.data, other.data)


def create_full_mask(width: int, height: int) -> np.ndarray:
    """Create a full mask (every pixel kept) for given dimensions."""
    return np.ones(int(width) * int(height), dtype=np.uint8)


def validate_mask(mask: Any, width: int, height: int) -> np.ndarray:
    """
    Check that a mask fits the given image size.

    Args:
        mask: Array-like of 0/1 values
        width: Image width
        height: Image height

    Returns:
        The mask as a flat uint8 numpy array (a new array)

    Raises:
        DimensionMismatchError: If the mask length is not width * height
        ValueError: If the mask holds values other than 0 and 1
    """
    array = np.array(mask, dtype=np.uint8).reshape(-1)
    expected = int(width) * int(height)
    if array.size != expected:
        raise DimensionMismatchError(
            f"Mask has {array.size} entries, expected {expected} for {width}x{height}"
        )
    if array.size and array.max() > 1:
        raise ValueError("Mask values must be 0 or 1")
    return array


def validate_paint(paint: Any, width: int, height: int) -> np.ndarray:
    """
    Check that a paint overlay fits the given image size.

    Returns:
        The overlay as a flat uint8 numpy array (a new array)

    Raises:
        DimensionMismatchError: If the overlay length is not width * height * 4
    """
    array = np.array(paint, dtype=np.uint8).reshape(-1)
    expected = int(width) * int(height) * 4
    if array.size != expected:
        raise DimensionMismatchError(
            f"Paint overlay has {array.size} bytes, expected {expected} for {width}x{height} RGBA"
        )
    return array


def normalize_color(color: Any) -> RgbColor:
    values = tuple(int(c) for c in tuple(color)[:3])
    if len(values) != 3:
        raise ValueError(f"Color must have 3 components, got {color!r}")
    for value in values:
        if not (0 <= value <= 255):
            raise ValueError(f"Color components must be 0-255, got {color!r}")
    return values


def validate_tolerance(tolerance: float) -> float:
    tolerance = float(tolerance)
    if not (MIN_TOLERANCE <= tolerance <= MAX_TOLERANCE):
        raise ValueError(f"tolerance must be {MIN_TOLERANCE}-{MAX_TOLERANCE}, got {tolerance}")
    return tolerance


@dataclass(eq=False)
class ColorLayer:
    """A single color layer.

    Attributes:
        id: Stable unique identifier (independent of stacking order)
        color: Target color (r, g, b)
        tolerance: Match tolerance in percent (0-100)
        visible: Whether the layer takes part in the whole-image view
        mask: Flat uint8 array, 1 = keep, 0 = erased (None until sized)
        paint_data: Flat uint8 RGBA paint overlay, None when nothing is painted
    """
    id: str
    color: RgbColor
    tolerance: float = DEFAULT_TOLERANCE
    visible: bool = True
    mask: Optional[np.ndarray] = None
    paint_data: Optional[np.ndarray] = field(default=None, repr=False)

    def __post_init__(self):
        """Validate layer parameters."""
        if not str(self.id).strip():
            raise ValueError("Layer id cannot be empty")
        self.color = normalize_color(self.color)
        self.tolerance = validate_tolerance(self.tolerance)

    @property
    def display_name(self) -> str:
        return rgb_to_hex(*self.color)

    def copy(self) -> "ColorLayer":
        """Deep copy, including mask and paint buffers."""
        return ColorLayer(
            id=self.id,
            color=self.color,
            tolerance=self.tolerance,
            visible=self.visible,
            mask=None if self.mask is None else self.mask.copy(),
            paint_data=None if self.paint_data is None else self.paint_data.copy(),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (excludes pixel buffers)."""
        return {
            "id": self.id,
            "name": self.display_name,
            "color": list(self.color),
            "tolerance": self.tolerance,
            "visible": self.visible,
            "has_paint": self.paint_data is not None,
        }


def new_layer_id() -> str:
    return f"{LAYER_ID_PREFIX}{uuid.uuid4().hex[:LAYER_ID_HEX_LENGTH]}"


def create_layer(
    color: RgbColor,
    layer_id: Optional[str] = None,
    mask: Optional[np.ndarray] = None,
    tolerance: float = DEFAULT_TOLERANCE,
) -> ColorLayer:
    """
    Create a new color layer.

    Args:
        color: Target color (r, g, b)
        layer_id: Optional id; a unique one is generated when omitted
        mask: Optional mask; when None the owner must size it once the
              image dimensions are known
        tolerance: Match tolerance in percent

    Returns:
        A visible ColorLayer without paint
    """
    return ColorLayer(
        id=layer_id or new_layer_id(),
        color=color,
        tolerance=tolerance,
        mask=None if mask is None else np.array(mask, dtype=np.uint8).reshape(-1),
    )


@dataclass(frozen=True)
class CropRect:
    """Crop rectangle in pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    def validate_within(self, width: int, height: int) -> None:
        """
        Ensure the rectangle is non-empty and lies inside a width x height image.

        Raises:
            ValueError: If the rectangle is empty or exceeds the image
        """
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Crop size must be positive, got {self.width}x{self.height}")
        if self.x < 0 or self.y < 0:
            raise ValueError(f"Crop origin must be non-negative, got ({self.x}, {self.y})")
        if self.x + self.width > width or self.y + self.height > height:
            raise ValueError(
                f"Crop rectangle {self.width}x{self.height}+{self.x}+{self.y} "
                f"exceeds the {width}x{height} image"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CropRect":
        """Create from a {x, y, width, height} dictionary."""
        return cls(
            x=int(data["x"]),
            y=int(data["y"]),
            width=int(data["width"]),
            height=int(data["height"]),
        )

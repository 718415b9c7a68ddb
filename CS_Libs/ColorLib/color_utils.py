"""
Color utilities for Color Separator.

Handles HEX/RGB conversion and tolerance-based color matching using
Euclidean RGB distance. Tolerance is a 0-100 slider value: 0 means an exact
match, 100 accepts any pair of RGB colors.

Functions:
    rgb_to_hex: Convert an RGB triple to a "#rrggbb" string
    hex_to_rgb: Parse "#rrggbb" (or "rrggbb") into an RGB triple
    rgb_distance: Euclidean distance between two RGB colors
    tolerance_to_distance: Map a tolerance percentage to a distance threshold
    color_matches: Check whether a pixel matches a target color
    match_mask: Vectorized color_matches over a numpy pixel array

Type Aliases:
    RgbColor: A tuple of 3 integers representing RGB color values (0-255)
"""

import math
import re
from typing import Sequence, Tuple

import numpy as np

RgbColor = Tuple[int, int, int]

# Black to white, roughly 441.67
MAX_RGB_DISTANCE = math.sqrt(3 * 255 * 255)

_HEX_PATTERN = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)


def rgb_to_hex(r: float, g: float, b: float) -> str:
    """
    Convert RGB channel values to a lowercase hex string.

    Args:
        r: Red channel (0-255)
        g: Green channel (0-255)
        b: Blue channel (0-255)

    Returns:
        Hex string such as "#ff0000"
    """
    return "#" + "".join(f"{int(round(value)):02x}" for value in (r, g, b))


def hex_to_rgb(hex_color: str) -> RgbColor:
    """
    Parse a hex color string.

    Args:
        hex_color: "#rrggbb" or "rrggbb" (case-insensitive)

    Returns:
        (r, g, b) tuple

    Raises:
        ValueError: If the string is not a 6-digit hex color
    """
    match = _HEX_PATTERN.match(str(hex_color).strip())
    if match is None:
        raise ValueError(f"Invalid hex color: {hex_color!r}")
    return tuple(int(part, 16) for part in match.groups())


def rgb_distance(a: Sequence[int], b: Sequence[int]) -> float:
    """Euclidean distance between the RGB parts of two colors (0 to ~441)."""
    dr = int(a[0]) - int(b[0])
    dg = int(a[1]) - int(b[1])
    db = int(a[2]) - int(b[2])
    return math.sqrt(dr * dr + dg * dg + db * db)


def tolerance_to_distance(tolerance_percent: float) -> float:
    """
    Convert a tolerance slider value (0-100) to a pixel distance threshold.

    Args:
        tolerance_percent: 0 = exact match only, 100 = every RGB color

    Returns:
        Distance threshold between 0 and MAX_RGB_DISTANCE
    """
    if tolerance_percent <= 0:
        return 0.0
    return (tolerance_percent / 100) * MAX_RGB_DISTANCE


def color_matches(pixel: Sequence[int], target: Sequence[int], tolerance_percent: float) -> bool:
    """
    Check if a pixel's RGB matches a target color within tolerance.

    Only the first three components are compared, so RGBA pixels may be
    passed directly.

    Args:
        pixel: Pixel color (r, g, b[, a])
        target: Target color (r, g, b)
        tolerance_percent: Tolerance slider value (0-100)

    Returns:
        True if the distance is within the tolerance threshold
    """
    return rgb_distance(pixel, target) <= tolerance_to_distance(tolerance_percent)


def match_mask(pixels: np.ndarray, target: Sequence[int], tolerance_percent: float) -> np.ndarray:
    """
    Vectorized color match over an array of pixels.

    Args:
        pixels: numpy array whose last axis holds at least (r, g, b)
        target: Target color (r, g, b)
        tolerance_percent: Tolerance slider value (0-100)

    Returns:
        Boolean array with the shape of ``pixels`` minus its last axis
    """
    rgb = pixels[..., :3].astype(np.int32)
    diff = rgb - np.asarray(target[:3], dtype=np.int32)
    distance = np.sqrt((diff * diff).sum(axis=-1).astype(np.float64))
    return distance <= tolerance_to_distance(tolerance_percent)

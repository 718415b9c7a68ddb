"""
ColorLib - Color matching and dominant color extraction

This module provides the tolerance-based RGB color matcher and the
quantized-histogram dominant color extractor.
"""

from CS_Libs.ColorLib.color_utils import (
    MAX_RGB_DISTANCE,
    RgbColor,
    color_matches,
    hex_to_rgb,
    match_mask,
    rgb_distance,
    rgb_to_hex,
    tolerance_to_distance,
)
from CS_Libs.ColorLib.dominant_colors import get_dominant_colors

__all__ = [
    "MAX_RGB_DISTANCE",
    "RgbColor",
    "color_matches",
    "hex_to_rgb",
    "match_mask",
    "rgb_distance",
    "rgb_to_hex",
    "tolerance_to_distance",
    "get_dominant_colors",
]

"""
Dominant color extraction for Color Separator.

Finds the most frequent colors of an image by stride-sampling its pixels,
quantizing every channel into a small number of levels and counting the
resulting histogram bins. The bucket centers of the most frequent bins seed
the initial color layers, most frequent first.

Example:
    >>> raster = RasterBuffer.filled(4, 4, (255, 0, 0, 255))
    >>> get_dominant_colors(raster, max_colors=5, sample_step=1)
    [(244, 11, 11)]
"""

import logging
from typing import Any, List

import numpy as np

from CS_Libs.ColorLib.color_utils import RgbColor
from CS_Libs.constants import (
    ALPHA_SAMPLE_THRESHOLD,
    DEFAULT_MAX_COLORS,
    DEFAULT_QUANT_LEVELS,
    DEFAULT_SAMPLE_STEP,
)

logger = logging.getLogger(__name__)


def quantize_channel(values: Any, levels: int = DEFAULT_QUANT_LEVELS) -> np.ndarray:
    """Quantize channel values (0-255) to bucket indices 0..levels-1."""
    scaled = np.floor(np.asarray(values, dtype=np.float64) / 255 * levels)
    return np.minimum(levels - 1, scaled).astype(np.int64)


def bucket_center(level: Any, levels: int = DEFAULT_QUANT_LEVELS) -> np.ndarray:
    """Dequantize bucket indices back to the channel value at the bucket center."""
    return np.floor((np.asarray(level, dtype=np.float64) + 0.5) * (255 / levels) + 0.5).astype(np.int64)


def get_dominant_colors(
    raster: Any,
    max_colors: int = DEFAULT_MAX_COLORS,
    sample_step: int = DEFAULT_SAMPLE_STEP,
    levels: int = DEFAULT_QUANT_LEVELS,
) -> List[RgbColor]:
    """
    Extract dominant colors by sampling and quantizing.

    Every ``sample_step``-th pixel along both axes is sampled; pixels with
    alpha below 128 are skipped. Ties in frequency keep the order in which
    the bins were first sampled (row-major).

    Args:
        raster: RasterBuffer to analyze
        max_colors: Maximum number of colors to return
        sample_step: Sampling stride in pixels (higher = faster, less accurate)
        levels: Quantization levels per channel (levels ** 3 bins)

    Returns:
        Up to ``max_colors`` (r, g, b) tuples, most frequent first. An empty
        or fully transparent image yields an empty list.

    Raises:
        ValueError: If sample_step or levels < 1, or max_colors < 0
    """
    if sample_step < 1:
        raise ValueError(f"sample_step must be >= 1, got {sample_step}")
    if levels < 1:
        raise ValueError(f"levels must be >= 1, got {levels}")
    if max_colors < 0:
        raise ValueError(f"max_colors must be >= 0, got {max_colors}")

    if raster.width == 0 or raster.height == 0 or max_colors == 0:
        return []

    sampled = raster.pixels()[::sample_step, ::sample_step].reshape(-1, 4)
    sampled = sampled[sampled[:, 3] >= ALPHA_SAMPLE_THRESHOLD]
    if sampled.shape[0] == 0:
        logger.debug("No opaque pixels sampled, no dominant colors")
        return []

    quantized = quantize_channel(sampled[:, :3], levels)
    keys = (quantized[:, 0] * levels + quantized[:, 1]) * levels + quantized[:, 2]

    unique_keys, first_index, counts = np.unique(keys, return_index=True, return_counts=True)
    # Most frequent first; ties broken by first appearance
    order = np.lexsort((first_index, -counts))
    top_keys = unique_keys[order][:max_colors]

    qr = top_keys // (levels * levels)
    qg = (top_keys // levels) % levels
    qb = top_keys % levels
    centers = np.stack([bucket_center(qr, levels), bucket_center(qg, levels), bucket_center(qb, levels)], axis=1)

    colors = [tuple(int(c) for c in row) for row in centers]
    logger.debug(f"Extracted {len(colors)} dominant colors from {sampled.shape[0]} samples")
    return colors

"""
Export operations for Color Separator.

Functions:
    sanitize_name: Strip characters that are unsafe in file names
    layer_file_name: File name for a single exported layer
    reconstructed_file_name: File name for a reconstructed composite
    report_file_name: File name for a color report
    export_layer: Raster of one layer's kept pixels plus its paint
    export_layers: Rasters of every layer, with their file names
    export_reconstructed: Composite of a chosen set of layers
    count_layer_pixels: Pixels of the image a layer's color accounts for
    build_color_report: CSV color report text
    save_layers / save_reconstructed / save_color_report: Write exports to disk
"""

import csv
import io
import logging
import time
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from CS_Libs.ColorLib.color_utils import match_mask, rgb_to_hex
from CS_Libs.ImageEditingLib.compositor import LayerCompositor
from CS_Libs.ImageEditingLib.image_io import ExportSettings, save_raster
from CS_Libs.LayerLib.layer_models import ColorLayer, RasterBuffer
from CS_Libs.constants import (
    ALPHA_SAMPLE_THRESHOLD,
    LAYER_FILE_TEMPLATE,
    RECONSTRUCTED_FILE_TEMPLATE,
    REPORT_FILE_TEMPLATE,
    REPORT_HEADER,
    REPORT_LINE_TERMINATOR,
    UNSAFE_FILENAME_CHARS,
)

logger = logging.getLogger(__name__)


def sanitize_name(name: str) -> str:
    """Remove characters that cannot appear in exported file names."""
    return "".join(ch for ch in str(name) if ch not in UNSAFE_FILENAME_CHARS)


def layer_file_name(index: int, layer: ColorLayer, extension: str = ".png") -> str:
    """
    File name for an exported layer.

    Args:
        index: Zero-based stacking index (file names are numbered from 1)
        layer: The exported layer
        extension: File extension including the dot

    Returns:
        Name such as "layer-1-ff0000.png"
    """
    name = LAYER_FILE_TEMPLATE.format(index=index + 1, name=sanitize_name(layer.display_name) or "color")
    return str(Path(name).with_suffix(extension))


def reconstructed_file_name(count: int, extension: str = ".png") -> str:
    return str(Path(RECONSTRUCTED_FILE_TEMPLATE.format(count=count)).with_suffix(extension))


def report_file_name(timestamp: Optional[int] = None) -> str:
    """Report file name; the timestamp defaults to milliseconds since the epoch."""
    if timestamp is None:
        timestamp = int(time.time() * 1000)
    return REPORT_FILE_TEMPLATE.format(timestamp=timestamp)


def export_layer(
    image: RasterBuffer,
    layer: ColorLayer,
    compositor: Optional[LayerCompositor] = None,
) -> RasterBuffer:
    """
    Render one layer for export.

    The raster holds the source pixels the layer keeps and matches, with
    the layer's committed paint on top at full opacity; everything else is
    transparent. Visibility is ignored.
    """
    compositor = compositor or LayerCompositor()
    return compositor.render_reconstruct(image, [layer], [layer.id])


def export_layers(
    image: RasterBuffer,
    layers: Sequence[ColorLayer],
    compositor: Optional[LayerCompositor] = None,
    extension: str = ".png",
) -> List[Tuple[str, RasterBuffer]]:
    """
    Render every layer for export.

    Returns:
        (file name, raster) pairs in stacking order; empty without layers
    """
    compositor = compositor or LayerCompositor()
    return [
        (layer_file_name(index, layer, extension), export_layer(image, layer, compositor))
        for index, layer in enumerate(layers)
    ]


def export_reconstructed(
    image: RasterBuffer,
    layers: Sequence[ColorLayer],
    layer_ids: Iterable[str],
    compositor: Optional[LayerCompositor] = None,
) -> RasterBuffer:
    """Composite of the chosen layers; transparent for an empty selection."""
    compositor = compositor or LayerCompositor()
    return compositor.render_reconstruct(image, layers, layer_ids)


def count_layer_pixels(image: RasterBuffer, layer: ColorLayer) -> int:
    """
    Count the image pixels that match a layer's color.

    Masks are not consulted; pixels with alpha below 128 are skipped.
    """
    pixels = image.data.reshape(-1, 4)
    opaque = pixels[:, 3] >= ALPHA_SAMPLE_THRESHOLD
    return int(np.count_nonzero(match_mask(pixels, layer.color, layer.tolerance) & opaque))


def build_color_report(image: RasterBuffer, layers: Sequence[ColorLayer]) -> str:
    """
    Build the CSV color report.

    One row per layer: hex color, R, G, B, matching pixel count and the
    percentage of all image pixels (two decimals and "%"). Every row,
    including the header and the last row, ends with CRLF.

    Args:
        image: The original image
        layers: Layers in stacking order

    Returns:
        CSV text
    """
    total = image.pixel_count
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator=REPORT_LINE_TERMINATOR)
    writer.writerow(REPORT_HEADER)
    for layer in layers:
        r, g, b = layer.color
        count = count_layer_pixels(image, layer)
        percentage = (count / total) * 100 if total > 0 else 0.0
        writer.writerow([rgb_to_hex(r, g, b), r, g, b, count, f"{percentage:.2f}%"])
    return buffer.getvalue()


# ============================================================================
# Writing to disk
# ============================================================================

def save_layers(
    image: RasterBuffer,
    layers: Sequence[ColorLayer],
    output_dir: Path,
    settings: Optional[ExportSettings] = None,
) -> List[Path]:
    """
    Write every layer as its own image file.

    Returns:
        Paths of the written files in stacking order
    """
    settings = settings or ExportSettings()
    output_dir = Path(output_dir)
    saved = []
    for name, raster in export_layers(image, layers, extension=settings.extension):
        saved.append(save_raster(raster, output_dir / name, settings))
    logger.info(f"Exported {len(saved)} layers to {output_dir}")
    return saved


def save_reconstructed(
    image: RasterBuffer,
    layers: Sequence[ColorLayer],
    layer_ids: Iterable[str],
    output_dir: Path,
    settings: Optional[ExportSettings] = None,
) -> Optional[Path]:
    """
    Write the composite of the chosen layers.

    Returns:
        Path of the written file, or None for an empty selection
    """
    settings = settings or ExportSettings()
    wanted = set(layer_ids)
    count = sum(1 for layer in layers if layer.id in wanted)
    if count == 0:
        logger.info("No layers selected for reconstruction, nothing exported")
        return None

    raster = export_reconstructed(image, layers, wanted)
    path = Path(output_dir) / reconstructed_file_name(count, settings.extension)
    return save_raster(raster, path, settings)


def save_color_report(
    image: RasterBuffer,
    layers: Sequence[ColorLayer],
    output_dir: Path,
    timestamp: Optional[int] = None,
) -> Path:
    """Write the CSV color report and return its path."""
    path = Path(output_dir) / report_file_name(timestamp)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(build_color_report(image, layers))
    logger.info(f"Wrote color report {path}")
    return path

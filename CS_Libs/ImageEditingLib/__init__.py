"""
ImageEditingLib - Pixel operations of the editing engine

This module provides compositing, geometric transforms, color adjustments,
brush strokes, exports and image file I/O for the Color Separator project.
"""

from CS_Libs.ImageEditingLib.adjust_ops import (
    Adjustments,
    adjust_raster,
    invert_raster,
    replace_color,
    stitch_rasters,
)
from CS_Libs.ImageEditingLib.brush_engine import (
    BrushEngine,
    StrokeResult,
    merge_paint_overlay,
)
from CS_Libs.ImageEditingLib.compositor import LayerCompositor, source_over
from CS_Libs.ImageEditingLib.transform_ops import (
    crop_mask,
    crop_raster,
    flip_mask,
    flip_raster,
    rotate_mask,
    rotate_raster,
)
from CS_Libs.ImageEditingLib.transform_registry import (
    TransformRegistry,
    get_default_registry,
)
from CS_Libs.ImageEditingLib.image_io import (
    ExportSettings,
    load_raster,
    save_raster,
)
from CS_Libs.ImageEditingLib.export_ops import (
    build_color_report,
    export_layer,
    export_layers,
    export_reconstructed,
)

__all__ = [
    "Adjustments",
    "adjust_raster",
    "invert_raster",
    "replace_color",
    "stitch_rasters",
    "BrushEngine",
    "StrokeResult",
    "merge_paint_overlay",
    "LayerCompositor",
    "source_over",
    "crop_mask",
    "crop_raster",
    "flip_mask",
    "flip_raster",
    "rotate_mask",
    "rotate_raster",
    "TransformRegistry",
    "get_default_registry",
    "ExportSettings",
    "load_raster",
    "save_raster",
    "build_color_report",
    "export_layer",
    "export_layers",
    "export_reconstructed",
]

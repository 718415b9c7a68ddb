"""
LayerLib - Raster and layer state

This module provides the raster/layer data models, the ordered layer
stack and the snapshot-based undo history.
"""

from CS_Libs.LayerLib.layer_models import (
    ColorLayer,
    CropRect,
    DimensionMismatchError,
    RasterBuffer,
    create_full_mask,
    create_layer,
    new_layer_id,
)
from CS_Libs.LayerLib.layer_stack import LayerStack
from CS_Libs.LayerLib.history import EditorSnapshot, HistoryManager

__all__ = [
    "ColorLayer",
    "CropRect",
    "DimensionMismatchError",
    "RasterBuffer",
    "create_full_mask",
    "create_layer",
    "new_layer_id",
    "LayerStack",
    "EditorSnapshot",
    "HistoryManager",
]

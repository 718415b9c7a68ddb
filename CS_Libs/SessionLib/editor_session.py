"""
Editing session for Color Separator.

EditorSession is the single entry point for user intents. It owns the
original image, the layer stack, the undo history, the brush engine and the
compositor, and it keeps them consistent:

- every undoable edit pushes exactly one snapshot of the state before it
- a stroke only touches scratch buffers until it ends; ending (or leaving
  the canvas) commits it
- selecting another layer first commits a stroke in progress
- transforms compute the new image and layers first and then swap them in
  as one unit

Classes:
    EditorSettings: Per-session tunables
    EditorSession: The user-intent API
"""

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from CS_Libs.ColorLib.color_utils import RgbColor
from CS_Libs.ColorLib.dominant_colors import get_dominant_colors
from CS_Libs.ImageEditingLib import export_ops
from CS_Libs.ImageEditingLib.adjust_ops import Adjustments, stitch_rasters
from CS_Libs.ImageEditingLib.brush_engine import BrushEngine, StrokeResult
from CS_Libs.ImageEditingLib.compositor import LayerCompositor
from CS_Libs.ImageEditingLib.image_io import load_raster
from CS_Libs.ImageEditingLib.transform_registry import TransformRegistry, get_default_registry
from CS_Libs.LayerLib.history import EditorSnapshot, HistoryManager
from CS_Libs.LayerLib.layer_models import (
    ColorLayer,
    CropRect,
    RasterBuffer,
    create_full_mask,
    create_layer,
    normalize_color,
    validate_tolerance,
)
from CS_Libs.LayerLib.layer_stack import LayerStack
from CS_Libs.SessionLib.render_scheduler import RenderScheduler
from CS_Libs.constants import (
    DEFAULT_BRUSH_SIZE,
    DEFAULT_MAX_COLORS,
    DEFAULT_PAINT_COLOR,
    DEFAULT_PAINT_OPACITY,
    DEFAULT_QUANT_LEVELS,
    DEFAULT_REPLACE_TOLERANCE,
    DEFAULT_SAMPLE_STEP,
    DEFAULT_TOLERANCE,
    MAX_BRUSH_SIZE,
    MAX_HISTORY,
    STITCH_HORIZONTAL,
    STROKE_TOOLS,
    TOOL_ERASE,
    TOOL_PAINT,
    TRANSFORM_ADJUST,
    TRANSFORM_CROP,
    TRANSFORM_FLIP,
    TRANSFORM_INVERT,
    TRANSFORM_REPLACE_COLOR,
    TRANSFORM_ROTATE,
    VIEW_ISOLATE,
    VIEW_RECONSTRUCT,
    VIEW_WHOLE,
)

logger = logging.getLogger(__name__)


@dataclass
class EditorSettings:
    """Tunable values of an editing session.

    Attributes:
        max_colors: Number of dominant colors turned into layers on load
        sample_step: Pixel stride used when sampling dominant colors
        quant_levels: Quantization levels per channel for dominant colors
        default_tolerance: Tolerance of newly created layers (0-100)
        history_capacity: Undo/redo depth
        brush_size: Brush radius in pixels
        paint_color: Paint brush color (r, g, b)
        paint_opacity: Paint opacity in percent
    """
    max_colors: int = DEFAULT_MAX_COLORS
    sample_step: int = DEFAULT_SAMPLE_STEP
    quant_levels: int = DEFAULT_QUANT_LEVELS
    default_tolerance: float = DEFAULT_TOLERANCE
    history_capacity: int = MAX_HISTORY
    brush_size: int = DEFAULT_BRUSH_SIZE
    paint_color: RgbColor = DEFAULT_PAINT_COLOR
    paint_opacity: float = DEFAULT_PAINT_OPACITY

    def __post_init__(self):
        """Validate settings."""
        if self.max_colors < 0:
            raise ValueError(f"max_colors must be >= 0, got {self.max_colors}")
        if self.sample_step < 1:
            raise ValueError(f"sample_step must be >= 1, got {self.sample_step}")
        if self.quant_levels < 1:
            raise ValueError(f"quant_levels must be >= 1, got {self.quant_levels}")
        if self.history_capacity < 1:
            raise ValueError(f"history_capacity must be >= 1, got {self.history_capacity}")
        if not (1 <= self.brush_size <= MAX_BRUSH_SIZE):
            raise ValueError(f"brush_size must be 1-{MAX_BRUSH_SIZE}, got {self.brush_size}")
        if not (0 <= self.paint_opacity <= 100):
            raise ValueError(f"paint_opacity must be 0-100, got {self.paint_opacity}")
        self.default_tolerance = validate_tolerance(self.default_tolerance)
        self.paint_color = normalize_color(self.paint_color)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = asdict(self)
        data["paint_color"] = list(self.paint_color)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EditorSettings":
        """Create from dictionary."""
        filtered = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if "paint_color" in filtered:
            filtered["paint_color"] = tuple(filtered["paint_color"])
        return cls(**filtered)


class EditorSession:
    """
    User-intent API of the color separation editor.

    Example:
        >>> session = EditorSession()
        >>> layers = session.load_image(load_raster("poster.png"))
        >>> session.select_layer(layers[0].id)
        >>> session.begin_stroke(40, 40, TOOL_ERASE)
        >>> session.stroke_to(60, 40)
        >>> session.end_stroke()
        >>> frame = session.render()
        >>> session.undo()
    """

    def __init__(
        self,
        settings: Optional[EditorSettings] = None,
        registry: Optional[TransformRegistry] = None,
    ):
        self.settings = settings or EditorSettings()
        self.registry = registry or get_default_registry()
        self.history = HistoryManager(self.settings.history_capacity)
        self.brush = BrushEngine(
            size=self.settings.brush_size,
            color=self.settings.paint_color,
            opacity=self.settings.paint_opacity,
        )
        self.compositor = LayerCompositor()
        self.scheduler = RenderScheduler(self.render)

        self.image: Optional[RasterBuffer] = None
        self.layers: Optional[LayerStack] = None
        self.selected_layer_id: Optional[str] = None
        self.picked_color: Optional[RgbColor] = None
        self.reconstruct_mode = False
        self.reconstruct_ids: Set[str] = set()
        self.highlight = False

    # ========================================================================
    # State helpers
    # ========================================================================

    @property
    def has_image(self) -> bool:
        return self.image is not None

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    @property
    def selected_layer(self) -> Optional[ColorLayer]:
        if self.layers is None:
            return None
        return self.layers.find(self.selected_layer_id)

    @property
    def current_view(self) -> str:
        """View shown by default: reconstruct, else isolate when a layer is selected."""
        if self.reconstruct_mode:
            return VIEW_RECONSTRUCT
        if self.selected_layer_id is not None:
            return VIEW_ISOLATE
        return VIEW_WHOLE

    def _require_image(self) -> None:
        if self.image is None or self.layers is None:
            raise RuntimeError("No image loaded")

    def snapshot(self) -> EditorSnapshot:
        """Current state; shares buffers with the live state (history clones it)."""
        self._require_image()
        return EditorSnapshot(image=self.image, layers=self.layers.layers)

    def _restore(self, snapshot: EditorSnapshot) -> None:
        resized = self.image is None or (snapshot.width, snapshot.height) != self.image.size
        self.image = snapshot.image
        self.layers = LayerStack(snapshot.width, snapshot.height, snapshot.layers)
        if resized:
            self.brush.reset(snapshot.width, snapshot.height)
        else:
            self.brush.clear_overlay()
        if self.selected_layer_id not in self.layers:
            self.selected_layer_id = None
        self.reconstruct_ids &= set(self.layers.ids)

    def _request_render(self) -> None:
        self.scheduler.request(self.current_view)

    # ========================================================================
    # Loading
    # ========================================================================

    def load_image(self, raster: RasterBuffer) -> List[ColorLayer]:
        """
        Start a fresh session on ``raster``.

        History is cleared, the dominant colors become layers with full
        masks, and selection, picked color and brush buffers are reset.

        Returns:
            The created layers, most frequent color first
        """
        if not isinstance(raster, RasterBuffer):
            raise TypeError(f"Expected RasterBuffer, got {type(raster)}")

        if self.brush.is_active:
            logger.warning("Discarding stroke in progress: a new image was loaded")
        self.history.clear()
        colors = get_dominant_colors(
            raster,
            max_colors=self.settings.max_colors,
            sample_step=self.settings.sample_step,
            levels=self.settings.quant_levels,
        )
        stack = LayerStack(raster.width, raster.height)
        for color in colors:
            stack.add(create_layer(color, tolerance=self.settings.default_tolerance))

        self.image = raster.copy()
        self.layers = stack
        self.brush.reset(raster.width, raster.height)
        self.compositor.adjustments = None
        self.selected_layer_id = None
        self.picked_color = None
        self.reconstruct_mode = False
        self.reconstruct_ids = set()
        self.scheduler.reset()

        logger.info(f"Loaded {raster.width}x{raster.height} image with {len(stack)} color layers")
        self._request_render()
        return stack.layers

    def load_file(self, file_path: Union[str, Path]) -> List[ColorLayer]:
        """Decode an image file and load it."""
        return self.load_image(load_raster(file_path))

    def load_stitched(self, rasters: List[RasterBuffer], layout: str = STITCH_HORIZONTAL) -> List[ColorLayer]:
        """Stitch several rasters and load the result as a new image."""
        return self.load_image(stitch_rasters(rasters, layout))

    # ========================================================================
    # Picking and selection
    # ========================================================================

    def pick_color_at(self, x: int, y: int) -> RgbColor:
        """
        Pick the color shown at (x, y) in the current view.

        The first layer whose color matches the pick (within that layer's
        tolerance) becomes the selected layer.

        Raises:
            RuntimeError: Without an image, or in reconstruct mode
            IndexError: If (x, y) is outside the image
        """
        self._require_image()
        if self.reconstruct_mode:
            raise RuntimeError("Color picking is disabled in reconstruct mode")

        r, g, b, _ = self.render().pixel_at(int(x), int(y))
        self.picked_color = (r, g, b)

        match = self.layers.first_matching(self.picked_color)
        if match is not None:
            self.select_layer(match.id)
        logger.debug(f"Picked {self.picked_color} at ({x}, {y})")
        return self.picked_color

    def select_layer(self, layer_id: Optional[str]) -> None:
        """
        Select a layer (None clears the selection).

        A stroke in progress is committed to its layer first, and the paint
        scratch overlay is reset for the newly selected layer.

        Raises:
            KeyError: If the layer does not exist
        """
        self._require_image()
        if layer_id is not None:
            self.layers.index_of(layer_id)
        if self.brush.is_active:
            self.end_stroke()
        self.brush.clear_overlay()
        self.selected_layer_id = layer_id
        self._request_render()

    # ========================================================================
    # Strokes
    # ========================================================================

    def begin_stroke(self, x: int, y: int, tool: str, timestamp: Optional[float] = None) -> None:
        """
        Start an erase or paint stroke on the selected layer.

        A stroke still in progress is committed first.

        Raises:
            RuntimeError: Without an image or without a selected layer
            ValueError: If tool is not "erase" or "paint"
        """
        self._require_image()
        if tool not in STROKE_TOOLS:
            raise ValueError(f"Strokes need the '{TOOL_ERASE}' or '{TOOL_PAINT}' tool, got {tool!r}")
        layer = self.selected_layer
        if layer is None:
            raise RuntimeError("Select a layer before drawing")

        if self.brush.is_active:
            self.end_stroke()
        if tool == TOOL_ERASE:
            self.brush.begin_erase(layer.id, layer.mask, x, y, timestamp)
        else:
            self.brush.begin_paint(layer.id, x, y, timestamp)
        self._request_render()

    def stroke_to(self, x: int, y: int, timestamp: Optional[float] = None) -> bool:
        """
        Add a sample to the stroke in progress.

        Returns:
            False when no stroke is in progress (plain pointer movement)
        """
        if not self.brush.is_active:
            return False
        self.brush.stroke_to(x, y, timestamp)
        self._request_render()
        return True

    def end_stroke(self) -> bool:
        """
        Commit the stroke in progress as one undoable step.

        Returns:
            True if a stroke was committed
        """
        result = self.brush.end_stroke()
        if result is None:
            return False
        self._commit_stroke(result)
        return True

    def leave_canvas(self) -> bool:
        """Pointer left the drawing surface: commit, never discard."""
        return self.end_stroke()

    def _commit_stroke(self, result: StrokeResult) -> None:
        self.history.push(self.snapshot())
        if result.tool == TOOL_ERASE:
            self.layers.replace_mask(result.layer_id, result.buffer)
        else:
            self.layers.merge_paint(result.layer_id, result.buffer)
        logger.debug(f"Committed {result.tool} stroke to {result.layer_id}")
        self._request_render()

    @property
    def brush_size(self) -> int:
        return self.brush.size

    @brush_size.setter
    def brush_size(self, value: int) -> None:
        self.brush.size = value

    @property
    def paint_color(self) -> RgbColor:
        return self.brush.color

    @paint_color.setter
    def paint_color(self, value: RgbColor) -> None:
        self.brush.color = value

    @property
    def paint_opacity(self) -> float:
        return self.brush.opacity

    @paint_opacity.setter
    def paint_opacity(self, value: float) -> None:
        self.brush.opacity = value
        self._request_render()

    # ========================================================================
    # Layer edits
    # ========================================================================

    def _finish_stroke(self) -> None:
        if self.brush.is_active:
            self.end_stroke()

    def move_layer(self, layer_id: str, delta: int) -> bool:
        """Move a layer up (negative delta) or down the stack. Undoable."""
        self._require_image()
        self._finish_stroke()
        # Reordering leaves the layer objects untouched, so this stays valid
        before = self.snapshot()
        moved = self.layers.move_by(layer_id, delta)
        if moved:
            self.history.push(before)
            self._request_render()
        return moved

    def move_layer_to(self, layer_id: str, index: int) -> bool:
        """Drop a layer in front of the slot ``index``. Undoable."""
        self._require_image()
        self._finish_stroke()
        before = self.snapshot()
        moved = self.layers.move_to_index(layer_id, index)
        if moved:
            self.history.push(before)
            self._request_render()
        return moved

    def set_tolerance(self, layer_id: str, value: float) -> None:
        """Change a layer's match tolerance (not recorded in history)."""
        self._require_image()
        self.layers.set_tolerance(layer_id, value)
        self._request_render()

    def set_visible(self, layer_id: str, visible: bool) -> None:
        """Show or hide a layer in the whole view (not recorded in history)."""
        self._require_image()
        self.layers.set_visible(layer_id, visible)
        self._request_render()

    def add_layer_from_picked(self) -> ColorLayer:
        """
        Add a layer for the picked color at the bottom and select it.

        Raises:
            RuntimeError: Without an image or without a picked color
        """
        self._require_image()
        if self.picked_color is None:
            raise RuntimeError("Pick a color before adding a layer")
        self._finish_stroke()
        self.history.push(self.snapshot())
        layer = self.layers.add(create_layer(self.picked_color, tolerance=self.settings.default_tolerance))
        logger.debug(f"Added layer {layer.id} for {layer.display_name}")
        self.select_layer(layer.id)
        return layer

    def delete_layer(self, layer_id: str) -> ColorLayer:
        """Delete a layer. Undoable."""
        self._require_image()
        self.layers.index_of(layer_id)
        self._finish_stroke()
        self.history.push(self.snapshot())
        layer = self.layers.delete(layer_id)
        self.reconstruct_ids.discard(layer_id)
        if self.selected_layer_id == layer_id:
            self.selected_layer_id = None
            self.brush.clear_overlay()
        self._request_render()
        return layer

    def clear_paint(self, layer_id: Optional[str] = None) -> bool:
        """
        Remove the committed paint of a layer (default: the selected one).

        Returns:
            False if there was no paint to clear
        """
        self._require_image()
        layer_id = layer_id or self.selected_layer_id
        if layer_id is None:
            raise RuntimeError("No layer selected")
        self._finish_stroke()
        if self.layers.get(layer_id).paint_data is None:
            return False
        self.history.push(self.snapshot())
        self.layers.replace_paint(layer_id, None)
        self.brush.clear_overlay()
        self._request_render()
        return True

    def reset_masks(self) -> None:
        """Restore a full mask on every layer. Undoable."""
        self._require_image()
        self._finish_stroke()
        self.history.push(self.snapshot())
        for layer_id in self.layers.ids:
            self.layers.replace_mask(layer_id, create_full_mask(self.image.width, self.image.height))
        self._request_render()

    # ========================================================================
    # Reconstruct selection
    # ========================================================================

    def set_reconstruct_mode(self, enabled: bool) -> None:
        self._require_image()
        self._finish_stroke()
        self.reconstruct_mode = bool(enabled)
        self._request_render()

    def toggle_reconstruct_layer(self, layer_id: str) -> bool:
        """
        Add or remove a layer from the reconstruct selection.

        Returns:
            True if the layer is now selected
        """
        self._require_image()
        self.layers.index_of(layer_id)
        if layer_id in self.reconstruct_ids:
            self.reconstruct_ids.discard(layer_id)
        else:
            self.reconstruct_ids.add(layer_id)
        self._request_render()
        return layer_id in self.reconstruct_ids

    def select_all_for_reconstruct(self) -> None:
        self._require_image()
        self.reconstruct_ids = set(self.layers.ids)
        self._request_render()

    def clear_reconstruct_selection(self) -> None:
        self.reconstruct_ids = set()
        self._request_render()

    # ========================================================================
    # Transforms
    # ========================================================================

    def request_transform(self, kind: str, **params: Any) -> Tuple[int, int]:
        """
        Apply a committed image operation as one undoable step.

        The new image and layers are computed before anything changes, so a
        failing transform leaves the session untouched. Geometric transforms
        resize the brush buffers to the new image; color operations only
        clear the stroke overlay.

        Args:
            kind: Registered transform kind ("rotate", "flip", "crop", ...)
            **params: Transform parameters

        Returns:
            The image size after the transform

        Raises:
            KeyError: Unknown kind or missing parameter
            ValueError: Out-of-range parameter
        """
        self._require_image()
        self._finish_stroke()
        new_image, new_layers = self.registry.execute(kind, self.image, self.layers, params)

        self.history.push(self.snapshot())
        self.image = new_image
        self.layers = new_layers
        if self.registry.is_geometric(kind):
            self.brush.reset(new_image.width, new_image.height)
        else:
            self.brush.clear_overlay()
        if self.selected_layer_id not in self.layers:
            self.selected_layer_id = None
        self.scheduler.reset()

        logger.info(f"Applied {kind} transform ({new_image.width}x{new_image.height})")
        self._request_render()
        return new_image.size

    def rotate(self, angle: int) -> Tuple[int, int]:
        return self.request_transform(TRANSFORM_ROTATE, angle=angle)

    def flip(self, horizontal: bool = True, vertical: bool = False) -> Tuple[int, int]:
        return self.request_transform(TRANSFORM_FLIP, horizontal=horizontal, vertical=vertical)

    def crop(self, rect: CropRect) -> Tuple[int, int]:
        return self.request_transform(TRANSFORM_CROP, rect=rect)

    def invert(self) -> Tuple[int, int]:
        return self.request_transform(TRANSFORM_INVERT)

    def replace_color(self, to_color: RgbColor, tolerance: float = DEFAULT_REPLACE_TOLERANCE) -> List[str]:
        """
        Replace the effective color (selected layer's, else the picked one).

        Layers matching the effective color are retargeted to ``to_color``,
        which becomes the picked color.

        Returns:
            Ids of layers whose color changed

        Raises:
            RuntimeError: If there is neither a selected layer nor a picked color
        """
        self._require_image()
        layer = self.selected_layer
        from_color = layer.color if layer is not None else self.picked_color
        if from_color is None:
            raise RuntimeError("Select a layer or pick a color to replace")
        to_color = normalize_color(to_color)

        before = {l.id: l.color for l in self.layers}
        self.request_transform(
            TRANSFORM_REPLACE_COLOR,
            from_color=from_color,
            to_color=to_color,
            tolerance=tolerance,
        )
        self.picked_color = to_color
        return [l.id for l in self.layers if before.get(l.id) != l.color]

    # ---- live adjustments --------------------------------------------------

    @property
    def adjustments(self) -> Adjustments:
        return self.compositor.adjustments or Adjustments()

    def set_adjustments(self, adjustments: Adjustments) -> None:
        """Preview adjustments in every view without changing the image."""
        self.compositor.adjustments = adjustments
        self._request_render()

    def apply_adjustments(self) -> bool:
        """
        Bake the previewed adjustments into the image (undoable).

        Returns:
            False when the preview is the identity
        """
        adjustments = self.adjustments
        if adjustments.is_identity:
            return False
        self.request_transform(TRANSFORM_ADJUST, adjustments=adjustments)
        self.compositor.adjustments = None
        self._request_render()
        return True

    # ========================================================================
    # History
    # ========================================================================

    def undo(self) -> bool:
        """
        Step back one edit.

        Returns:
            False when there is nothing to undo
        """
        self._require_image()
        self._finish_stroke()
        restored = self.history.undo(self.snapshot())
        if restored is None:
            return False
        self._restore(restored)
        self._request_render()
        return True

    def redo(self) -> bool:
        """
        Step forward one edit.

        Returns:
            False when there is nothing to redo
        """
        self._require_image()
        self._finish_stroke()
        restored = self.history.redo(self.snapshot())
        if restored is None:
            return False
        self._restore(restored)
        self._request_render()
        return True

    # ========================================================================
    # Rendering
    # ========================================================================

    def render(self, view: Optional[str] = None) -> RasterBuffer:
        """
        Render a view synchronously, including the stroke in progress.

        Args:
            view: "whole", "isolate" or "reconstruct" (default: current_view)
        """
        self._require_image()
        view = view or self.current_view

        working_mask = self.brush.working_mask if self.brush.active_tool == TOOL_ERASE else None
        working_overlay = self.brush.overlay if self.brush.has_pending_paint else None
        active_id = self.brush.active_layer_id or self.selected_layer_id

        return self.compositor.render(
            view,
            self.image,
            self.layers.layers,
            active_layer_id=active_id,
            reconstruct_ids=self.reconstruct_ids,
            paint_opacity=self.brush.opacity,
            working_mask=working_mask,
            working_overlay=working_overlay,
        )

    def render_highlight(self) -> Optional[RasterBuffer]:
        """Outline overlay for the selected layer, or None without a selection."""
        self._require_image()
        layer = self.selected_layer
        if layer is None:
            return None
        mask = self.brush.working_mask if self.brush.active_layer_id == layer.id else None
        return self.compositor.render_highlight(self.image, layer, mask)

    def flush_renders(self) -> Dict[str, RasterBuffer]:
        """Render every view requested since the last flush."""
        return self.scheduler.flush()

    # ========================================================================
    # Exports
    # ========================================================================

    def export_layer(self, layer_id: str) -> RasterBuffer:
        self._require_image()
        return export_ops.export_layer(self.image, self.layers.get(layer_id))

    def export_all_layers(self) -> List[Tuple[str, RasterBuffer]]:
        """(file name, raster) for every layer; empty without layers."""
        self._require_image()
        return export_ops.export_layers(self.image, self.layers.layers)

    def export_reconstructed(self, layer_ids: Optional[Iterable[str]] = None) -> RasterBuffer:
        """
        Composite of the given layers (default: the reconstruct selection).

        An empty selection yields a fully transparent raster.
        """
        self._require_image()
        ids = self.reconstruct_ids if layer_ids is None else set(layer_ids)
        return export_ops.export_reconstructed(self.image, self.layers.layers, ids)

    def color_report(self) -> str:
        """CSV report of every layer's pixel count in the original image."""
        self._require_image()
        return export_ops.build_color_report(self.image, self.layers.layers)

"""
Brush engine for Color Separator.

Strokes never touch a layer's committed buffers while they are in progress.
An erase stroke stamps zeros into a scratch copy of the layer mask; a paint
stroke stamps the brush color into a scratch RGBA overlay. When the stroke
ends the scratch buffer is handed back as a StrokeResult and the caller
commits it in one step (one history entry per stroke).

Classes:
    StrokeResult: Buffer produced by a finished stroke
    BrushEngine: Scratch buffers plus brush settings

Functions:
    brush_offsets: Integer offsets covered by a circular brush
    stamp_mask: Write a value into a mask under a circular stamp
    stamp_paint: Write an RGBA value into an overlay under a circular stamp
    merge_paint_overlay: Blend a stroke overlay onto committed paint
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Sequence, Tuple

import numpy as np

from CS_Libs.LayerLib.layer_models import (
    DimensionMismatchError,
    create_full_mask,
    normalize_color,
    to_byte_array,
    validate_mask,
)
from CS_Libs.constants import (
    DEFAULT_BRUSH_SIZE,
    DEFAULT_PAINT_COLOR,
    DEFAULT_PAINT_OPACITY,
    MAX_BRUSH_SIZE,
    TOOL_ERASE,
    TOOL_PAINT,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Stamps
# ============================================================================

@lru_cache(maxsize=32)
def brush_offsets(size: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Offsets (dx, dy) with dx*dx + dy*dy <= size*size.

    Returns:
        Two int arrays (dx, dy) of equal length
    """
    span = np.arange(-size, size + 1)
    dy, dx = np.meshgrid(span, span, indexing="ij")
    inside = dx * dx + dy * dy <= size * size
    dx, dy = dx[inside], dy[inside]
    dx.setflags(write=False)
    dy.setflags(write=False)
    return dx, dy


def _stamp_indices(x: int, y: int, size: int, width: int, height: int) -> np.ndarray:
    dx, dy = brush_offsets(int(size))
    px = dx + int(x)
    py = dy + int(y)
    inside = (px >= 0) & (px < width) & (py >= 0) & (py < height)
    return py[inside] * width + px[inside]


def stamp_mask(mask: np.ndarray, x: int, y: int, size: int, width: int, height: int, value: int = 0) -> int:
    """
    Write ``value`` into every mask pixel under a circular stamp.

    Stamp pixels outside the mask are skipped.

    Returns:
        Number of pixels written
    """
    indices = _stamp_indices(x, y, size, width, height)
    mask[indices] = value
    return int(indices.size)


def stamp_paint(
    overlay: np.ndarray,
    x: int,
    y: int,
    size: int,
    width: int,
    height: int,
    rgba: Sequence[int],
) -> int:
    """Write an RGBA value into every overlay pixel under a circular stamp."""
    indices = _stamp_indices(x, y, size, width, height)
    overlay.reshape(-1, 4)[indices] = np.asarray(rgba, dtype=np.uint8)
    return int(indices.size)


# ============================================================================
# Paint merge
# ============================================================================

def merge_paint_overlay(
    existing: Optional[np.ndarray],
    new: np.ndarray,
    width: int,
    height: int,
) -> np.ndarray:
    """
    Blend ``new`` over ``existing`` (non-premultiplied source-over).

    outA = newA + existingA * (1 - newA); each color channel is the
    alpha-weighted mix divided by outA. Fully transparent results are zero.

    Args:
        existing: Committed paint overlay or None
        new: Stroke overlay
        width: Image width
        height: Image height

    Returns:
        New merged overlay (a copy of ``new`` when ``existing`` is None)

    Raises:
        DimensionMismatchError: If either buffer is not width * height * 4 long
    """
    expected = int(width) * int(height) * 4
    new = np.asarray(new, dtype=np.uint8).reshape(-1)
    if new.size != expected:
        raise DimensionMismatchError(f"Stroke overlay has {new.size} bytes, expected {expected}")
    if existing is None:
        return new.copy()

    existing = np.asarray(existing, dtype=np.uint8).reshape(-1)
    if existing.size != expected:
        raise DimensionMismatchError(f"Paint overlay has {existing.size} bytes, expected {expected}")

    top = new.reshape(-1, 4).astype(np.float64)
    bottom = existing.reshape(-1, 4).astype(np.float64)
    top_a = top[:, 3] / 255.0
    bottom_a = bottom[:, 3] / 255.0

    out_a = top_a + bottom_a * (1.0 - top_a)
    weight_bottom = bottom_a * (1.0 - top_a)
    numerator = top[:, :3] * top_a[:, None] + bottom[:, :3] * weight_bottom[:, None]
    visible = out_a > 0
    out_rgb = np.where(visible[:, None], numerator / np.where(visible, out_a, 1.0)[:, None], 0.0)

    merged = np.concatenate([out_rgb, (out_a * 255.0)[:, None]], axis=1)
    return to_byte_array(merged).reshape(-1)


# ============================================================================
# Engine
# ============================================================================

@dataclass
class StrokeResult:
    """Outcome of a finished stroke.

    Attributes:
        tool: TOOL_ERASE or TOOL_PAINT
        layer_id: Layer the stroke was drawn on
        buffer: New mask (erase) or stroke overlay (paint)
        samples: Number of stamps in the stroke
        started_at: Timestamp of the first sample, if given
        ended_at: Timestamp of the last sample, if given
    """
    tool: str
    layer_id: str
    buffer: np.ndarray
    samples: int = 0
    started_at: Optional[float] = None
    ended_at: Optional[float] = None


class BrushEngine:
    """
    Owns the scratch buffers used while a stroke is drawn.

    Example:
        >>> brush = BrushEngine(64, 64, size=4)
        >>> brush.begin_erase("layer-1", committed_mask, 10, 10)
        >>> brush.stroke_to(12, 10)
        >>> result = brush.end_stroke()
        >>> stack.replace_mask(result.layer_id, result.buffer)
    """

    def __init__(
        self,
        width: int = 0,
        height: int = 0,
        size: int = DEFAULT_BRUSH_SIZE,
        color: Sequence[int] = DEFAULT_PAINT_COLOR,
        opacity: float = DEFAULT_PAINT_OPACITY,
    ):
        self.size = size
        self.color = color
        self.opacity = opacity
        self.width = 0
        self.height = 0
        self._overlay = np.zeros(0, dtype=np.uint8)
        self._working_mask: Optional[np.ndarray] = None
        self._tool: Optional[str] = None
        self._layer_id: Optional[str] = None
        self._samples = 0
        self._started_at: Optional[float] = None
        self._last_at: Optional[float] = None
        self.reset(width, height)

    # ---- settings ----------------------------------------------------------

    @property
    def size(self) -> int:
        return self._size

    @size.setter
    def size(self, value: int) -> None:
        value = int(value)
        if not (1 <= value <= MAX_BRUSH_SIZE):
            raise ValueError(f"Brush size must be 1-{MAX_BRUSH_SIZE}, got {value}")
        self._size = value

    @property
    def color(self) -> Tuple[int, int, int]:
        return self._color

    @color.setter
    def color(self, value: Sequence[int]) -> None:
        self._color = normalize_color(value)

    @property
    def opacity(self) -> float:
        return self._opacity

    @opacity.setter
    def opacity(self, value: float) -> None:
        value = float(value)
        if not (0 <= value <= 100):
            raise ValueError(f"Paint opacity must be 0-100, got {value}")
        self._opacity = value

    @property
    def paint_rgba(self) -> Tuple[int, int, int, int]:
        """Color written by paint stamps; alpha is round(opacity% * 255)."""
        alpha = int(np.floor(self._opacity / 100 * 255 + 0.5))
        return (*self._color, alpha)

    # ---- state -------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._tool is not None

    @property
    def active_tool(self) -> Optional[str]:
        return self._tool

    @property
    def active_layer_id(self) -> Optional[str]:
        return self._layer_id

    @property
    def working_mask(self) -> Optional[np.ndarray]:
        """Scratch mask of the erase stroke in progress (read-only view)."""
        if self._working_mask is None:
            return None
        view = self._working_mask.view()
        view.setflags(write=False)
        return view

    @property
    def overlay(self) -> np.ndarray:
        """Scratch paint overlay (read-only view)."""
        view = self._overlay.view()
        view.setflags(write=False)
        return view

    @property
    def has_pending_paint(self) -> bool:
        return bool(self._overlay.size) and bool(self._overlay.reshape(-1, 4)[:, 3].any())

    def reset(self, width: int, height: int) -> None:
        """Resize for a new image: zero the overlay and drop any stroke."""
        if self.is_active:
            logger.warning(f"Discarding {self._tool} stroke on {self._layer_id} during reset")
        self.width = int(width)
        self.height = int(height)
        self._overlay = np.zeros(self.width * self.height * 4, dtype=np.uint8)
        self._end()

    def clear_overlay(self) -> None:
        self._overlay[:] = 0

    def _end(self) -> None:
        self._working_mask = None
        self._tool = None
        self._layer_id = None
        self._samples = 0
        self._started_at = None
        self._last_at = None

    # ---- strokes -----------------------------------------------------------

    def _start(self, tool: str, layer_id: str, timestamp: Optional[float]) -> None:
        if self.is_active:
            raise RuntimeError(f"A {self._tool} stroke is already in progress")
        if not layer_id:
            raise ValueError("A stroke needs a target layer")
        self._tool = tool
        self._layer_id = layer_id
        self._started_at = timestamp
        self._last_at = timestamp

    def begin_erase(
        self,
        layer_id: str,
        committed_mask: Optional[np.ndarray],
        x: int,
        y: int,
        timestamp: Optional[float] = None,
    ) -> None:
        """
        Start an erase stroke and stamp its first sample.

        The scratch mask starts as a copy of ``committed_mask`` (a full mask
        when the layer has none).
        """
        self._start(TOOL_ERASE, layer_id, timestamp)
        if committed_mask is None:
            self._working_mask = create_full_mask(self.width, self.height)
        else:
            self._working_mask = validate_mask(committed_mask, self.width, self.height)
        self._stamp(x, y)

    def begin_paint(self, layer_id: str, x: int, y: int, timestamp: Optional[float] = None) -> None:
        """Start a paint stroke and stamp its first sample."""
        self._start(TOOL_PAINT, layer_id, timestamp)
        self._stamp(x, y)

    def stroke_to(self, x: int, y: int, timestamp: Optional[float] = None) -> None:
        """
        Stamp one more sample of the current stroke.

        Raises:
            RuntimeError: If no stroke is in progress
        """
        if not self.is_active:
            raise RuntimeError("No stroke in progress")
        if timestamp is not None:
            self._last_at = timestamp
        self._stamp(x, y)

    def _stamp(self, x: int, y: int) -> None:
        if self._tool == TOOL_ERASE:
            stamp_mask(self._working_mask, x, y, self._size, self.width, self.height, 0)
        else:
            stamp_paint(self._overlay, x, y, self._size, self.width, self.height, self.paint_rgba)
        self._samples += 1

    def end_stroke(self) -> Optional[StrokeResult]:
        """
        Finish the current stroke.

        The paint overlay is cleared for the next stroke after its contents
        are copied into the result.

        Returns:
            The StrokeResult to commit, or None when no stroke was active
        """
        if not self.is_active:
            return None

        if self._tool == TOOL_ERASE:
            buffer = self._working_mask
        else:
            buffer = self._overlay.copy()
            self.clear_overlay()

        result = StrokeResult(
            tool=self._tool,
            layer_id=self._layer_id,
            buffer=buffer,
            samples=self._samples,
            started_at=self._started_at,
            ended_at=self._last_at,
        )
        logger.debug(f"Finished {result.tool} stroke on {result.layer_id} ({result.samples} samples)")
        self._end()
        return result

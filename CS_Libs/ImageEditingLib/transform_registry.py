"""
Committed image operations for Color Separator.

Rotate, flip, crop, invert, adjust and replace color are looked up by kind.
Every executor is pure: it takes the current image, the layer stack and a
parameter dictionary, and returns a new image with a new layer stack that
fits it. The inputs are never modified, so a session can swap the result in
as one unit or drop it when the executor raises.

Geometric kinds move pixels around; the session re-lays its brush buffers
out after them instead of just clearing the stroke overlay.

Classes:
    TransformRegistry: Kind -> executor lookup

Functions:
    get_default_registry: Shared registry with the built-in operations
    register_default_transforms: Register the built-in operations
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from CS_Libs.ImageEditingLib import transform_ops
from CS_Libs.ImageEditingLib.adjust_ops import Adjustments, adjust_raster, invert_raster, replace_color
from CS_Libs.LayerLib.layer_models import CropRect, RasterBuffer
from CS_Libs.LayerLib.layer_stack import LayerStack
from CS_Libs.constants import (
    DEFAULT_REPLACE_TOLERANCE,
    TRANSFORM_ADJUST,
    TRANSFORM_CROP,
    TRANSFORM_FLIP,
    TRANSFORM_INVERT,
    TRANSFORM_REPLACE_COLOR,
    TRANSFORM_ROTATE,
)

logger = logging.getLogger(__name__)

TransformResult = Tuple[RasterBuffer, LayerStack]
TransformFunction = Callable[[RasterBuffer, LayerStack, Dict[str, Any]], TransformResult]


@dataclass(frozen=True)
class TransformEntry:
    """A registered executor and whether it moves pixels."""

    executor: TransformFunction
    geometric: bool = False


class TransformRegistry:
    """
    Looks up and runs committed image operations by kind.

    Example:
        >>> registry = TransformRegistry()
        >>> registry.register("rotate", execute_rotate, geometric=True)
        >>> image, layers = registry.execute("rotate", image, layers, {"angle": 90})
    """

    def __init__(self):
        self._entries: Dict[str, TransformEntry] = {}

    def register(self, kind: str, executor: TransformFunction, geometric: bool = False) -> None:
        """
        Add an operation.

        Args:
            kind: Operation name, e.g. "rotate"
            executor: Callable taking (image, layers, params)
            geometric: True when the operation moves or resizes pixels

        Raises:
            ValueError: For an empty kind or a non-callable executor
            RuntimeError: If ``kind`` is taken
        """
        kind = str(kind).strip()
        if not kind:
            raise ValueError("Transform kind cannot be empty")
        if not callable(executor):
            raise ValueError(f"Transform executor for '{kind}' must be callable, got {type(executor)}")
        if kind in self._entries:
            raise RuntimeError(f"Transform '{kind}' is already registered")

        self._entries[kind] = TransformEntry(executor, bool(geometric))
        logger.debug(f"Registered {'geometric ' if geometric else ''}transform: {kind}")

    def _entry(self, kind: str) -> TransformEntry:
        kind = str(kind).strip()
        try:
            return self._entries[kind]
        except KeyError:
            raise KeyError(
                f"Unknown transform '{kind}'. Known transforms: {', '.join(self.list_kinds())}"
            ) from None

    def get_executor(self, kind: str) -> TransformFunction:
        """
        Raises:
            KeyError: If ``kind`` is not registered
        """
        return self._entry(kind).executor

    def is_geometric(self, kind: str) -> bool:
        """Whether ``kind`` moves pixels (rotate, flip, crop)."""
        return self._entry(kind).geometric

    def list_kinds(self) -> List[str]:
        return sorted(self._entries)

    def execute(
        self,
        kind: str,
        image: RasterBuffer,
        layers: LayerStack,
        params: Optional[Dict[str, Any]] = None,
    ) -> TransformResult:
        """
        Run an operation without touching its inputs.

        Returns:
            (new_image, new_layers)

        Raises:
            KeyError: Unknown kind or missing parameter
            ValueError: Out-of-range parameter
            DimensionMismatchError: If ``layers`` does not fit ``image``
        """
        layers.check_dimensions(image.width, image.height)
        executor = self.get_executor(kind)
        new_image, new_layers = executor(image, layers, dict(params or {}))
        new_layers.check_dimensions(new_image.width, new_image.height)
        return new_image, new_layers


# ============================================================================
# Built-in executors
# ============================================================================

def _require(params: Dict[str, Any], key: str, kind: str) -> Any:
    if key not in params:
        raise KeyError(f"{kind} transform missing required '{key}' parameter")
    return params[key]


def _remap_layers(
    layers: LayerStack,
    width: int,
    height: int,
    remap_mask: Callable[[Any], Any],
    remap_paint: Callable[[Any], Any],
) -> LayerStack:
    """Build a new stack whose masks and paint went through the same geometry."""
    remapped = LayerStack(width, height)
    for layer in layers:
        clone = layer.copy()
        if clone.mask is not None:
            clone.mask = remap_mask(clone.mask)
        if clone.paint_data is not None:
            clone.paint_data = remap_paint(clone.paint_data)
        remapped.add(clone)
    return remapped


def execute_rotate(image: RasterBuffer, layers: LayerStack, params: Dict[str, Any]) -> TransformResult:
    """Rotate the image, every mask and every paint overlay by ``angle``."""
    angle = _require(params, "angle", TRANSFORM_ROTATE)
    w, h = image.width, image.height
    new_image = transform_ops.rotate_raster(image, angle)
    new_layers = _remap_layers(
        layers,
        new_image.width,
        new_image.height,
        lambda mask: transform_ops.rotate_mask(mask, w, h, angle),
        lambda paint: transform_ops.rotate_paint(paint, w, h, angle),
    )
    return new_image, new_layers


def execute_flip(image: RasterBuffer, layers: LayerStack, params: Dict[str, Any]) -> TransformResult:
    """Mirror horizontally and/or vertically (params ``horizontal``, ``vertical``)."""
    horizontal = bool(params.get("horizontal", False))
    vertical = bool(params.get("vertical", False))
    if not (horizontal or vertical):
        raise ValueError("flip needs horizontal and/or vertical set")

    w, h = image.width, image.height
    new_image = transform_ops.flip_raster(image, horizontal, vertical)
    new_layers = _remap_layers(
        layers,
        w,
        h,
        lambda mask: transform_ops.flip_mask(mask, w, h, horizontal, vertical),
        lambda paint: transform_ops.flip_paint(paint, w, h, horizontal, vertical),
    )
    return new_image, new_layers


def execute_crop(image: RasterBuffer, layers: LayerStack, params: Dict[str, Any]) -> TransformResult:
    """
    Crop to a rectangle.

    The rectangle is given either as ``rect`` (CropRect or dict) or as
    ``x``, ``y``, ``width`` and ``height`` parameters.
    """
    rect = params.get("rect")
    if rect is None:
        rect = CropRect.from_dict({key: _require(params, key, TRANSFORM_CROP) for key in ("x", "y", "width", "height")})
    elif isinstance(rect, dict):
        rect = CropRect.from_dict(rect)

    w, h = image.width, image.height
    new_image = transform_ops.crop_raster(image, rect)
    new_layers = _remap_layers(
        layers,
        rect.width,
        rect.height,
        lambda mask: transform_ops.crop_mask(mask, w, rect),
        lambda paint: transform_ops.crop_paint(paint, w, h, rect),
    )
    return new_image, new_layers


def execute_invert(image: RasterBuffer, layers: LayerStack, params: Dict[str, Any]) -> TransformResult:
    """Invert the image colors; layers are kept as they are."""
    return invert_raster(image), layers.clone()


def execute_adjust(image: RasterBuffer, layers: LayerStack, params: Dict[str, Any]) -> TransformResult:
    """
    Bake brightness/contrast/saturation into the image.

    Accepts ``adjustments`` (Adjustments or dict) or the individual
    ``brightness``, ``contrast`` and ``saturation`` values.
    """
    adjustments = params.get("adjustments")
    if adjustments is None:
        adjustments = Adjustments.from_dict(params)
    elif isinstance(adjustments, dict):
        adjustments = Adjustments.from_dict(adjustments)
    return adjust_raster(image, adjustments), layers.clone()


def execute_replace_color(image: RasterBuffer, layers: LayerStack, params: Dict[str, Any]) -> TransformResult:
    """
    Replace ``from_color`` by ``to_color`` in the image.

    Layers whose color matches ``from_color`` within their own tolerance are
    retargeted to ``to_color``.
    """
    from_color = _require(params, "from_color", TRANSFORM_REPLACE_COLOR)
    to_color = _require(params, "to_color", TRANSFORM_REPLACE_COLOR)
    tolerance = params.get("tolerance", DEFAULT_REPLACE_TOLERANCE)

    new_image = replace_color(image, from_color, to_color, tolerance)
    new_layers = layers.clone()
    retargeted = new_layers.retarget_color(from_color, to_color)
    if retargeted:
        logger.debug(f"Retargeted {len(retargeted)} layers to {tuple(to_color)}")
    return new_image, new_layers


# Global singleton registry
_default_registry: Optional[TransformRegistry] = None


def get_default_registry() -> TransformRegistry:
    """
    Get the global default registry (singleton).

    Creates the registry on first call and registers the built-in transforms.
    """
    global _default_registry

    if _default_registry is None:
        _default_registry = TransformRegistry()
        register_default_transforms(_default_registry)

    return _default_registry


def register_default_transforms(registry: TransformRegistry) -> None:
    """Register rotate, flip and crop as geometric, and the color operations."""
    registry.register(TRANSFORM_ROTATE, execute_rotate, geometric=True)
    registry.register(TRANSFORM_FLIP, execute_flip, geometric=True)
    registry.register(TRANSFORM_CROP, execute_crop, geometric=True)
    registry.register(TRANSFORM_INVERT, execute_invert)
    registry.register(TRANSFORM_ADJUST, execute_adjust)
    registry.register(TRANSFORM_REPLACE_COLOR, execute_replace_color)

    logger.debug("Registered default transforms")

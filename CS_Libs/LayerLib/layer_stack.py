"""
Ordered layer stack for Color Separator.

The stack owns every ColorLayer of the current image. Index 0 is the topmost
layer (drawn last); the last layer is the bottom of the stack. Every mutation
replaces whole buffers, and every buffer is checked against the stack's
image dimensions.

Classes:
    LayerStack: Ordered, id-addressable collection of ColorLayer objects
"""

import logging
from typing import Iterable, Iterator, List, Optional

import numpy as np

from CS_Libs.ColorLib.color_utils import RgbColor, color_matches
from CS_Libs.LayerLib.layer_models import (
    ColorLayer,
    DimensionMismatchError,
    create_full_mask,
    create_layer,
    validate_mask,
    validate_paint,
    normalize_color,
    validate_tolerance,
)

logger = logging.getLogger(__name__)


class LayerStack:
    """
    Ordered collection of color layers for one image size.

    Example:
        >>> stack = LayerStack(640, 480)
        >>> red = stack.create_layer((255, 0, 0))
        >>> blue = stack.create_layer((0, 0, 255))
        >>> stack.move_to_index(blue.id, 0)
        >>> [layer.display_name for layer in stack]
        ['#0000ff', '#ff0000']
    """

    def __init__(self, width: int, height: int, layers: Optional[Iterable[ColorLayer]] = None):
        """
        Initialize a stack for a width x height image.

        Args:
            width: Image width
            height: Image height
            layers: Optional initial layers (top first); they are validated
                    and stored as given, not copied
        """
        self.width = int(width)
        self.height = int(height)
        self._layers: List[ColorLayer] = []
        for layer in layers or []:
            self.add(layer)

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[ColorLayer]:
        return iter(list(self._layers))

    def __contains__(self, layer_id: str) -> bool:
        return any(layer.id == layer_id for layer in self._layers)

    @property
    def layers(self) -> List[ColorLayer]:
        """Layers in stacking order (top first). The list is a shallow copy."""
        return list(self._layers)

    @property
    def ids(self) -> List[str]:
        return [layer.id for layer in self._layers]

    def index_of(self, layer_id: str) -> int:
        """
        Get the stacking index of a layer.

        Raises:
            KeyError: If no layer has this id
        """
        for index, layer in enumerate(self._layers):
            if layer.id == layer_id:
                return index
        raise KeyError(f"No layer with id '{layer_id}'")

    def get(self, layer_id: str) -> ColorLayer:
        return self._layers[self.index_of(layer_id)]

    def find(self, layer_id: Optional[str]) -> Optional[ColorLayer]:
        """Like get(), but returns None for unknown or missing ids."""
        if layer_id is None:
            return None
        for layer in self._layers:
            if layer.id == layer_id:
                return layer
        return None

    def add(self, layer: ColorLayer, index: Optional[int] = None) -> ColorLayer:
        """
        Insert a layer (appended at the bottom by default).

        A layer without a mask receives a full mask for the stack size.

        Raises:
            ValueError: If a layer with the same id already exists
            DimensionMismatchError: If the layer's buffers do not fit
        """
        if layer.id in self:
            raise ValueError(f"Layer id '{layer.id}' already exists")

        if layer.mask is None:
            layer.mask = create_full_mask(self.width, self.height)
        else:
            layer.mask = validate_mask(layer.mask, self.width, self.height)
        if layer.paint_data is not None:
            layer.paint_data = validate_paint(layer.paint_data, self.width, self.height)

        if index is None:
            self._layers.append(layer)
        else:
            self._layers.insert(max(0, min(len(self._layers), int(index))), layer)
        return layer

    def create_layer(
        self,
        color: RgbColor,
        layer_id: Optional[str] = None,
        mask: Optional[np.ndarray] = None,
    ) -> ColorLayer:
        """Create a layer from a color and append it at the bottom."""
        return self.add(create_layer(color, layer_id=layer_id, mask=mask))

    def delete(self, layer_id: str) -> ColorLayer:
        """Remove and return a layer."""
        layer = self._layers.pop(self.index_of(layer_id))
        logger.debug(f"Deleted layer {layer_id}")
        return layer

    def move_by(self, layer_id: str, delta: int) -> bool:
        """
        Move a layer by a relative offset (negative = towards the top).

        The target index is clamped to the stack.

        Returns:
            True if the order changed
        """
        from_index = self.index_of(layer_id)
        to_index = max(0, min(len(self._layers) - 1, from_index + int(delta)))
        if from_index == to_index:
            return False
        layer = self._layers.pop(from_index)
        self._layers.insert(to_index, layer)
        return True

    def move_to_index(self, layer_id: str, to_index: int) -> bool:
        """
        Move a layer to an absolute drop position.

        ``to_index`` is the slot the layer is dropped in front of, in the
        current ordering (``len(stack)`` drops it at the bottom). When the layer
        moves forward past its own position the target shifts down by one to
        account for the slot the layer leaves behind.

        Returns:
            True if the order changed
        """
        from_index = self.index_of(layer_id)
        target = max(0, min(len(self._layers), int(to_index)))
        if from_index < target:
            target -= 1
        if from_index == target:
            return False
        layer = self._layers.pop(from_index)
        self._layers.insert(target, layer)
        return True

    def set_tolerance(self, layer_id: str, tolerance: float) -> None:
        self.get(layer_id).tolerance = validate_tolerance(tolerance)

    def set_visible(self, layer_id: str, visible: bool) -> None:
        self.get(layer_id).visible = bool(visible)

    def replace_mask(self, layer_id: str, mask: np.ndarray) -> None:
        """
        Replace a layer's mask with a copy of ``mask``.

        Raises:
            DimensionMismatchError: If the mask length is not width * height
        """
        layer = self.get(layer_id)
        layer.mask = validate_mask(mask, self.width, self.height)

    def replace_paint(self, layer_id: str, paint: Optional[np.ndarray]) -> None:
        """Replace (or with None, clear) a layer's committed paint overlay."""
        layer = self.get(layer_id)
        layer.paint_data = None if paint is None else validate_paint(paint, self.width, self.height)

    def merge_paint(self, layer_id: str, stroke: np.ndarray) -> None:
        """Blend a stroke overlay on top of a layer's committed paint."""
        # Imported here: brush_engine depends on LayerLib
        from CS_Libs.ImageEditingLib.brush_engine import merge_paint_overlay

        layer = self.get(layer_id)
        layer.paint_data = merge_paint_overlay(layer.paint_data, stroke, self.width, self.height)

    def retarget_color(self, from_color: RgbColor, to_color: RgbColor) -> List[str]:
        """
        Change the color of every layer that matches ``from_color``.

        Each layer compares with its own tolerance.

        Returns:
            Ids of the retargeted layers
        """
        to_color = normalize_color(to_color)
        changed = []
        for layer in self._layers:
            if color_matches(layer.color, from_color, layer.tolerance):
                layer.color = to_color
                changed.append(layer.id)
        return changed

    def first_matching(self, color: RgbColor) -> Optional[ColorLayer]:
        """First layer (top-down) whose color matches within its tolerance."""
        for layer in self._layers:
            if color_matches(color, layer.color, layer.tolerance):
                return layer
        return None

    def check_dimensions(self, width: int, height: int) -> None:
        """
        Ensure the stack belongs to an image of the given size.

        Raises:
            DimensionMismatchError: If the sizes differ
        """
        if (self.width, self.height) != (int(width), int(height)):
            raise DimensionMismatchError(
                f"Layer stack is sized {self.width}x{self.height}, image is {width}x{height}"
            )

    def clone(self) -> "LayerStack":
        """Deep copy of the stack, including every mask and paint buffer."""
        clone = LayerStack(self.width, self.height)
        clone._layers = [layer.copy() for layer in self._layers]
        return clone

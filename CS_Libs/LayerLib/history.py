"""
Undo/redo history for Color Separator.

History is snapshot based: every entry is a full deep copy of the image
buffer and all layer state. Two bounded stacks (past and future) hold the
entries; pushing a new state clears the future.

Classes:
    EditorSnapshot: Image buffer plus ordered layers at one point in time
    HistoryManager: Bounded past/future snapshot stacks
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from CS_Libs.LayerLib.layer_models import ColorLayer, RasterBuffer
from CS_Libs.constants import MAX_HISTORY

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class EditorSnapshot:
    """Full editor state captured for undo/redo.

    Attributes:
        image: The original (authoritative) image buffer
        layers: Ordered layers, top first, with their masks and paint
    """
    image: RasterBuffer
    layers: List[ColorLayer]

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def clone(self) -> "EditorSnapshot":
        """Deep copy; no buffer is shared with the source snapshot."""
        return EditorSnapshot(
            image=self.image.copy(),
            layers=[layer.copy() for layer in self.layers],
        )


class HistoryManager:
    """
    Bounded undo/redo stacks of EditorSnapshot objects.

    Example:
        >>> history = HistoryManager()
        >>> history.push(state_before_edit)
        >>> restored = history.undo(current_state)
        >>> if restored is not None:
        ...     apply(restored)
    """

    def __init__(self, capacity: int = MAX_HISTORY):
        if capacity < 1:
            raise ValueError(f"History capacity must be >= 1, got {capacity}")
        self.capacity = int(capacity)
        self._past: List[EditorSnapshot] = []
        self._future: List[EditorSnapshot] = []

    @property
    def can_undo(self) -> bool:
        return len(self._past) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._future) > 0

    @property
    def undo_depth(self) -> int:
        return len(self._past)

    @property
    def redo_depth(self) -> int:
        return len(self._future)

    def _append_bounded(self, stack: List[EditorSnapshot], snapshot: EditorSnapshot) -> None:
        stack.append(snapshot)
        if len(stack) > self.capacity:
            del stack[: len(stack) - self.capacity]

    def push(self, state: EditorSnapshot) -> None:
        """Store a clone of ``state`` as the newest undo entry and clear redo."""
        self._append_bounded(self._past, state.clone())
        self._future.clear()
        logger.debug(f"History push (undo depth {len(self._past)})")

    def undo(self, current: Optional[EditorSnapshot]) -> Optional[EditorSnapshot]:
        """
        Step back one entry.

        Args:
            current: The live state, saved so redo can return to it

        Returns:
            The snapshot to restore, or None when there is nothing to undo
        """
        if not self._past:
            return None
        restored = self._past.pop()
        if current is not None:
            self._append_bounded(self._future, current.clone())
        return restored.clone()

    def redo(self, current: Optional[EditorSnapshot]) -> Optional[EditorSnapshot]:
        """
        Step forward one entry.

        Returns:
            The snapshot to restore, or None when there is nothing to redo
        """
        if not self._future:
            return None
        restored = self._future.pop()
        if current is not None:
            self._append_bounded(self._past, current.clone())
        return restored.clone()

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()

"""
Deferred rendering for Color Separator.

Input handlers (stroke samples, slider moves) only mark a view as dirty.
The scheduler keeps at most one pending request per view: a newer request
replaces the pending one instead of queueing behind it. ``flush()`` renders
each pending view once with its latest parameters.

Classes:
    RenderScheduler: Per-view latest-wins render requests
"""

import logging
from typing import Any, Callable, Dict, Optional

from CS_Libs.LayerLib.layer_models import RasterBuffer

logger = logging.getLogger(__name__)

RenderFunction = Callable[..., RasterBuffer]


class RenderScheduler:
    """
    Coalesces render requests per view.

    Example:
        >>> scheduler = RenderScheduler(session.render)
        >>> scheduler.request("whole")
        >>> scheduler.request("whole")   # supersedes the first request
        >>> frames = scheduler.flush()   # renders "whole" once
    """

    def __init__(self, render: RenderFunction):
        """
        Args:
            render: Callable invoked as render(view, **params)
        """
        if not callable(render):
            raise ValueError(f"render must be callable, got {type(render)}")
        self._render = render
        self._pending: Dict[str, Dict[str, Any]] = {}
        self.superseded = 0
        self.rendered = 0

    def request(self, view: str, **params: Any) -> bool:
        """
        Mark a view for rendering.

        Returns:
            True if the request replaced an earlier pending one
        """
        replaced = view in self._pending
        self._pending[view] = params
        if replaced:
            self.superseded += 1
        return replaced

    def is_pending(self, view: str) -> bool:
        return view in self._pending

    def flush(self, view: Optional[str] = None) -> Dict[str, RasterBuffer]:
        """
        Render pending requests.

        Args:
            view: Only flush this view (default: every pending view)

        Returns:
            Mapping of view -> freshly rendered frame
        """
        if view is None:
            batch = self._pending
            self._pending = {}
        elif view in self._pending:
            batch = {view: self._pending.pop(view)}
        else:
            batch = {}

        frames = {}
        for name, params in batch.items():
            frames[name] = self._render(name, **params)
            self.rendered += 1
        if frames:
            logger.debug(f"Rendered {', '.join(frames)}")
        return frames

    def reset(self) -> None:
        """Forget pending requests."""
        self._pending.clear()

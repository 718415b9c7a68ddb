"""
SessionLib - Editing session

This module ties user intents (picks, strokes, layer edits, transforms,
undo/redo, exports) to the editing engine.
"""

from CS_Libs.SessionLib.editor_session import EditorSession, EditorSettings
from CS_Libs.SessionLib.render_scheduler import RenderScheduler

__all__ = [
    "EditorSession",
    "EditorSettings",
    "RenderScheduler",
]

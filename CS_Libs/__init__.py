"""
CS_Libs - Color Separator Library Modules

This package contains the core functionality for the Color Separator project,
organized into specialized sub-packages:

- ColorLib: Color matching and dominant color extraction
- LayerLib: Raster/layer data models, the ordered layer stack and undo history
- ImageEditingLib: Compositing, transforms, brush strokes, exports and image I/O
- SessionLib: The editing session that ties user intents to the engine
"""

__version__ = "0.1.0"

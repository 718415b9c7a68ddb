"""
Constants and configuration values for Color Separator.

This module centralizes all constant values, magic numbers, and
configuration settings used throughout the application.
"""

# Color matching
DEFAULT_TOLERANCE = 10
MIN_TOLERANCE = 0
MAX_TOLERANCE = 100

# Dominant color extraction
DEFAULT_MAX_COLORS = 20
DEFAULT_SAMPLE_STEP = 8
DEFAULT_QUANT_LEVELS = 12
ALPHA_SAMPLE_THRESHOLD = 128

# Undo/redo
MAX_HISTORY = 30

# Brush defaults
DEFAULT_BRUSH_SIZE = 20
MAX_BRUSH_SIZE = 500
DEFAULT_PAINT_COLOR = (255, 0, 0)
DEFAULT_PAINT_OPACITY = 100

# Layer ids
LAYER_ID_PREFIX = "layer-"
LAYER_ID_HEX_LENGTH = 12

# Highlight outline overlay
HIGHLIGHT_COLOR = (0, 255, 255)
HIGHLIGHT_EDGE_ALPHA = 255
HIGHLIGHT_HALO_ALPHA = 180

# Adjustment slider range
MIN_ADJUSTMENT = -100
MAX_ADJUSTMENT = 100

# Replace-color default tolerance
DEFAULT_REPLACE_TOLERANCE = 15

# View modes
VIEW_WHOLE = "whole"
VIEW_ISOLATE = "isolate"
VIEW_RECONSTRUCT = "reconstruct"
VIEW_MODES = (VIEW_WHOLE, VIEW_ISOLATE, VIEW_RECONSTRUCT)

# Tool modes
TOOL_ERASE = "erase"
TOOL_PAINT = "paint"
STROKE_TOOLS = (TOOL_ERASE, TOOL_PAINT)

# Stitch layouts
STITCH_HORIZONTAL = "horizontal"
STITCH_VERTICAL = "vertical"
STITCH_GRID = "grid"
STITCH_LAYOUTS = (STITCH_HORIZONTAL, STITCH_VERTICAL, STITCH_GRID)

# Transform kinds (registry keys)
TRANSFORM_ROTATE = "rotate"
TRANSFORM_FLIP = "flip"
TRANSFORM_CROP = "crop"
TRANSFORM_INVERT = "invert"
TRANSFORM_ADJUST = "adjust"
TRANSFORM_REPLACE_COLOR = "replace_color"

# Export
DEFAULT_OUTPUT_FORMAT = "PNG"
DEFAULT_JPEG_QUALITY = 92
DEFAULT_EXPORT_SCALE = 100
LAYER_FILE_TEMPLATE = "layer-{index}-{name}.png"
RECONSTRUCTED_FILE_TEMPLATE = "reconstructed-{count}-layers.png"
REPORT_FILE_TEMPLATE = "color-report-{timestamp}.csv"
UNSAFE_FILENAME_CHARS = "#/\\?*"

# Color report
REPORT_HEADER = ("Color (Hex)", "R", "G", "B", "Pixel Count", "Percentage")
REPORT_LINE_TERMINATOR = "\r\n"

# Supported file formats
SUPPORTED_STANDARD_IMAGES = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".tiff", ".webp"}
SUPPORTED_SAVE_FORMATS = {"PNG", "JPEG"}

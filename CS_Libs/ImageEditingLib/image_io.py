"""
Image file I/O for Color Separator.

The editing engine only works on RasterBuffer objects. This module is the
collaborator that decodes files into rasters and encodes rasters back into
PNG or JPEG files, using Pillow.

Classes:
    ExportSettings: Output format, JPEG quality and export scale

Functions:
    get_supported_image_formats: Sorted list of loadable file extensions
    is_supported_format: Check a path's extension
    image_to_raster: Convert a PIL Image to a RasterBuffer
    raster_to_image: Convert a RasterBuffer to a PIL RGBA Image
    load_raster: Decode an image file into a RasterBuffer
    save_raster: Encode a RasterBuffer to disk
"""

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
from PIL import Image

from CS_Libs.LayerLib.layer_models import RasterBuffer
from CS_Libs.constants import (
    DEFAULT_EXPORT_SCALE,
    DEFAULT_JPEG_QUALITY,
    DEFAULT_OUTPUT_FORMAT,
    SUPPORTED_SAVE_FORMATS,
    SUPPORTED_STANDARD_IMAGES,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def get_supported_image_formats() -> List[str]:
    """
    Get list of supported image formats.

    Returns:
        List of file extensions (e.g., ['.bmp', '.gif', ...])
    """
    return sorted(SUPPORTED_STANDARD_IMAGES)


def is_supported_format(file_path: PathLike) -> bool:
    """Check if a file path has a supported image extension."""
    return Path(file_path).suffix.lower() in SUPPORTED_STANDARD_IMAGES


@dataclass
class ExportSettings:
    """Settings for encoding exported rasters.

    Attributes:
        save_format: "PNG" or "JPEG" ("JPG" is accepted)
        quality: JPEG quality 1-100
        scale: Export scale in percent (100 = original size)
    """
    save_format: str = DEFAULT_OUTPUT_FORMAT
    quality: int = DEFAULT_JPEG_QUALITY
    scale: float = DEFAULT_EXPORT_SCALE

    def __post_init__(self):
        """Normalize and validate settings."""
        save_format = str(self.save_format).upper()
        if save_format == "JPG":
            save_format = "JPEG"
        if save_format not in SUPPORTED_SAVE_FORMATS:
            raise ValueError(
                f"Unsupported save format: {self.save_format}. "
                f"Use one of {', '.join(sorted(SUPPORTED_SAVE_FORMATS))}"
            )
        self.save_format = save_format
        if self.scale <= 0:
            raise ValueError(f"scale must be > 0, got {self.scale}")

    @property
    def extension(self) -> str:
        return ".jpg" if self.save_format == "JPEG" else ".png"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExportSettings":
        """Create from dictionary."""
        filtered = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**filtered)

    def get_save_kwargs(self) -> Dict[str, Any]:
        """Get PIL Image.save() kwargs based on format."""
        kwargs: Dict[str, Any] = {"format": self.save_format}
        if self.save_format == "JPEG":
            kwargs["quality"] = max(1, min(100, int(self.quality)))
        return kwargs

    def scaled_size(self, width: int, height: int) -> Tuple[int, int]:
        """Output dimensions for the export scale (at least 1x1)."""
        factor = self.scale / 100
        return (
            max(1, int(np.floor(width * factor + 0.5))),
            max(1, int(np.floor(height * factor + 0.5))),
        )


def image_to_raster(image: Any) -> RasterBuffer:
    """Convert a PIL Image (any mode) to an RGBA RasterBuffer."""
    if image.mode != "RGBA":
        image = image.convert("RGBA")
    return RasterBuffer.from_pixels(np.asarray(image, dtype=np.uint8))


def raster_to_image(raster: RasterBuffer) -> Any:
    """Convert a RasterBuffer to a PIL RGBA Image."""
    return Image.fromarray(raster.pixels().copy())


def load_raster(file_path: PathLike) -> RasterBuffer:
    """
    Decode an image file into a RasterBuffer.

    Args:
        file_path: Path to a PNG, JPEG, BMP, GIF, TIFF or WebP file

    Returns:
        RGBA RasterBuffer (the first frame for animated files)

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the extension is not supported
        OSError: If Pillow cannot decode the file
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")
    if not is_supported_format(path):
        raise ValueError(f"Unsupported image format: {path.suffix}")

    with Image.open(path) as img:
        img.load()
        raster = image_to_raster(img)

    logger.info(f"Loaded {path.name} ({raster.width}x{raster.height})")
    return raster


def save_raster(raster: RasterBuffer, file_path: PathLike, settings: Optional[ExportSettings] = None) -> Path:
    """
    Encode a raster to disk.

    JPEG output drops the alpha channel. A scale other than 100% resizes
    with Lanczos resampling.

    Args:
        raster: Raster to save
        file_path: Destination path; parent directories are created
        settings: Export settings (defaults to PNG at 100%)

    Returns:
        Path where the image was saved

    Raises:
        ValueError: If the raster is empty
        OSError: If the file cannot be written
    """
    settings = settings or ExportSettings()
    if raster.pixel_count == 0:
        raise ValueError("Cannot save an empty raster")

    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    image = raster_to_image(raster)
    if settings.scale != 100:
        image = image.resize(settings.scaled_size(raster.width, raster.height), Image.Resampling.LANCZOS)
    if settings.save_format == "JPEG":
        image = image.convert("RGB")

    image.save(path, **settings.get_save_kwargs())
    logger.debug(f"Saved {path} ({image.width}x{image.height}, {settings.save_format})")
    return path

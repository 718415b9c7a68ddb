"""
Pytest configuration and shared fixtures for Color Separator tests.

This module provides small synthetic rasters and layer stacks used across
multiple test modules.
"""

import numpy as np
import pytest

from CS_Libs.LayerLib.layer_models import RasterBuffer
from CS_Libs.LayerLib.layer_stack import LayerStack


def make_split_raster(width=4, height=4, left=(255, 0, 0, 255), right=(0, 0, 255, 255)):
    """Raster whose left half is one color and right half another."""
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[:, : width // 2] = left
    pixels[:, width // 2:] = right
    return RasterBuffer.from_pixels(pixels)


def make_gradient_raster(width=5, height=3):
    """Raster where every pixel has a distinct color."""
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    for y in range(height):
        for x in range(width):
            pixels[y, x] = (x * 40, y * 60, (x + y) * 10, 255)
    return RasterBuffer.from_pixels(pixels)


@pytest.fixture
def temp_project_dir(tmp_path):
    """
    Provide a temporary directory for exported files.

    Args:
        tmp_path: Pytest's built-in temporary directory fixture

    Returns:
        Path object pointing to a temporary directory
    """
    return tmp_path


@pytest.fixture
def sample_rgb_colors():
    """
    Provide a list of sample RGB color tuples for testing.

    Returns:
        List of (R, G, B) tuples with common test colors
    """
    return [
        (255, 0, 0),    # Red
        (0, 255, 0),    # Green
        (0, 0, 255),    # Blue
        (255, 255, 255),  # White
        (0, 0, 0),      # Black
        (128, 128, 128),  # Gray
    ]


@pytest.fixture
def red_raster():
    """4x4 fully opaque red raster."""
    return RasterBuffer.filled(4, 4, (255, 0, 0, 255))


@pytest.fixture
def split_raster():
    """4x4 raster, red on the left half and blue on the right half."""
    return make_split_raster()


@pytest.fixture
def gradient_raster():
    """5x3 raster with a distinct color in every pixel."""
    return make_gradient_raster()


@pytest.fixture
def split_stack():
    """Layer stack for split_raster: red layer on top of a blue layer."""
    stack = LayerStack(4, 4)
    stack.create_layer((255, 0, 0), layer_id="red")
    stack.create_layer((0, 0, 255), layer_id="blue")
    return stack

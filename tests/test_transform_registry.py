"""
Tests for the Transform Registry.

Tests cover:
- Registry creation and basic operations
- Executor registration and lookup
- Geometric and color operations
- Built-in transforms keeping masks and paint congruent with the image
- Error handling
- Singleton pattern
"""

import unittest

import numpy as np

from CS_Libs.ImageEditingLib.transform_registry import (
    TransformRegistry,
    get_default_registry,
    register_default_transforms,
)
from CS_Libs.LayerLib.layer_models import CropRect, DimensionMismatchError, RasterBuffer
from CS_Libs.LayerLib.layer_stack import LayerStack


def make_split_raster():
    pixels = np.empty((4, 4, 4), dtype=np.uint8)
    pixels[:, :2] = (255, 0, 0, 255)
    pixels[:, 2:] = (0, 0, 255, 255)
    return RasterBuffer.from_pixels(pixels)


def identity_transform(image, layers, params):
    return image.copy(), layers.clone()


class TestTransformRegistry(unittest.TestCase):
    """Test TransformRegistry registration and lookup."""

    def setUp(self):
        """Create a fresh registry for each test."""
        self.registry = TransformRegistry()

    def test_registry_creation(self):
        self.assertEqual(self.registry.list_kinds(), [])

    def test_register_and_lookup(self):
        self.registry.register("noop", identity_transform)
        self.assertIs(self.registry.get_executor(" noop "), identity_transform)
        self.assertFalse(self.registry.is_geometric("noop"))

    def test_geometric_flag(self):
        self.registry.register("shift", identity_transform, geometric=True)
        self.assertTrue(self.registry.is_geometric("shift"))

    def test_register_empty_kind_raises_error(self):
        with self.assertRaises(ValueError):
            self.registry.register("  ", identity_transform)

    def test_register_non_callable_raises_error(self):
        with self.assertRaises(ValueError):
            self.registry.register("bad", "not callable")

    def test_duplicate_registration_raises_error(self):
        self.registry.register("noop", identity_transform)
        with self.assertRaises(RuntimeError):
            self.registry.register("noop", identity_transform)

    def test_unknown_kind(self):
        self.registry.register("noop", identity_transform)
        with self.assertRaises(KeyError) as ctx:
            self.registry.get_executor("missing")
        self.assertIn("noop", str(ctx.exception))
        with self.assertRaises(KeyError):
            self.registry.is_geometric("missing")

    def test_execute_checks_dimensions(self):
        self.registry.register("noop", identity_transform)
        image = RasterBuffer.blank(4, 4)
        with self.assertRaises(DimensionMismatchError):
            self.registry.execute("noop", image, LayerStack(3, 3, []))


class TestBuiltInTransforms(unittest.TestCase):
    """Test the default transforms on a split image."""

    def setUp(self):
        self.registry = TransformRegistry()
        register_default_transforms(self.registry)
        self.image = make_split_raster()
        self.layers = LayerStack(4, 4)
        self.layers.create_layer((255, 0, 0), layer_id="red")
        self.layers.create_layer((0, 0, 255), layer_id="blue")

        mask = np.ones(16, dtype=np.uint8)
        mask[0] = 0
        self.layers.replace_mask("red", mask)
        paint = np.zeros(64, dtype=np.uint8)
        paint[3 * 4:3 * 4 + 4] = (0, 255, 0, 255)  # pixel (3, 0)
        self.layers.replace_paint("red", paint)

    def test_default_kinds(self):
        self.assertEqual(
            self.registry.list_kinds(),
            ["adjust", "crop", "flip", "invert", "replace_color", "rotate"],
        )
        geometric = [kind for kind in self.registry.list_kinds() if self.registry.is_geometric(kind)]
        self.assertEqual(geometric, ["crop", "flip", "rotate"])

    def test_rotate_moves_masks_and_paint(self):
        image, layers = self.registry.execute("rotate", self.image, self.layers, {"angle": 90})
        red = layers.get("red")
        # (0, 0) -> (3, 0) and (3, 0) -> (3, 3)
        self.assertEqual(red.mask[3], 0)
        self.assertEqual(int(red.mask.sum()), 15)
        self.assertEqual(tuple(red.paint_data[15 * 4:16 * 4]), (0, 255, 0, 255))
        self.assertEqual(image.pixel_at(3, 0), (255, 0, 0, 255))
        self.assertEqual(image.pixel_at(0, 3), (0, 0, 255, 255))

    def test_inputs_are_not_modified(self):
        before_image = self.image.copy()
        before_mask = self.layers.get("red").mask.copy()
        self.registry.execute("flip", self.image, self.layers, {"horizontal": True})
        self.assertEqual(self.image, before_image)
        self.assertTrue(np.array_equal(self.layers.get("red").mask, before_mask))

    def test_flip(self):
        image, layers = self.registry.execute("flip", self.image, self.layers, {"horizontal": True})
        self.assertEqual(image.pixel_at(0, 0), (0, 0, 255, 255))
        self.assertEqual(layers.get("red").mask[3], 0)
        self.assertEqual(tuple(layers.get("red").paint_data[:4]), (0, 255, 0, 255))

    def test_flip_needs_a_direction(self):
        with self.assertRaises(ValueError):
            self.registry.execute("flip", self.image, self.layers, {})

    def test_crop_with_fields(self):
        image, layers = self.registry.execute(
            "crop", self.image, self.layers, {"x": 0, "y": 0, "width": 2, "height": 4}
        )
        self.assertEqual(image.size, (2, 4))
        self.assertEqual(layers.get("red").mask.size, 8)
        self.assertEqual(layers.get("red").mask[0], 0)
        # Paint at (3, 0) was outside the crop
        self.assertFalse(layers.get("red").paint_data.any())

    def test_crop_with_rect(self):
        image, layers = self.registry.execute("crop", self.image, self.layers, {"rect": CropRect(2, 0, 2, 2)})
        self.assertEqual(image.size, (2, 2))
        self.assertEqual(tuple(layers.get("red").paint_data[4:8]), (0, 255, 0, 255))

    def test_crop_missing_parameter(self):
        with self.assertRaises(KeyError):
            self.registry.execute("crop", self.image, self.layers, {"x": 0, "y": 0, "width": 2})

    def test_invert_keeps_layers(self):
        image, layers = self.registry.execute("invert", self.image, self.layers)
        self.assertEqual(image.pixel_at(0, 0), (0, 255, 255, 255))
        self.assertIsNot(layers, self.layers)
        self.assertEqual(layers.ids, ["red", "blue"])

    def test_adjust_from_values(self):
        image, _ = self.registry.execute("adjust", self.image, self.layers, {"saturation": -100})
        self.assertEqual(image.pixel_at(0, 0), (76, 76, 76, 255))

    def test_replace_color_retargets_layers(self):
        image, layers = self.registry.execute(
            "replace_color",
            self.image,
            self.layers,
            {"from_color": (255, 0, 0), "to_color": (0, 255, 0)},
        )
        self.assertEqual(image.pixel_at(0, 0), (0, 255, 0, 255))
        self.assertEqual(layers.get("red").color, (0, 255, 0))
        self.assertEqual(layers.get("blue").color, (0, 0, 255))
        self.assertEqual(self.layers.get("red").color, (255, 0, 0))

    def test_replace_color_missing_target(self):
        with self.assertRaises(KeyError):
            self.registry.execute("replace_color", self.image, self.layers, {"from_color": (255, 0, 0)})

    def test_invalid_angle(self):
        with self.assertRaises(ValueError):
            self.registry.execute("rotate", self.image, self.layers, {"angle": 45})


class TestDefaultRegistry(unittest.TestCase):
    """Test the singleton default registry."""

    def test_singleton(self):
        self.assertIs(get_default_registry(), get_default_registry())

    def test_has_built_ins(self):
        self.assertIn("rotate", get_default_registry().list_kinds())

"""
Unit tests for the rotate, flip and crop buffer transforms.
"""

import numpy as np
import pytest

from CS_Libs.ImageEditingLib.transform_ops import (
    crop_mask,
    crop_paint,
    crop_raster,
    flip_mask,
    flip_paint,
    flip_raster,
    normalize_rotation,
    rotate_mask,
    rotate_paint,
    rotate_raster,
    rotated_size,
)
from CS_Libs.LayerLib.layer_models import CropRect, DimensionMismatchError, create_full_mask


def numbered_mask(width, height):
    """Mask-shaped array holding its own index so positions can be traced."""
    return np.arange(width * height, dtype=np.uint8)


class TestRotation:
    """Tests for the rotate functions."""

    @pytest.mark.parametrize("angle", [90, -90, 180, 270, -270, -180, "90"])
    def test_accepted_angles(self, angle):
        normalize_rotation(angle)

    @pytest.mark.parametrize("angle", [0, 45, 360, None, "left"])
    def test_rejected_angles(self, angle):
        with pytest.raises(ValueError):
            normalize_rotation(angle)

    def test_rotated_size(self):
        assert rotated_size(5, 3, 90) == (3, 5)
        assert rotated_size(5, 3, -90) == (3, 5)
        assert rotated_size(5, 3, 180) == (5, 3)

    def test_clockwise_pixel_mapping(self, gradient_raster):
        rotated = rotate_raster(gradient_raster, 90)
        assert (rotated.width, rotated.height) == (3, 5)
        for y in range(gradient_raster.height):
            for x in range(gradient_raster.width):
                assert rotated.pixel_at(rotated.width - 1 - y, x) == gradient_raster.pixel_at(x, y)

    def test_quarter_turns_cancel(self, gradient_raster):
        assert rotate_raster(rotate_raster(gradient_raster, 90), -90) == gradient_raster
        assert rotate_raster(rotate_raster(gradient_raster, -90), 90) == gradient_raster

    def test_half_turn_twice_is_identity(self, gradient_raster):
        assert rotate_raster(rotate_raster(gradient_raster, 180), 180) == gradient_raster

    def test_mask_follows_pixels(self, gradient_raster):
        mask = np.zeros(15, dtype=np.uint8)
        mask[1 * 5 + 4] = 1  # pixel (4, 1)
        rotated = rotate_mask(mask, 5, 3, 90)
        rotated_raster = rotate_raster(gradient_raster, 90)

        index = int(np.flatnonzero(rotated)[0])
        x, y = index % 3, index // 3
        assert rotated_raster.pixel_at(x, y) == gradient_raster.pixel_at(4, 1)

    def test_paint_follows_pixels(self, gradient_raster):
        rotated = rotate_paint(gradient_raster.data, 5, 3, -90)
        assert rotated.tolist() == rotate_raster(gradient_raster, -90).data.tolist()

    def test_input_not_modified(self, gradient_raster):
        before = gradient_raster.copy()
        rotate_raster(gradient_raster, 90)
        assert gradient_raster == before

    def test_wrong_mask_length(self):
        with pytest.raises(DimensionMismatchError):
            rotate_mask(np.ones(5, dtype=np.uint8), 2, 2, 90)


class TestFlip:
    """Tests for the flip functions."""

    def test_horizontal_mapping(self, gradient_raster):
        flipped = flip_raster(gradient_raster, horizontal=True)
        assert flipped.pixel_at(0, 0) == gradient_raster.pixel_at(4, 0)
        assert flipped.pixel_at(4, 2) == gradient_raster.pixel_at(0, 2)

    def test_vertical_mapping(self, gradient_raster):
        flipped = flip_raster(gradient_raster, horizontal=False, vertical=True)
        assert flipped.pixel_at(1, 0) == gradient_raster.pixel_at(1, 2)

    @pytest.mark.parametrize("horizontal,vertical", [(True, False), (False, True), (True, True)])
    def test_flip_is_an_involution(self, gradient_raster, horizontal, vertical):
        once = flip_raster(gradient_raster, horizontal, vertical)
        assert flip_raster(once, horizontal, vertical) == gradient_raster

    def test_mask_and_paint_follow_pixels(self, gradient_raster):
        mask = numbered_mask(5, 3)
        flipped = flip_mask(mask, 5, 3, horizontal=True)
        assert flipped.reshape(3, 5)[0].tolist() == [4, 3, 2, 1, 0]
        paint = flip_paint(gradient_raster.data, 5, 3, True, True)
        assert paint.tolist() == flip_raster(gradient_raster, True, True).data.tolist()


class TestCrop:
    """Tests for the crop functions."""

    def test_crop_region(self, gradient_raster):
        cropped = crop_raster(gradient_raster, CropRect(1, 1, 3, 2))
        assert (cropped.width, cropped.height) == (3, 2)
        assert cropped.pixel_at(0, 0) == gradient_raster.pixel_at(1, 1)
        assert cropped.pixel_at(2, 1) == gradient_raster.pixel_at(3, 2)

    def test_full_mask_stays_full(self):
        cropped = crop_mask(create_full_mask(5, 3), 5, CropRect(1, 0, 2, 3))
        assert cropped.tolist() == [1] * 6

    def test_mask_region(self):
        cropped = crop_mask(numbered_mask(5, 3), 5, CropRect(2, 1, 2, 2))
        assert cropped.tolist() == [7, 8, 12, 13]

    def test_paint_region(self, gradient_raster):
        rect = CropRect(0, 1, 5, 1)
        assert crop_paint(gradient_raster.data, 5, 3, rect).tolist() == crop_raster(gradient_raster, rect).data.tolist()

    @pytest.mark.parametrize(
        "rect",
        [CropRect(0, 0, 0, 1), CropRect(0, 0, 6, 1), CropRect(-1, 0, 2, 2), CropRect(4, 2, 2, 1)],
    )
    def test_invalid_rectangles(self, gradient_raster, rect):
        with pytest.raises(ValueError):
            crop_raster(gradient_raster, rect)

    def test_mask_width_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            crop_mask(np.ones(7, dtype=np.uint8), 5, CropRect(0, 0, 1, 1))

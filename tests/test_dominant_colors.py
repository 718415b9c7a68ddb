"""
Unit tests for dominant_colors module.
"""

import numpy as np
import pytest

from CS_Libs.ColorLib.dominant_colors import bucket_center, get_dominant_colors, quantize_channel
from CS_Libs.LayerLib.layer_models import RasterBuffer

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)


def row_raster(*pixels):
    return RasterBuffer.from_pixels(np.array([pixels], dtype=np.uint8))


class TestQuantization:
    """Tests for the quantization helpers."""

    def test_quantize_extremes(self):
        assert quantize_channel([0, 255]).tolist() == [0, 11]

    def test_bucket_centers(self):
        assert bucket_center([0, 11]).tolist() == [11, 244]


class TestGetDominantColors:
    """Tests for get_dominant_colors."""

    def test_solid_red_image(self, red_raster):
        assert get_dominant_colors(red_raster, max_colors=5, sample_step=1) == [(244, 11, 11)]

    def test_default_stride_still_samples_origin(self, red_raster):
        assert get_dominant_colors(red_raster) == [(244, 11, 11)]

    def test_most_frequent_first(self):
        raster = row_raster(BLUE, RED, RED, RED)
        assert get_dominant_colors(raster, sample_step=1) == [(244, 11, 11), (11, 11, 244)]

    def test_ties_keep_first_sampled_order(self):
        raster = row_raster(BLUE, RED, BLUE, RED)
        assert get_dominant_colors(raster, sample_step=1) == [(11, 11, 244), (244, 11, 11)]

    def test_max_colors_limits_result(self):
        raster = row_raster(BLUE, RED, RED, (0, 255, 0, 255))
        assert len(get_dominant_colors(raster, max_colors=2, sample_step=1)) == 2
        assert get_dominant_colors(raster, max_colors=0, sample_step=1) == []

    def test_skips_mostly_transparent_pixels(self):
        raster = row_raster((0, 0, 255, 127), RED)
        assert get_dominant_colors(raster, sample_step=1) == [(244, 11, 11)]

    def test_fully_transparent_image(self):
        raster = RasterBuffer.blank(3, 3)
        assert get_dominant_colors(raster, sample_step=1) == []

    def test_zero_sized_image(self):
        assert get_dominant_colors(RasterBuffer.blank(0, 0)) == []

    def test_similar_colors_share_a_bucket(self):
        raster = row_raster((250, 2, 3, 255), (240, 5, 1, 255))
        assert get_dominant_colors(raster, sample_step=1) == [(244, 11, 11)]

    @pytest.mark.parametrize(
        "kwargs",
        [{"sample_step": 0}, {"levels": 0}, {"max_colors": -1}],
    )
    def test_invalid_arguments(self, red_raster, kwargs):
        with pytest.raises(ValueError):
            get_dominant_colors(red_raster, **kwargs)

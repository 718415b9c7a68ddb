"""
Unit tests for the LayerCompositor view modes.
"""

import numpy as np
import pytest

from CS_Libs.ImageEditingLib.adjust_ops import Adjustments, adjust_raster
from CS_Libs.ImageEditingLib.compositor import LayerCompositor, source_over
from CS_Libs.LayerLib.layer_models import ColorLayer, DimensionMismatchError, RasterBuffer
from CS_Libs.LayerLib.layer_stack import LayerStack
from CS_Libs.constants import VIEW_ISOLATE, VIEW_RECONSTRUCT, VIEW_WHOLE

TRANSPARENT = (0, 0, 0, 0)


@pytest.fixture
def compositor():
    return LayerCompositor()


def paint_at(width, height, index, rgba):
    paint = np.zeros(width * height * 4, dtype=np.uint8)
    paint[index * 4:index * 4 + 4] = rgba
    return paint


class TestSourceOver:
    """Tests for the source_over helper."""

    def test_opaque_source_wins(self):
        dst = (np.array([[10.0, 20.0, 30.0]]), np.array([1.0]))
        src = (np.array([[200.0, 100.0, 0.0]]), np.array([1.0]))
        rgb, alpha = source_over(dst, src)
        assert rgb.tolist() == [[200.0, 100.0, 0.0]]
        assert alpha.tolist() == [1.0]

    def test_transparent_source_keeps_destination(self):
        dst = (np.array([[10.0, 20.0, 30.0]]), np.array([0.25]))
        src = (np.array([[200.0, 100.0, 0.0]]), np.array([0.0]))
        rgb, alpha = source_over(dst, src)
        assert rgb.tolist() == [[10.0, 20.0, 30.0]]
        assert alpha.tolist() == [0.25]

    def test_half_over_transparent(self):
        dst = (np.zeros((1, 3)), np.zeros(1))
        src = (np.array([[255.0, 0.0, 0.0]]), np.array([0.5]))
        rgb, alpha = source_over(dst, src)
        assert rgb.tolist() == [[255.0, 0.0, 0.0]]
        assert alpha.tolist() == [0.5]


class TestIsolate:
    """Tests for isolate mode."""

    def test_reproduces_source_exactly(self, compositor, gradient_raster):
        pixels = gradient_raster.pixels().copy()
        pixels[0, 0, 3] = 128
        source = RasterBuffer.from_pixels(pixels)
        stack = LayerStack(source.width, source.height)
        layer = stack.create_layer((0, 0, 0))
        stack.set_tolerance(layer.id, 100)

        assert compositor.render_isolate(source, layer) == source

    def test_only_matching_kept_pixels(self, compositor, split_raster, split_stack):
        split_stack.replace_mask("blue", np.array([1] * 15 + [0], dtype=np.uint8))
        frame = compositor.render_isolate(split_raster, split_stack.get("blue"))
        assert frame.pixel_at(0, 0) == TRANSPARENT
        assert frame.pixel_at(2, 0) == (0, 0, 255, 255)
        assert frame.pixel_at(3, 3) == TRANSPARENT

    def test_paint_shows_anywhere(self, compositor, split_raster, split_stack):
        split_stack.replace_paint("blue", paint_at(4, 4, 0, (0, 255, 0, 255)))
        frame = compositor.render_isolate(split_raster, split_stack.get("blue"))
        assert frame.pixel_at(0, 0) == (0, 255, 0, 255)

    def test_paint_opacity_scales_paint(self, compositor, split_raster, split_stack):
        split_stack.replace_paint("blue", paint_at(4, 4, 0, (0, 255, 0, 255)))
        frame = compositor.render_isolate(split_raster, split_stack.get("blue"), paint_opacity=50)
        assert frame.pixel_at(0, 0) == (0, 255, 0, 128)

    def test_ignores_visibility(self, compositor, split_raster, split_stack):
        split_stack.set_visible("blue", False)
        frame = compositor.render_isolate(split_raster, split_stack.get("blue"))
        assert frame.pixel_at(3, 0) == (0, 0, 255, 255)


class TestWhole:
    """Tests for whole mode."""

    def test_no_layers_shows_original(self, compositor, gradient_raster):
        assert compositor.render_whole(gradient_raster, []) == gradient_raster

    def test_no_matching_layers_shows_original(self, compositor, gradient_raster):
        pixels = gradient_raster.pixels().copy()
        pixels[1, 1] = (10, 20, 30, 0)
        pixels[2, 2, 3] = 77
        source = RasterBuffer.from_pixels(pixels)
        stack = LayerStack(source.width, source.height)
        stack.create_layer((255, 255, 255)).tolerance = 0
        stack.create_layer((1, 254, 3)).tolerance = 0

        assert compositor.render_whole(source, stack.layers) == source

    def test_full_masks_reproduce_source(self, compositor, split_raster, split_stack):
        assert compositor.render_whole(split_raster, split_stack.layers) == split_raster

    def test_erased_matching_pixels_are_cut_out(self, compositor, split_raster, split_stack):
        mask = np.ones(16, dtype=np.uint8)
        mask[0] = 0
        split_stack.replace_mask("red", mask)
        frame = compositor.render_whole(split_raster, split_stack.layers)
        assert frame.pixel_at(0, 0) == TRANSPARENT
        assert frame.pixel_at(1, 0) == (255, 0, 0, 255)

    def test_hidden_layer_falls_back_to_original(self, compositor, split_raster, split_stack):
        mask = np.ones(16, dtype=np.uint8)
        mask[0] = 0
        split_stack.replace_mask("red", mask)
        split_stack.set_visible("red", False)
        frame = compositor.render_whole(split_raster, split_stack.layers)
        assert frame.pixel_at(0, 0) == (255, 0, 0, 255)

    def test_working_mask_of_active_layer(self, compositor, split_raster, split_stack):
        working = np.zeros(16, dtype=np.uint8)
        frame = compositor.render_whole(
            split_raster, split_stack.layers, active_layer_id="blue", working_mask=working
        )
        assert frame.pixel_at(3, 3) == TRANSPARENT
        assert frame.pixel_at(0, 0) == (255, 0, 0, 255)
        # Committed mask untouched
        assert split_stack.get("blue").mask.tolist() == [1] * 16

    def test_working_overlay_of_active_layer(self, compositor, split_raster, split_stack):
        overlay = paint_at(4, 4, 3, (255, 255, 0, 255))
        frame = compositor.render_whole(
            split_raster, split_stack.layers, active_layer_id="blue", working_overlay=overlay
        )
        assert frame.pixel_at(3, 0) == (255, 255, 0, 255)

    def test_upper_layer_drawn_last(self, compositor):
        source = RasterBuffer.filled(1, 1, (100, 100, 100, 255))
        stack = LayerStack(1, 1)
        top = stack.create_layer((100, 100, 100), layer_id="top")
        bottom = stack.create_layer((100, 100, 100), layer_id="bottom")
        stack.replace_paint("top", np.array([255, 0, 0, 255], dtype=np.uint8))
        stack.replace_paint("bottom", np.array([0, 0, 255, 255], dtype=np.uint8))
        frame = compositor.render_whole(source, [top, bottom])
        assert frame.pixel_at(0, 0) == (255, 0, 0, 255)

    def test_mask_size_mismatch(self, compositor, split_raster):
        layer = ColorLayer(id="bad", color=(255, 0, 0), mask=np.ones(3, dtype=np.uint8))
        with pytest.raises(DimensionMismatchError):
            compositor.render_whole(split_raster, [layer])

    def test_adjustment_preview(self, gradient_raster):
        adjustments = Adjustments(contrast=50, saturation=-20)
        compositor = LayerCompositor(adjustments)
        expected = adjust_raster(gradient_raster, adjustments)
        assert compositor.render_whole(gradient_raster, []) == expected


class TestReconstruct:
    """Tests for reconstruct mode."""

    def test_empty_selection_is_transparent(self, compositor, split_raster, split_stack):
        frame = compositor.render_reconstruct(split_raster, split_stack.layers, [])
        assert frame == RasterBuffer.blank(4, 4)

    def test_selected_layers_only(self, compositor, split_raster, split_stack):
        frame = compositor.render_reconstruct(split_raster, split_stack.layers, {"blue"})
        assert frame.pixel_at(0, 0) == TRANSPARENT
        assert frame.pixel_at(3, 0) == (0, 0, 255, 255)

    def test_visibility_ignored(self, compositor, split_raster, split_stack):
        split_stack.set_visible("blue", False)
        frame = compositor.render_reconstruct(split_raster, split_stack.layers, ["blue", "red"])
        assert frame == split_raster

    def test_paint_at_full_opacity(self, compositor, split_raster, split_stack):
        split_stack.replace_paint("red", paint_at(4, 4, 15, (0, 255, 0, 255)))
        frame = compositor.render_reconstruct(split_raster, split_stack.layers, ["red"])
        assert frame.pixel_at(3, 3) == (0, 255, 0, 255)

    def test_preview_adjusts_the_result_not_the_matching(self):
        source = RasterBuffer.filled(2, 2, (100, 100, 100, 255))
        stack = LayerStack(2, 2)
        layer = stack.create_layer((100, 100, 100))
        compositor = LayerCompositor(Adjustments(brightness=100))

        frame = compositor.render_reconstruct(source, stack.layers, [layer.id])
        assert frame == RasterBuffer.filled(2, 2, (73, 73, 73, 255))


class TestHighlight:
    """Tests for the outline overlay."""

    def test_uniform_full_layer_has_no_edges(self, compositor):
        source = RasterBuffer.filled(5, 5, (255, 0, 0, 255))
        stack = LayerStack(5, 5)
        layer = stack.create_layer((255, 0, 0))
        overlay = compositor.render_highlight(source, layer)
        assert not overlay.data.any()

    def test_hole_outline(self, compositor):
        source = RasterBuffer.filled(5, 5, (255, 0, 0, 255))
        stack = LayerStack(5, 5)
        layer = stack.create_layer((255, 0, 0))
        mask = np.ones(25, dtype=np.uint8)
        mask[2 * 5 + 2] = 0
        stack.replace_mask(layer.id, mask)

        overlay = compositor.render_highlight(source, stack.get(layer.id))
        for x, y in ((1, 2), (3, 2), (2, 1), (2, 3)):
            assert overlay.pixel_at(x, y) == (0, 255, 255, 255)
        for x, y in ((2, 2), (1, 1), (0, 2), (2, 0)):
            assert overlay.pixel_at(x, y) == (0, 255, 255, 180)
        assert overlay.pixel_at(0, 0) == TRANSPARENT


class TestRenderDispatch:
    """Tests for LayerCompositor.render."""

    def test_dispatches_views(self, compositor, split_raster, split_stack):
        whole = compositor.render(VIEW_WHOLE, split_raster, split_stack.layers)
        assert whole == split_raster
        isolate = compositor.render(VIEW_ISOLATE, split_raster, split_stack.layers, active_layer_id="red")
        assert isolate.pixel_at(3, 0) == TRANSPARENT
        recon = compositor.render(VIEW_RECONSTRUCT, split_raster, split_stack.layers, reconstruct_ids=["red"])
        assert recon == isolate

    def test_unknown_view(self, compositor, split_raster, split_stack):
        with pytest.raises(ValueError):
            compositor.render("sideways", split_raster, split_stack.layers)

    def test_isolate_needs_active_layer(self, compositor, split_raster, split_stack):
        with pytest.raises(ValueError):
            compositor.render(VIEW_ISOLATE, split_raster, split_stack.layers)

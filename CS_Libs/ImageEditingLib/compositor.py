"""
Layer compositing for Color Separator.

Renders the three view modes from the original image and the layer stack.
All compositing runs on float64 channel arrays and is rounded half-up to
bytes once at the end.

View modes:
- whole: every visible layer stacked over the image; pixels no visible
  layer matches show the original image
- isolate: only the active layer's kept pixels plus its paint
- reconstruct: a chosen set of layers (in stack order) on transparency,
  regardless of visibility

Example:
    >>> compositor = LayerCompositor()
    >>> frame = compositor.render(VIEW_WHOLE, image, stack.layers)
    >>> outline = compositor.render_highlight(image, stack.get(layer_id))
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
from scipy import ndimage

from CS_Libs.ColorLib.color_utils import match_mask
from CS_Libs.ImageEditingLib.adjust_ops import Adjustments, adjust_raster
from CS_Libs.LayerLib.layer_models import (
    ColorLayer,
    DimensionMismatchError,
    RasterBuffer,
    to_byte_array,
)
from CS_Libs.constants import (
    DEFAULT_PAINT_OPACITY,
    HIGHLIGHT_COLOR,
    HIGHLIGHT_EDGE_ALPHA,
    HIGHLIGHT_HALO_ALPHA,
    VIEW_ISOLATE,
    VIEW_MODES,
    VIEW_RECONSTRUCT,
    VIEW_WHOLE,
)

logger = logging.getLogger(__name__)

# (N, 3) float color channels and (N,) float alpha in 0..1
Planes = Tuple[np.ndarray, np.ndarray]

# 4-connected neighbourhood
_CROSS = ndimage.generate_binary_structure(2, 1)


# ============================================================================
# Pixel math
# ============================================================================

def source_over(dst: Planes, src: Planes) -> Planes:
    """
    Composite ``src`` over ``dst`` (non-premultiplied source-over).

    Where the source alpha is 0 the destination is returned untouched.
    """
    dst_rgb, dst_a = dst
    src_rgb, src_a = src

    out_a = src_a + dst_a * (1.0 - src_a)
    weight_dst = dst_a * (1.0 - src_a)
    numerator = src_rgb * src_a[:, None] + dst_rgb * weight_dst[:, None]

    blend = (src_a > 0) & (out_a > 0)
    safe_a = np.where(blend, out_a, 1.0)
    out_rgb = np.where(blend[:, None], numerator / safe_a[:, None], dst_rgb)
    out_a = np.where(src_a > 0, out_a, dst_a)
    return out_rgb, out_a


def split_planes(data: np.ndarray, alpha_scale: float = 1.0) -> Planes:
    """Split a flat RGBA byte buffer into float color and alpha planes."""
    pixels = np.asarray(data).reshape(-1, 4)
    rgb = pixels[:, :3].astype(np.float64)
    alpha = pixels[:, 3].astype(np.float64) / 255.0 * alpha_scale
    return rgb, alpha


def planes_to_raster(planes: Planes, width: int, height: int) -> RasterBuffer:
    """Round float planes back into an RGBA raster."""
    rgb, alpha = planes
    rgba = np.concatenate([rgb, (alpha * 255.0)[:, None]], axis=1)
    return RasterBuffer(width, height, to_byte_array(rgba).reshape(-1))


def _opacity_factor(paint_opacity: float) -> float:
    return float(min(1.0, max(0.0, paint_opacity / 100.0)))


# ============================================================================
# Compositor
# ============================================================================

class LayerCompositor:
    """
    Renders layer stacks into display or export rasters.

    The compositor is stateless apart from the optional preview
    adjustments. The whole and isolate views apply them to the source image
    before matching; reconstruct applies them to its output.
    """

    def __init__(self, adjustments: Optional[Adjustments] = None):
        self.adjustments = adjustments

    def _prepare_source(self, image: RasterBuffer) -> RasterBuffer:
        if self.adjustments is not None and not self.adjustments.is_identity:
            return adjust_raster(image, self.adjustments)
        return image

    @staticmethod
    def _check_buffer(buffer: Optional[np.ndarray], expected: int, what: str) -> None:
        if buffer is not None and np.asarray(buffer).size != expected:
            raise DimensionMismatchError(f"{what} has {np.asarray(buffer).size} entries, expected {expected}")

    def _layer_planes(
        self,
        src_pixels: np.ndarray,
        src_planes: Planes,
        layer: ColorLayer,
        mask: Optional[np.ndarray],
        paint_buffers: Iterable[Optional[np.ndarray]],
        opacity: float,
    ) -> Tuple[Planes, np.ndarray]:
        """
        Build one layer's contribution.

        Returns:
            The layer planes and the boolean color-match array (before the
            mask is applied)
        """
        count = src_pixels.shape[0]
        self._check_buffer(mask, count, f"Mask of {layer.id}")

        matched = match_mask(src_pixels, layer.color, layer.tolerance) & (src_pixels[:, 3] > 0)
        # No mask yet: only paint contributes
        if mask is None:
            keep = np.zeros(count, dtype=bool)
        else:
            keep = matched & (np.asarray(mask).reshape(-1) == 1)

        src_rgb, src_a = src_planes
        planes = (
            np.where(keep[:, None], src_rgb, 0.0),
            np.where(keep, src_a, 0.0),
        )
        for paint in paint_buffers:
            if paint is None:
                continue
            self._check_buffer(paint, count * 4, f"Paint overlay of {layer.id}")
            planes = source_over(planes, split_planes(paint, opacity))
        return planes, matched

    def render_whole(
        self,
        image: RasterBuffer,
        layers: Sequence[ColorLayer],
        active_layer_id: Optional[str] = None,
        paint_opacity: float = DEFAULT_PAINT_OPACITY,
        working_mask: Optional[np.ndarray] = None,
        working_overlay: Optional[np.ndarray] = None,
    ) -> RasterBuffer:
        """
        Render every visible layer over the original image.

        Layers are drawn bottom to top. A layer's pixels are the source
        pixels that match its color and survive its mask; its committed paint
        and, for the active layer, the in-progress stroke overlay are drawn
        on top at ``paint_opacity`` percent. Pixels matched by no visible
        layer then take the original image underneath.

        Args:
            image: Original image
            layers: Layers in stacking order, top first
            active_layer_id: Layer whose working buffers replace its own
            paint_opacity: Paint opacity in percent
            working_mask: Uncommitted erase mask of the active layer
            working_overlay: Uncommitted paint stroke of the active layer

        Returns:
            Composited RasterBuffer
        """
        source = self._prepare_source(image)
        src_pixels = source.data.reshape(-1, 4)
        src_planes = split_planes(source.data)
        count = src_pixels.shape[0]
        opacity = _opacity_factor(paint_opacity)

        result: Planes = (np.zeros((count, 3)), np.zeros(count))
        matched_any = np.zeros(count, dtype=bool)

        for layer in reversed(list(layers)):
            if not layer.visible:
                continue
            is_active = layer.id == active_layer_id
            mask = working_mask if is_active and working_mask is not None else layer.mask
            if mask is None:
                continue
            paints = [layer.paint_data, working_overlay if is_active else None]
            planes, matched = self._layer_planes(src_pixels, src_planes, layer, mask, paints, opacity)
            matched_any |= matched
            result = source_over(result, planes)

        background = ~matched_any
        if background.any():
            src_rgb, src_a = src_planes
            res_rgb, res_a = result
            bg_rgb, bg_a = source_over(
                (src_rgb[background], src_a[background]),
                (res_rgb[background], res_a[background]),
            )
            res_rgb = res_rgb.copy()
            res_a = res_a.copy()
            res_rgb[background] = bg_rgb
            res_a[background] = bg_a
            result = (res_rgb, res_a)

        return planes_to_raster(result, source.width, source.height)

    def render_isolate(
        self,
        image: RasterBuffer,
        layer: ColorLayer,
        paint_opacity: float = DEFAULT_PAINT_OPACITY,
        working_mask: Optional[np.ndarray] = None,
        working_overlay: Optional[np.ndarray] = None,
    ) -> RasterBuffer:
        """
        Render a single layer on transparency.

        Visibility is ignored; an isolated layer is always shown.
        """
        source = self._prepare_source(image)
        src_pixels = source.data.reshape(-1, 4)
        mask = working_mask if working_mask is not None else layer.mask
        planes, _ = self._layer_planes(
            src_pixels,
            split_planes(source.data),
            layer,
            mask,
            [layer.paint_data, working_overlay],
            _opacity_factor(paint_opacity),
        )
        return planes_to_raster(planes, source.width, source.height)

    def render_reconstruct(
        self,
        image: RasterBuffer,
        layers: Sequence[ColorLayer],
        layer_ids: Iterable[str],
    ) -> RasterBuffer:
        """
        Recombine a chosen set of layers on transparency.

        Selected layers are drawn bottom to top in stack order with paint at
        full opacity. Visibility does not matter. An empty selection gives a
        fully transparent raster.

        Layers are matched against the unadjusted image; preview adjustments
        apply to the recombined result.
        """
        wanted = set(layer_ids)
        selected: List[ColorLayer] = [layer for layer in layers if layer.id in wanted]
        if not selected:
            return RasterBuffer.blank(image.width, image.height)

        src_pixels = image.data.reshape(-1, 4)
        src_planes = split_planes(image.data)
        count = src_pixels.shape[0]

        result: Planes = (np.zeros((count, 3)), np.zeros(count))
        for layer in reversed(selected):
            planes, _ = self._layer_planes(src_pixels, src_planes, layer, layer.mask, [layer.paint_data], 1.0)
            result = source_over(result, planes)

        logger.debug(f"Reconstructed {len(selected)} layers")
        return self._prepare_source(planes_to_raster(result, image.width, image.height))

    def render_highlight(
        self,
        image: RasterBuffer,
        layer: ColorLayer,
        mask: Optional[np.ndarray] = None,
    ) -> RasterBuffer:
        """
        Build an outline overlay around a layer's kept pixels.

        Edge pixels (kept pixels with a non-kept 4-neighbour inside the
        image) are drawn opaque cyan; their 4-neighbours form a translucent
        halo.

        Args:
            image: Original image
            layer: Layer to outline
            mask: Optional mask to use instead of the layer's own

        Returns:
            Overlay RasterBuffer, transparent where nothing is outlined
        """
        if image.pixel_count == 0:
            return RasterBuffer.blank(image.width, image.height)

        source = self._prepare_source(image)
        src_pixels = source.data.reshape(-1, 4)
        mask = layer.mask if mask is None else mask
        self._check_buffer(mask, src_pixels.shape[0], f"Mask of {layer.id}")

        kept = match_mask(src_pixels, layer.color, layer.tolerance) & (src_pixels[:, 3] > 0)
        if mask is not None:
            kept &= np.asarray(mask).reshape(-1) == 1
        kept = kept.reshape(source.height, source.width)

        interior = ndimage.binary_erosion(kept, structure=_CROSS, border_value=1)
        edge = kept & ~interior
        halo = ndimage.binary_dilation(edge, structure=_CROSS)

        overlay = np.zeros((source.height, source.width, 4), dtype=np.uint8)
        overlay[halo] = (*HIGHLIGHT_COLOR, HIGHLIGHT_HALO_ALPHA)
        overlay[edge] = (*HIGHLIGHT_COLOR, HIGHLIGHT_EDGE_ALPHA)
        return RasterBuffer.from_pixels(overlay)

    def render(
        self,
        view: str,
        image: RasterBuffer,
        layers: Sequence[ColorLayer],
        active_layer_id: Optional[str] = None,
        reconstruct_ids: Optional[Iterable[str]] = None,
        paint_opacity: float = DEFAULT_PAINT_OPACITY,
        working_mask: Optional[np.ndarray] = None,
        working_overlay: Optional[np.ndarray] = None,
    ) -> RasterBuffer:
        """
        Render one of the view modes.

        Raises:
            ValueError: For an unknown view, or isolate without an active layer
        """
        if view not in VIEW_MODES:
            raise ValueError(f"Unknown view mode: {view}. Use one of {', '.join(VIEW_MODES)}")

        if view == VIEW_WHOLE:
            return self.render_whole(
                image, layers, active_layer_id, paint_opacity, working_mask, working_overlay
            )
        if view == VIEW_ISOLATE:
            layer = next((l for l in layers if l.id == active_layer_id), None)
            if layer is None:
                raise ValueError("Isolate view needs an active layer")
            return self.render_isolate(image, layer, paint_opacity, working_mask, working_overlay)
        if view == VIEW_RECONSTRUCT:
            return self.render_reconstruct(image, layers, reconstruct_ids or [])
        raise ValueError(f"Unhandled view mode: {view}")

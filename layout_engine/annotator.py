"""
Region annotator — draw MergedRegions back onto the page image.

Per region:
- translucent fill + opaque border (printed vs handwritten colour)
- the region's display text, fitted/wrapped to the box, centred and rotated
  by the region orientation (0° or 90° once snapped)

Drawing and measuring use the same PIL font so the fitted lines really fit.
Set OVERLAY_FONT_PATH to a CJK-capable font (e.g. NotoSansJP-Bold.ttf);
Pillow's bundled default font has no Japanese glyphs.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageColor, ImageDraw

from . import geometry
from .layout_types import FitResult, MergedRegion
from .settings import (
    DEFAULT_BORDER_WIDTH,
    DEFAULT_BOX_ALPHA,
    DEFAULT_HANDWRITTEN_FILL_COLOR,
    DEFAULT_PRINTED_FILL_COLOR,
    DEFAULT_TEXT_COLOR,
    DEFAULT_TEXT_OUTLINE_COLOR,
    env_bool,
    env_float,
    env_str,
)
from .text_fit import FitConfig, PilFontMeasurer, effective_box, fit_region, default_measurer

log = logging.getLogger(__name__)

RGBA = Tuple[int, int, int, int]


@dataclass(frozen=True)
class RenderStyle:
    printed_fill: str = DEFAULT_PRINTED_FILL_COLOR
    handwritten_fill: str = DEFAULT_HANDWRITTEN_FILL_COLOR
    text_color: str = DEFAULT_TEXT_COLOR
    outline_color: str = DEFAULT_TEXT_OUTLINE_COLOR
    box_alpha: float = DEFAULT_BOX_ALPHA
    border_width: int = DEFAULT_BORDER_WIDTH
    orientation_snap: bool = True
    enable_wrap: bool = True

    @classmethod
    def from_env(cls) -> "RenderStyle":
        alpha = env_float("BOX_ALPHA", DEFAULT_BOX_ALPHA)
        if not math.isfinite(alpha):
            alpha = DEFAULT_BOX_ALPHA
        return cls(
            printed_fill=env_str("FILL_PRINTED_COLOR", DEFAULT_PRINTED_FILL_COLOR) or DEFAULT_PRINTED_FILL_COLOR,
            handwritten_fill=env_str("FILL_HANDWRITTEN_COLOR", DEFAULT_HANDWRITTEN_FILL_COLOR) or DEFAULT_HANDWRITTEN_FILL_COLOR,
            text_color=env_str("TEXT_COLOR", DEFAULT_TEXT_COLOR) or DEFAULT_TEXT_COLOR,
            outline_color=env_str("TEXT_OUTLINE_COLOR", DEFAULT_TEXT_OUTLINE_COLOR) or DEFAULT_TEXT_OUTLINE_COLOR,
            box_alpha=max(0.0, min(1.0, alpha)),
            orientation_snap=env_bool("ORIENTATION_SNAP", True),
            enable_wrap=env_bool("DISPLAY_WRAP", True),
        )


def _rgba(color: str, alpha: float = 1.0) -> RGBA:
    r, g, b = ImageColor.getrgb(color)[:3]
    return (r, g, b, int(round(255 * alpha)))


def region_angle(region: MergedRegion, fit_config: FitConfig, style: RenderStyle) -> float:
    if fit_config.force_horizontal:
        return 0.0
    deg = region.orientation_deg
    if deg is None:
        deg = geometry.angle_from_polygon(region.polygon) or 0.0
    return float(geometry.snap_to_0_or_90(deg)) if style.orientation_snap else float(deg)


def _is_drawable(region: MergedRegion) -> bool:
    return region.bbox.width > 0 and region.bbox.height > 0 and len(region.polygon) >= 2


def _text_layer(fit: FitResult, width: float, height: float, measurer: PilFontMeasurer,
                fit_config: FitConfig, style: RenderStyle) -> Image.Image:
    w = max(1, int(math.ceil(width)))
    h = max(1, int(math.ceil(height)))
    layer = Image.new("RGBA", (w, h), (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    font = measurer.font(fit.font_size)

    line_height = fit.font_size * fit_config.line_height_multiplier
    total = line_height * (len(fit.lines) - 1)
    stroke = max(1, int(round(fit.font_size / 20))) if style.outline_color != style.text_color else 0

    for i, line in enumerate(fit.lines):
        y = h / 2.0 + i * line_height - total / 2.0
        draw.text(
            (w / 2.0, y),
            line,
            font=font,
            fill=_rgba(style.text_color),
            anchor="mm",
            stroke_width=stroke,
            stroke_fill=_rgba(style.outline_color),
        )
    return layer


def render_regions(
    image: Image.Image,
    regions: Sequence[MergedRegion],
    *,
    fit_config: Optional[FitConfig] = None,
    style: Optional[RenderStyle] = None,
    measurer: Optional[PilFontMeasurer] = None,
) -> Image.Image:
    """Return a new RGB image with every drawable region annotated."""
    cfg = fit_config or FitConfig.from_env()
    st = style or RenderStyle.from_env()
    measurer = measurer or default_measurer()

    base = image.convert("RGBA")
    boxes = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(boxes)

    drawable: List[MergedRegion] = []
    for idx, region in enumerate(regions):
        if not _is_drawable(region):
            log.warning("[%d] Skipped: invalid bbox or polygon.", idx)
            continue
        drawable.append(region)
        color = st.handwritten_fill if region.is_handwritten else st.printed_fill
        xyxy = region.bbox.as_xyxy()
        draw.rectangle(xyxy, fill=_rgba(color, st.box_alpha))
        draw.rectangle(xyxy, outline=_rgba(color), width=st.border_width)

    out = Image.alpha_composite(base, boxes)

    for idx, region in enumerate(drawable):
        angle = region_angle(region, cfg, st)
        eff_w, eff_h, _ = effective_box(region.bbox, angle)
        fit = fit_region(region, cfg, measure=measurer, wrap=st.enable_wrap, angle=angle)
        if not fit.lines:
            continue

        layer = _text_layer(fit, eff_w, eff_h, measurer, cfg, st)
        if angle:
            # PIL rotates counter-clockwise; orientation is measured clockwise (y-down)
            layer = layer.rotate(-angle, expand=True, resample=Image.BICUBIC)

        cx, cy = geometry.bbox_center(region.bbox)
        pos = (int(round(cx - layer.width / 2.0)), int(round(cy - layer.height / 2.0)))
        out.paste(layer, pos, layer)

        log.debug(
            "[%d] ori=%s° effW=%.1f effH=%.1f font=%dpx lines=%d handwritten=%s text=%r",
            idx, angle, eff_w, eff_h, fit.font_size, len(fit.lines), region.is_handwritten,
            region.display_text[:120],
        )

    log.info("Annotated %d of %d regions.", len(drawable), len(regions))
    return out.convert("RGB")


__all__ = ["RenderStyle", "region_angle", "render_regions"]

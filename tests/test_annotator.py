"""
Annotator smoke tests: boxes are composited in the right colour, rotated text
layers paste without error, degenerate regions are skipped.

Run: python -m pytest tests/test_annotator.py -v
"""

import os
import sys

import pytest
from PIL import Image

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from layout_engine.annotator import RenderStyle, region_angle, render_regions
from layout_engine.geometry import polygon_from_bbox
from layout_engine.layout_types import EMPTY_BBOX, BoundingBox, MergedRegion
from layout_engine.text_fit import FitConfig, PilFontMeasurer, approx_measurer, effective_box, fit_region

WHITE = (255, 255, 255)


@pytest.fixture(autouse=True)
def _no_font_env(monkeypatch):
    monkeypatch.delenv("OVERLAY_FONT_PATH", raising=False)


def _region(text, x1, y1, x2, y2, hw=False, deg=0):
    box = BoundingBox(x1, y1, x2, y2)
    return MergedRegion(
        display_text=text, bbox=box, polygon=polygon_from_bbox(box), is_handwritten=hw, orientation_deg=deg,
    )


def _render(regions, **kw):
    img = Image.new("RGB", (300, 200), WHITE)
    return render_regions(
        img, regions, fit_config=kw.pop("fit_config", FitConfig()), style=kw.pop("style", RenderStyle()),
        measurer=PilFontMeasurer(),
    )


class TestRender:
    def test_border_colours_by_handwriting(self):
        out = _render([_region("", 10, 10, 100, 60), _region("", 150, 10, 250, 60, hw=True)])
        assert out.mode == "RGB"
        assert out.size == (300, 200)
        assert out.getpixel((10, 10)) == (0x19, 0x76, 0xD2)
        assert out.getpixel((150, 10)) == (0x2E, 0x7D, 0x32)
        assert out.getpixel((5, 150)) == WHITE

    def test_fill_is_translucent(self):
        out = _render([_region("", 10, 10, 100, 60)])
        inside = out.getpixel((55, 35))
        assert inside != WHITE
        assert inside != (0x19, 0x76, 0xD2)

    def test_text_and_rotation(self):
        regions = [_region("Hello", 10, 10, 200, 60), _region("Vertical", 220, 10, 260, 190, deg=90)]
        out = _render(regions)
        assert out.size == (300, 200)

    def test_degenerate_region_skipped(self):
        degenerate = MergedRegion(display_text="x", bbox=EMPTY_BBOX, polygon=())
        out = _render([degenerate])
        assert out.getpixel((0, 0)) == WHITE

    def test_input_image_untouched(self):
        img = Image.new("RGB", (50, 50), WHITE)
        render_regions(img, [_region("", 0, 0, 40, 40)], fit_config=FitConfig(), style=RenderStyle(),
                       measurer=PilFontMeasurer())
        assert img.getpixel((0, 0)) == WHITE


class TestAngle:
    def test_force_horizontal(self):
        r = _region("x", 0, 0, 10, 100, deg=90)
        assert region_angle(r, FitConfig(force_horizontal=True), RenderStyle()) == 0.0
        assert region_angle(r, FitConfig(), RenderStyle()) == 90.0

    def test_unsnapped_angle_fits_the_drawn_box(self):
        r = _region("店舗名称住所", 0, 0, 40, 400, deg=80)
        cfg = FitConfig()
        angle = region_angle(r, cfg, RenderStyle())
        assert angle == 90.0

        eff_w, eff_h, _ = effective_box(r.bbox, angle)
        measure = approx_measurer()
        fit = fit_region(r, cfg, measure=measure, angle=angle)
        assert len(fit.lines) * fit.font_size * cfg.line_height_multiplier <= eff_h
        assert all(measure(line, fit.font_size) <= eff_w for line in fit.lines)

    def test_unsnapped_region_renders(self):
        img = Image.new("RGB", (300, 450), WHITE)
        out = render_regions(img, [_region("店舗名称住所", 100, 20, 140, 420, deg=80)],
                             fit_config=FitConfig(), style=RenderStyle(), measurer=PilFontMeasurer())
        assert out.size == (300, 450)

    def test_style_from_env(self, monkeypatch):
        monkeypatch.setenv("BOX_ALPHA", "4")
        monkeypatch.setenv("FILL_PRINTED_COLOR", "#FF0000")
        monkeypatch.setenv("DISPLAY_WRAP", "false")
        st = RenderStyle.from_env()
        assert st.box_alpha == 1.0
        assert st.printed_fill == "#FF0000"
        assert st.enable_wrap is False

"""
Text-fit / wrap engine — largest font size whose wrapped text fits a box.

Search walks down from max_font_size in steps of 2 and stops at the first size
where the wrapped lines fit both dimensions (and the optional line cap). If no
size fits, min_font_size is used with its lines truncated to max_lines, so the
search always terminates in (max - min) / 2 + 1 steps.

Wrapping is script-aware:
- CJK: one character at a time, break anywhere.
- Latin: whole words, break only at whitespace.

Width measurement is pluggable (text, font_size) -> px. The default measures
with a PIL font (OVERLAY_FONT_PATH, else Pillow's bundled default font);
approx_measurer() gives a font-free estimate for headless runs and tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from PIL import ImageFont

from .layout_types import BoundingBox, FitResult, MergedRegion, ScriptKind
from .script_utils import count_cjk_chars, script_kind
from .settings import (
    DEFAULT_FILL_RATIO,
    DEFAULT_LINE_HEIGHT_MULT,
    DEFAULT_MAX_FONT_SIZE,
    DEFAULT_MAX_LINES,
    DEFAULT_MIN_FONT_SIZE,
    FONT_STEP,
    env_bool,
    env_float,
    env_int,
    env_str,
)

log = logging.getLogger(__name__)

Measurer = Callable[[str, int], float]


class FitConfigError(ValueError):
    """Invalid fit configuration (caller programming error)."""


# =============================
# Config
# =============================

@dataclass(frozen=True)
class FitConfig:
    max_font_size: int = DEFAULT_MAX_FONT_SIZE
    min_font_size: int = DEFAULT_MIN_FONT_SIZE
    fill_ratio: float = DEFAULT_FILL_RATIO
    line_height_multiplier: float = DEFAULT_LINE_HEIGHT_MULT
    max_lines: int = DEFAULT_MAX_LINES   # 0 → unlimited
    force_horizontal: bool = False

    def __post_init__(self) -> None:
        if self.min_font_size > self.max_font_size:
            raise FitConfigError(
                f"min_font_size ({self.min_font_size}) > max_font_size ({self.max_font_size})"
            )
        if self.min_font_size < 1:
            raise FitConfigError(f"min_font_size must be >= 1, got {self.min_font_size}")

    @property
    def line_limit(self) -> Optional[int]:
        return self.max_lines if self.max_lines > 0 else None

    @classmethod
    def from_env(cls, **overrides: object) -> "FitConfig":
        values: Dict[str, object] = {
            "max_font_size": env_int("MAX_FONT_SIZE", DEFAULT_MAX_FONT_SIZE),
            "min_font_size": env_int("MIN_FONT_SIZE", DEFAULT_MIN_FONT_SIZE),
            "fill_ratio": env_float("FILL_RATIO", DEFAULT_FILL_RATIO),
            "line_height_multiplier": env_float("WRAP_LINE_HEIGHT_MULT", DEFAULT_LINE_HEIGHT_MULT),
            "max_lines": env_int("WRAP_MAX_LINES", DEFAULT_MAX_LINES),
            "force_horizontal": env_bool("DISPLAY_FORCE_HORIZONTAL", False),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)  # type: ignore[arg-type]


# =============================
# Measurers
# =============================

class PilFontMeasurer:
    """Measures advance width with a PIL font; fonts are cached per size."""

    def __init__(self, font_path: Optional[str] = None) -> None:
        self.font_path = font_path or env_str("OVERLAY_FONT_PATH")
        self._fonts: Dict[int, ImageFont.FreeTypeFont] = {}

    def font(self, size: int):
        f = self._fonts.get(size)
        if f is None:
            if self.font_path:
                f = ImageFont.truetype(self.font_path, size)
            else:
                f = ImageFont.load_default(size=size)
            self._fonts[size] = f
        return f

    def __call__(self, text: str, font_size: int) -> float:
        return float(self.font(font_size).getlength(text))


def approx_measurer(latin_em: float = 0.6, cjk_em: float = 1.0) -> Measurer:
    """Font-free width estimate: CJK glyphs are full-width, everything else latin_em."""

    def measure(text: str, font_size: int) -> float:
        n_cjk = count_cjk_chars(text)
        n_other = len(text) - n_cjk
        return float(font_size) * (n_cjk * cjk_em + n_other * latin_em)

    return measure


_default_measurer: Optional[PilFontMeasurer] = None


def default_measurer() -> PilFontMeasurer:
    global _default_measurer
    if _default_measurer is None:
        _default_measurer = PilFontMeasurer()
    return _default_measurer


# =============================
# Wrapping
# =============================

def wrap_lines(
    text: str,
    font_size: int,
    max_width: float,
    measure: Measurer,
    kind: Optional[ScriptKind] = None,
) -> List[str]:
    """
    Greedy wrap at one font size. A unit wider than max_width on its own still
    gets its own line (never an empty line before it).
    """
    if kind is None:
        kind = script_kind(text)

    if kind is ScriptKind.CJK:
        units = list(text)
        joiner = ""
    else:
        units = text.split()
        joiner = " "

    lines: List[str] = []
    current = ""
    for unit in units:
        trial = f"{current}{joiner}{unit}" if current else unit
        if measure(trial, font_size) <= max_width:
            current = trial
            continue
        if current.strip():
            lines.append(current.strip())
        current = "" if unit.isspace() else unit

    if current.strip():
        lines.append(current.strip())
    return lines


def _font_sizes(cfg: FitConfig):
    size = cfg.max_font_size
    while size >= cfg.min_font_size:
        yield size
        size -= FONT_STEP


def wrap_text_to_box(
    text: str,
    box_width: float,
    box_height: float,
    config: Optional[FitConfig] = None,
    *,
    measure: Optional[Measurer] = None,
) -> FitResult:
    """
    Largest font size (max → min, step 2) whose wrapped lines satisfy:
      - at least one line
      - lines * size * line_height_multiplier <= box_height * fill_ratio
      - line count <= max_lines (when max_lines > 0)
    wrapping at box_width * fill_ratio. A single word or character wider than
    that still occupies its own line.

    Falls back to min_font_size, truncated to max_lines.
    """
    cfg = config or FitConfig()
    measure = measure or default_measurer()
    body = (text or "").strip()
    kind = script_kind(body)
    limit = cfg.line_limit

    max_width = box_width * cfg.fill_ratio
    max_height = box_height * cfg.fill_ratio

    for size in _font_sizes(cfg):
        lines = wrap_lines(body, size, max_width, measure, kind)
        total_height = len(lines) * size * cfg.line_height_multiplier
        if lines and total_height <= max_height and (limit is None or len(lines) <= limit):
            return FitResult(font_size=size, lines=tuple(lines))

    lines = wrap_lines(body, cfg.min_font_size, max_width, measure, kind)
    if limit is not None:
        lines = lines[:limit]
    return FitResult(font_size=cfg.min_font_size, lines=tuple(lines))


def fit_single_line(
    text: str,
    box_width: float,
    box_height: float,
    config: Optional[FitConfig] = None,
    *,
    measure: Optional[Measurer] = None,
) -> FitResult:
    """No wrapping: largest size whose one-line width and line height fit the box."""
    cfg = config or FitConfig()
    measure = measure or default_measurer()
    body = (text or "").strip()

    target_w = box_width * cfg.fill_ratio
    target_h = box_height * cfg.fill_ratio

    chosen = cfg.min_font_size
    for size in _font_sizes(cfg):
        if measure(body, size) <= target_w and size * cfg.line_height_multiplier <= target_h:
            chosen = size
            break
    return FitResult(font_size=chosen, lines=(body,) if body else ())


# =============================
# Region helpers
# =============================

def effective_box(bbox: BoundingBox, orientation_deg: float, force_horizontal: bool = False) -> Tuple[float, float, float]:
    """
    (width, height, angle) text should flow in. At 90° the box's height is the
    line length, so width/height are swapped.
    """
    angle = 0.0 if force_horizontal else float(orientation_deg or 0.0)
    w, h = bbox.width, bbox.height
    if round(angle) % 180 == 90:
        w, h = h, w
    return w, h, angle


def fit_region(
    region: MergedRegion,
    config: Optional[FitConfig] = None,
    *,
    measure: Optional[Measurer] = None,
    wrap: bool = True,
    angle: Optional[float] = None,
) -> FitResult:
    """Fit the region text to its box. `angle` overrides the region orientation (e.g. a snapped draw angle)."""
    cfg = config or FitConfig()
    deg = region.orientation_deg if angle is None else angle
    w, h, _ = effective_box(region.bbox, deg, cfg.force_horizontal)
    if wrap:
        result = wrap_text_to_box(region.display_text, w, h, cfg, measure=measure)
    else:
        result = fit_single_line(region.display_text, w, h, cfg, measure=measure)
    log.debug(
        "Fit region effW=%.1f effH=%.1f → %dpx, %d lines",
        w, h, result.font_size, len(result.lines),
    )
    return result


__all__ = [
    "Measurer",
    "FitConfigError",
    "FitConfig",
    "PilFontMeasurer",
    "approx_measurer",
    "default_measurer",
    "wrap_lines",
    "wrap_text_to_box",
    "fit_single_line",
    "effective_box",
    "fit_region",
]

"""
Local read provider — Tesseract word boxes → read RawLines.

Stands in for the remote read model when it is unavailable (offline runs,
tests against real scans). Words are grouped by Tesseract's own
(block, paragraph, line) numbering, so no geometric line clustering is needed.

Env:
  TESSERACT_CMD     explicit tesseract binary
  TESSERACT_LANG    default "jpn+eng"
  TESSERACT_CONFIG  default "--oem 1 --psm 6"
"""

from __future__ import annotations

import logging
import os
from typing import Dict, List, Optional, Tuple

import pytesseract
from PIL import Image

from .geometry import polygon_from_bbox
from .layout_types import BoundingBox, RawLine
from .settings import env_str

log = logging.getLogger(__name__)

LOW_CONF_DROP = 30.0
DEFAULT_LANG = "jpn+eng"
DEFAULT_CONFIG = "--oem 1 --psm 6"

_LineKey = Tuple[int, int, int]


# =============================
# Tesseract
# =============================

def configure_tesseract_from_env() -> None:
    cmd = os.environ.get("TESSERACT_CMD")
    if cmd and os.path.isfile(cmd):
        pytesseract.pytesseract.tesseract_cmd = cmd


def check_tesseract() -> dict:
    try:
        configure_tesseract_from_env()
        ver = pytesseract.get_tesseract_version()
        return {"found_on_disk": True, "version": str(ver)}
    except Exception as e:
        return {"found_on_disk": False, "version": None, "error": str(e)}


# =============================
# image_to_data → lines
# =============================

def _word_box(data: Dict[str, List], i: int) -> Optional[BoundingBox]:
    try:
        x = float(data["left"][i])
        y = float(data["top"][i])
        w = float(data["width"][i])
        h = float(data["height"][i])
    except (KeyError, IndexError, TypeError, ValueError):
        return None
    # skip 0/1-pixel ghost words
    if w <= 1 or h <= 1:
        return None
    return BoundingBox(x, y, x + w, y + h)


def lines_from_tesseract_data(
    data: Dict[str, List],
    *,
    page_index: int = 0,
    conf_floor: float = LOW_CONF_DROP,
) -> List[RawLine]:
    """
    Group image_to_data word rows into lines. Words keep Tesseract's
    left-to-right order; lines come out in first-seen order.
    """
    texts = data.get("text") or []
    grouped: Dict[_LineKey, List[Tuple[str, BoundingBox]]] = {}
    order: List[_LineKey] = []

    for i, raw in enumerate(texts):
        word = (raw or "").strip()
        if not word:
            continue
        try:
            conf = float(data["conf"][i])
        except (KeyError, IndexError, TypeError, ValueError):
            conf = -1.0
        if conf < conf_floor:
            continue
        box = _word_box(data, i)
        if box is None:
            continue

        key = (int(data["block_num"][i]), int(data["par_num"][i]), int(data["line_num"][i]))
        if key not in grouped:
            grouped[key] = []
            order.append(key)
        grouped[key].append((word, box))

    lines: List[RawLine] = []
    for key in order:
        words = grouped[key]
        box = BoundingBox(
            min(b.min_x for _, b in words),
            min(b.min_y for _, b in words),
            max(b.max_x for _, b in words),
            max(b.max_y for _, b in words),
        )
        lines.append(
            RawLine(
                text=" ".join(w for w, _ in words),
                bbox=box,
                polygon=polygon_from_bbox(box),
                page_index=page_index,
            )
        )
    return lines


def read_lines_from_image(
    img: Image.Image,
    *,
    page_index: int = 0,
    lang: Optional[str] = None,
    config: Optional[str] = None,
) -> List[RawLine]:
    configure_tesseract_from_env()
    lang = lang or env_str("TESSERACT_LANG", DEFAULT_LANG)
    config = config or env_str("TESSERACT_CONFIG", DEFAULT_CONFIG)

    data = pytesseract.image_to_data(
        img,
        lang=lang,
        config=config,
        output_type=pytesseract.Output.DICT,
    )
    lines = lines_from_tesseract_data(data, page_index=page_index)
    log.info("Tesseract read (%s): page %d → %d lines", lang, page_index, len(lines))
    return lines


__all__ = [
    "configure_tesseract_from_env",
    "check_tesseract",
    "lines_from_tesseract_data",
    "read_lines_from_image",
]

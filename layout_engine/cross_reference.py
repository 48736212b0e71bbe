"""
Cross-reference matcher — layout lines ↔ read (OCR) lines.

For every layout line, every read line whose box IoU exceeds the threshold is
kept as a candidate transcription. Layout lines with no match keep their
layout text.

Matched read texts stay in read order (page scan order). That is not always
left-to-right reading order when the two analyses order lines differently.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from . import geometry
from .handwriting import collect_handwritten_spans, is_line_handwritten
from .layout_types import RawLine, StructuredLine, StyleSpan
from .settings import DEFAULT_IOU_THRESHOLD

log = logging.getLogger(__name__)


def match_read_lines(layout_line: RawLine, read_lines: Sequence[RawLine], iou_threshold: float) -> List[RawLine]:
    return [r for r in read_lines if geometry.iou(layout_line.bbox, r.bbox) > iou_threshold]


def cross_reference_lines(
    layout_lines: Sequence[RawLine],
    read_lines: Sequence[RawLine],
    style_spans: Sequence[StyleSpan] = (),
    *,
    iou_threshold: float = DEFAULT_IOU_THRESHOLD,
) -> List[StructuredLine]:
    """
    One StructuredLine per layout line, in input order. Inputs are not mutated.
    """
    handwritten = collect_handwritten_spans(style_spans)
    out: List[StructuredLine] = []
    matched_count = 0

    for idx, ln in enumerate(layout_lines):
        matches = match_read_lines(ln, read_lines, iou_threshold)
        if matches:
            matched_count += 1
        out.append(
            StructuredLine(
                layout_text=ln.text,
                matched_ocr_texts=tuple(r.text for r in matches),
                bbox=ln.bbox,
                polygon=ln.polygon,
                is_handwritten=is_line_handwritten(ln.spans, handwritten),
                page_index=ln.page_index,
                line_index=idx,
            )
        )

    log.info(
        "Cross-referenced %d layout lines against %d read lines (IoU > %s): %d matched, %d layout-only",
        len(layout_lines), len(read_lines), iou_threshold, matched_count, len(layout_lines) - matched_count,
    )
    return out


def authoritative_text(line: StructuredLine) -> str:
    """Read text wins whenever any read line matched; layout text otherwise."""
    ocr = " ".join(line.matched_ocr_texts).strip()
    if ocr:
        return ocr
    return (line.layout_text or "").strip()


__all__ = ["match_read_lines", "cross_reference_lines", "authoritative_text"]

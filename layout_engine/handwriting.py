"""
Handwriting detection via layout style spans.

Style spans are independent of lines, so a line is matched to them by
character-offset overlap, never by identity.
"""

from __future__ import annotations

from typing import Iterable, List, Protocol, Sequence

from .layout_types import StyleSpan


class _Interval(Protocol):
    offset: int
    length: int


def spans_overlap(a: _Interval, b: _Interval) -> bool:
    """Half-open interval overlap: max(starts) < min(ends)."""
    a_start, a_end = a.offset, a.offset + a.length
    b_start, b_end = b.offset, b.offset + b.length
    return max(a_start, b_start) < min(a_end, b_end)


def is_line_handwritten(line_spans: Sequence[_Interval], style_spans: Sequence[_Interval]) -> bool:
    if not line_spans or not style_spans:
        return False
    for ls in line_spans:
        for hs in style_spans:
            if spans_overlap(ls, hs):
                return True
    return False


def collect_handwritten_spans(style_spans: Iterable[StyleSpan]) -> List[StyleSpan]:
    return [s for s in style_spans if s.is_handwritten]


__all__ = ["spans_overlap", "is_line_handwritten", "collect_handwritten_spans"]

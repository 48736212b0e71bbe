"""
Layout Engine Types — geometry primitives and reconciliation records.

Two layers live here:
- Input DTOs adapted from the document-understanding service (RawLine, StyleSpan,
  TableCellGeometry, PageAnalysis). Nothing downstream sees the service's own
  field names; di_adapter.py is the only place that knows them.
- Engine records (StructuredLine, MergedRegion, FitResult) produced by the
  cross-reference / grouping / merge / fit stages.

All records are frozen dataclasses. Stages build new records instead of
mutating inputs.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Tuple


# ────────────────────────────────────────────────
# 🧩 Geometry primitives
# ────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class Point:
    x: float
    y: float


Polygon = Tuple[Point, ...]


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """
    Axis-aligned box in image pixel space.

    min_x <= max_x and min_y <= max_y always hold. A zero-area box is valid
    and overlaps nothing.
    """
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return max(0.0, self.max_x - self.min_x)

    @property
    def height(self) -> float:
        return max(0.0, self.max_y - self.min_y)

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)


EMPTY_BBOX = BoundingBox(0.0, 0.0, 0.0, 0.0)


# ────────────────────────────────────────────────
# 🔤 Service-side inputs (DTO boundary)
# ────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class TextSpan:
    """Character interval (offset, length) into a page's text stream."""
    offset: int
    length: int


@dataclass(frozen=True, slots=True)
class StyleSpan:
    """A run of characters the layout analysis styled (e.g. handwritten)."""
    offset: int
    length: int
    is_handwritten: bool = True


@dataclass(frozen=True, slots=True)
class RawLine:
    """
    One transcribed line from either the layout or the read analysis.

    spans are only present on layout lines; read lines carry none.
    """
    text: str
    bbox: BoundingBox
    polygon: Polygon
    spans: Tuple[TextSpan, ...] = ()
    page_index: int = 0


@dataclass(frozen=True, slots=True)
class TableCellGeometry:
    row_index: int
    column_index: int
    polygon: Polygon
    table_index: int = 0
    page_index: int = 0


@dataclass(frozen=True, slots=True)
class PageAnalysis:
    """
    Both analyses for one page, already adapted to engine types.
    Reconciliation needs the whole bundle; partial pages are not defined.
    """
    page_index: int
    layout_lines: Tuple[RawLine, ...] = ()
    read_lines: Tuple[RawLine, ...] = ()
    style_spans: Tuple[StyleSpan, ...] = ()
    table_cells: Tuple[TableCellGeometry, ...] = ()
    width: Optional[float] = None
    height: Optional[float] = None
    unit: Optional[str] = None


# ────────────────────────────────────────────────
# 🧠 Engine records
# ────────────────────────────────────────────────

class ScriptKind(enum.Enum):
    CJK = "cjk"
    LATIN = "latin"


@dataclass(frozen=True, slots=True)
class StructuredLine:
    """
    One layout line enriched with the read lines that overlap it.
    Created by the cross-reference matcher, consumed once by the grouper.
    """
    layout_text: str
    matched_ocr_texts: Tuple[str, ...]
    bbox: BoundingBox
    polygon: Polygon
    is_handwritten: bool = False
    page_index: int = 0
    line_index: int = 0

    @property
    def has_geometry(self) -> bool:
        return len(self.polygon) > 0


CellRef = Tuple[int, int, int]  # (table_index, row_index, column_index)


@dataclass(frozen=True, slots=True)
class MergedRegion:
    """
    Final reconciled unit: one authoritative string, one box, one orientation.
    """
    display_text: str
    bbox: BoundingBox
    polygon: Polygon
    orientation_deg: float = 0.0
    is_handwritten: bool = False
    page_index: int = 0
    layout_text: str = ""
    line_count: int = 0
    cell: Optional[CellRef] = None


@dataclass(frozen=True, slots=True)
class FitResult:
    font_size: int
    lines: Tuple[str, ...]


__all__ = [
    "Point",
    "Polygon",
    "BoundingBox",
    "EMPTY_BBOX",
    "TextSpan",
    "StyleSpan",
    "RawLine",
    "TableCellGeometry",
    "PageAnalysis",
    "ScriptKind",
    "StructuredLine",
    "CellRef",
    "MergedRegion",
    "FitResult",
]

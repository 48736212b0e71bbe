"""
Document Intelligence adapter — analyzeResult JSON → PageAnalysis.

This is the only module that knows the service's field names
(content / polygon / spans / tables[].cells[].boundingRegions / styles[].isHandwritten).
Any OCR/layout provider that can be mapped to RawLine / StyleSpan /
TableCellGeometry works with the rest of the engine.

Accepted polygon shapes:
- [{"x": .., "y": ..}, ...]        (SDK form)
- [x0, y0, x1, y1, ...]            (REST form)
- [[x0, y0], [x1, y1], ...]
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .geometry import bbox_from_polygon
from .layout_types import PageAnalysis, Point, Polygon, RawLine, StyleSpan, TableCellGeometry, TextSpan

log = logging.getLogger(__name__)


def _unwrap(result: Any, label: str) -> Mapping[str, Any]:
    """Accept either the analyzeResult itself or the operation envelope around it."""
    if not isinstance(result, Mapping):
        raise ValueError(f"{label} result must be an object, got {type(result).__name__}")
    inner = result.get("analyzeResult")
    if isinstance(inner, Mapping):
        result = inner
    pages = result.get("pages")
    if pages is not None and not isinstance(pages, list):
        raise ValueError(f"{label} result 'pages' must be a list")
    return result


def polygon_from_service(raw: Any, scale: float = 1.0) -> Polygon:
    if not raw:
        return ()
    if isinstance(raw[0], Mapping):
        pts = [(p.get("x", 0.0), p.get("y", 0.0)) for p in raw]
    elif isinstance(raw[0], (list, tuple)):
        pts = [(p[0], p[1]) for p in raw if len(p) >= 2]
    else:
        pts = [(raw[i], raw[i + 1]) for i in range(0, len(raw) - 1, 2)]
    return tuple(Point(float(x) * scale, float(y) * scale) for x, y in pts)


def _spans(raw: Any) -> Tuple[TextSpan, ...]:
    out: List[TextSpan] = []
    for s in raw or []:
        try:
            out.append(TextSpan(int(s.get("offset", 0)), int(s.get("length", 0))))
        except (AttributeError, TypeError, ValueError):
            continue
    return tuple(out)


def _page_lines(page: Mapping[str, Any], page_index: int, *, with_spans: bool, scale: float = 1.0) -> Tuple[RawLine, ...]:
    out: List[RawLine] = []
    for ln in page.get("lines") or []:
        poly = polygon_from_service(ln.get("polygon"), scale)
        out.append(
            RawLine(
                text=str(ln.get("content") or ""),
                bbox=bbox_from_polygon(poly),
                polygon=poly,
                spans=_spans(ln.get("spans")) if with_spans else (),
                page_index=page_index,
            )
        )
    return tuple(out)


def _scaled(v: Any, scale: float) -> Optional[float]:
    if v is None:
        return None
    return float(v) * scale


def _page_number(page: Mapping[str, Any], fallback_index: int) -> int:
    try:
        return int(page.get("pageNumber", fallback_index + 1))
    except (TypeError, ValueError):
        return fallback_index + 1


def style_spans_from_result(result: Mapping[str, Any]) -> Tuple[StyleSpan, ...]:
    """Flatten every handwritten style's spans."""
    out: List[StyleSpan] = []
    for st in result.get("styles") or []:
        if not st or not st.get("isHandwritten"):
            continue
        for sp in _spans(st.get("spans")):
            out.append(StyleSpan(sp.offset, sp.length, True))
    return tuple(out)


def table_cells_from_result(result: Mapping[str, Any], scale: float = 1.0) -> Dict[int, List[TableCellGeometry]]:
    """Cells keyed by 1-based page number of their first bounding region."""
    by_page: Dict[int, List[TableCellGeometry]] = {}
    for t_idx, table in enumerate(result.get("tables") or []):
        for cell in table.get("cells") or []:
            regions = cell.get("boundingRegions") or []
            region = regions[0] if regions else {}
            page_number = int(region.get("pageNumber", 1) or 1)
            by_page.setdefault(page_number, []).append(
                TableCellGeometry(
                    row_index=int(cell.get("rowIndex", 0)),
                    column_index=int(cell.get("columnIndex", 0)),
                    polygon=polygon_from_service(region.get("polygon"), scale),
                    table_index=t_idx,
                    page_index=page_number - 1,
                )
            )
    return by_page


def pages_from_results(
    layout_result: Any,
    read_result: Optional[Any] = None,
    *,
    scale: float = 1.0,
) -> List[PageAnalysis]:
    """
    Pair layout and read pages by page number. Read pages without a layout
    counterpart are ignored (nothing to reconcile them against).

    scale multiplies every coordinate; PDFs are reported in inches, so pass the
    raster DPI to land in the same pixel space as the grouping thresholds.
    """
    layout = _unwrap(layout_result, "layout")
    read = _unwrap(read_result, "read") if read_result is not None else {}

    style_spans = style_spans_from_result(layout)
    cells_by_page = table_cells_from_result(layout, scale)

    read_by_number: Dict[int, Mapping[str, Any]] = {}
    for r_idx, rp in enumerate(read.get("pages") or []):
        read_by_number[_page_number(rp, r_idx)] = rp

    pages: List[PageAnalysis] = []
    for p_idx, lp in enumerate(layout.get("pages") or []):
        number = _page_number(lp, p_idx)
        page_index = number - 1
        rp = read_by_number.get(number, {})
        pages.append(
            PageAnalysis(
                page_index=page_index,
                layout_lines=_page_lines(lp, page_index, with_spans=True, scale=scale),
                read_lines=_page_lines(rp, page_index, with_spans=False, scale=scale),
                style_spans=style_spans,
                table_cells=tuple(cells_by_page.get(number, [])),
                width=_scaled(lp.get("width"), scale),
                height=_scaled(lp.get("height"), scale),
                unit=lp.get("unit"),
            )
        )

    log.info(
        "Adapted %d layout pages (%d read pages, %d handwritten spans, %d tables)",
        len(pages), len(read_by_number), len(style_spans), len(layout.get("tables") or []),
    )
    return pages


__all__ = [
    "polygon_from_service",
    "style_spans_from_result",
    "table_cells_from_result",
    "pages_from_results",
]

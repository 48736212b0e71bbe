"""
Region export — JSON payload + Excel workbook.

JSON: metadata (counts), regions (full), summary (first few text samples).
Excel: a "Regions" sheet (one row per region) and one grid sheet per detected
table, rebuilt from each cell region's (row, column).
"""

from __future__ import annotations

import io
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font

from .layout_types import FitResult, MergedRegion
from .reconcile_pipeline import summarize_regions

SAMPLE_COUNT = 5
SAMPLE_CHARS = 100


def region_to_dict(region: MergedRegion, fit: Optional[FitResult] = None) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "displayText": region.display_text,
        "layoutText": region.layout_text,
        "bbox": [round(v, 2) for v in region.bbox.as_xyxy()],
        "polygon": [{"x": p.x, "y": p.y} for p in region.polygon],
        "orientationDeg": region.orientation_deg,
        "isHandwritten": region.is_handwritten,
        "pageIndex": region.page_index,
        "lineCount": region.line_count,
    }
    if region.cell is not None:
        t, r, c = region.cell
        d["cell"] = {"tableIndex": t, "rowIndex": r, "columnIndex": c}
    if fit is not None:
        d["fit"] = {"fontSize": fit.font_size, "lines": list(fit.lines)}
    return d


def _snippet(text: str) -> str:
    if len(text) > SAMPLE_CHARS:
        return text[:SAMPLE_CHARS] + "..."
    return text


def regions_payload(
    regions: Sequence[MergedRegion],
    *,
    source_name: Optional[str] = None,
    fits: Optional[Sequence[FitResult]] = None,
) -> Dict[str, Any]:
    if fits is not None and len(fits) != len(regions):
        raise ValueError("fits must align 1:1 with regions")

    counts = summarize_regions(regions)
    return {
        "metadata": {
            "sourceName": source_name,
            "processedDate": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "totalTextRegions": counts["total"],
            "handwrittenRegions": counts["handwritten"],
            "printedRegions": counts["printed"],
            "tableCellRegions": counts["table_cells"],
        },
        "regions": [
            region_to_dict(r, fits[i] if fits is not None else None) for i, r in enumerate(regions)
        ],
        "summary": {
            "extractedTextSample": [
                {
                    "regionIndex": i,
                    "text": _snippet(r.display_text),
                    "isHandwritten": r.is_handwritten,
                    "boundingBox": [round(v, 2) for v in r.bbox.as_xyxy()],
                    "orientation": r.orientation_deg,
                }
                for i, r in enumerate(regions[:SAMPLE_COUNT])
            ]
        },
    }


# =============================
# Excel
# =============================

def table_grids(regions: Sequence[MergedRegion]) -> Dict[Tuple[int, int], List[List[str]]]:
    """(page_index, table_index) → row-major grid of display texts."""
    cells: Dict[Tuple[int, int], Dict[Tuple[int, int], str]] = {}
    for r in regions:
        if r.cell is None:
            continue
        t, row, col = r.cell
        cells.setdefault((r.page_index, t), {})[(row, col)] = r.display_text

    grids: Dict[Tuple[int, int], List[List[str]]] = {}
    for key, by_pos in cells.items():
        n_rows = max(row for row, _ in by_pos) + 1
        n_cols = max(col for _, col in by_pos) + 1
        grid = [["" for _ in range(n_cols)] for _ in range(n_rows)]
        for (row, col), text in by_pos.items():
            grid[row][col] = text
        grids[key] = grid
    return grids


def regions_workbook(regions: Sequence[MergedRegion]) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.title = "Regions"

    headers = ["page", "text", "handwritten", "orientation", "x1", "y1", "x2", "y2", "table", "row", "column"]
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for r in regions:
        x1, y1, x2, y2 = r.bbox.as_xyxy()
        t, row, col = r.cell if r.cell is not None else ("", "", "")
        ws.append([
            r.page_index + 1,
            r.display_text,
            "yes" if r.is_handwritten else "no",
            r.orientation_deg,
            round(x1, 1), round(y1, 1), round(x2, 1), round(y2, 1),
            t, row, col,
        ])
    ws.column_dimensions["B"].width = 60

    for (page_index, table_index), grid in sorted(table_grids(regions).items()):
        sheet = wb.create_sheet(title=f"P{page_index + 1} Table {table_index + 1}"[:31])
        for row in grid:
            sheet.append(row)
        for row_cells in sheet.iter_rows():
            for c in row_cells:
                c.alignment = Alignment(wrap_text=True, vertical="top")

    return wb


def workbook_bytes(wb: Workbook) -> bytes:
    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()


__all__ = [
    "region_to_dict",
    "regions_payload",
    "table_grids",
    "regions_workbook",
    "workbook_bytes",
]

"""
Region grouper — StructuredLine list → groups of line indices.

Two strategies, chosen by table presence:
- Table cells: every unused line whose box overlaps a cell's box joins that cell.
  Cells are ground truth and are not second-guessed.
- Adjacency fallback: for pages without tables, and for lines left over after
  the cell pass (titles, headers, footers outside the table).

Consumed lines are tracked in an explicit index set that the cell pass hands to
the fallback pass. It is scoped to one call and never shared across pages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Sequence, Set, Tuple

from . import geometry
from .layout_types import BoundingBox, StructuredLine, TableCellGeometry
from .settings import DEFAULT_X_THRESHOLD, DEFAULT_Y_THRESHOLD

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LineGroup:
    """Indices into the page's StructuredLine list, plus the cell they fell in (if any)."""
    members: Tuple[int, ...]
    cell: Optional[TableCellGeometry] = None


# =============================
# Table-cell strategy
# =============================

def _cell_order_key(cell: TableCellGeometry) -> Tuple[int, int, int]:
    return (cell.table_index, cell.row_index, cell.column_index)


def group_by_table_cells(
    lines: Sequence[StructuredLine],
    cells: Sequence[TableCellGeometry],
    consumed: FrozenSet[int] = frozenset(),
) -> Tuple[List[LineGroup], FrozenSet[int]]:
    """
    Assign lines to cells (row-major). Returns the groups and the updated
    consumed-index set; the input set is left untouched.
    """
    used: Set[int] = set(consumed)
    groups: List[LineGroup] = []

    for cell in sorted(cells, key=_cell_order_key):
        if not cell.polygon:
            log.warning(
                "Table %d cell (%d,%d): missing polygon, skipped.",
                cell.table_index, cell.row_index, cell.column_index,
            )
            continue
        cell_box = geometry.bbox_from_polygon(cell.polygon)

        members = tuple(
            i for i, ln in enumerate(lines)
            if i not in used and geometry.overlaps(ln.bbox, cell_box)
        )
        if not members:
            continue

        used.update(members)
        groups.append(LineGroup(members=members, cell=cell))
        log.debug(
            "Table %d cell (%d,%d): grouped %d lines",
            cell.table_index, cell.row_index, cell.column_index, len(members),
        )

    log.info("Grouped by table cells: %d groups from %d cells", len(groups), len(cells))
    return groups, frozenset(used)


# =============================
# Adjacency fallback
# =============================

def horizontally_aligned(a: BoundingBox, b: BoundingBox, tol_px: float) -> bool:
    """Left-edge OR right-edge OR center alignment within tolerance."""
    left_aligned = abs(a.min_x - b.min_x) < tol_px
    right_aligned = abs(a.max_x - b.max_x) < tol_px
    ca, _ = geometry.bbox_center(a)
    cb, _ = geometry.bbox_center(b)
    center_aligned = abs(ca - cb) < tol_px
    return left_aligned or right_aligned or center_aligned


def group_by_adjacency(
    lines: Sequence[StructuredLine],
    *,
    exclude: FrozenSet[int] = frozenset(),
    y_threshold: float = DEFAULT_Y_THRESHOLD,
    x_threshold: float = DEFAULT_X_THRESHOLD,
) -> List[LineGroup]:
    """
    Walk lines top→bottom; a line joins the running cluster iff its gap below the
    cluster's last line is under y_threshold and it is aligned with that line.

    Lines without geometry cannot be placed spatially; each becomes its own
    group after the clusters so nothing is dropped.
    """
    candidates = [i for i in range(len(lines)) if i not in exclude]
    placed = [i for i in candidates if lines[i].has_geometry]
    unplaced = [i for i in candidates if not lines[i].has_geometry]

    placed.sort(key=lambda i: (lines[i].bbox.min_y, lines[i].bbox.min_x))

    groups: List[LineGroup] = []
    cur: List[int] = []

    def flush() -> None:
        nonlocal cur
        if cur:
            groups.append(LineGroup(members=tuple(cur)))
            cur = []

    for i in placed:
        if not cur:
            cur = [i]
            continue

        prev = lines[cur[-1]].bbox
        b = lines[i].bbox
        gap_y = b.min_y - prev.max_y

        if gap_y < y_threshold and horizontally_aligned(prev, b, x_threshold):
            cur.append(i)
        else:
            flush()
            cur = [i]

    flush()

    for i in unplaced:
        groups.append(LineGroup(members=(i,)))

    log.info(
        "Fallback grouping (y<%s, x<%s): %d lines → %d groups (%d without geometry)",
        y_threshold, x_threshold, len(candidates), len(groups), len(unplaced),
    )
    return groups


# =============================
# Combined
# =============================

def group_page_lines(
    lines: Sequence[StructuredLine],
    cells: Sequence[TableCellGeometry] = (),
    *,
    y_threshold: float = DEFAULT_Y_THRESHOLD,
    x_threshold: float = DEFAULT_X_THRESHOLD,
) -> List[LineGroup]:
    """
    Table cells first (if any), then leftovers through the adjacency fallback.
    Every line ends up in exactly one group.
    """
    if not lines:
        return []

    if not cells:
        log.info("No tables detected; grouping %d lines by adjacency.", len(lines))
        return group_by_adjacency(lines, y_threshold=y_threshold, x_threshold=x_threshold)

    cell_groups, consumed = group_by_table_cells(lines, cells)
    log.info("Leftover lines outside tables: %d", len(lines) - len(consumed))

    leftover_groups: List[LineGroup] = []
    if len(consumed) < len(lines):
        leftover_groups = group_by_adjacency(
            lines, exclude=consumed, y_threshold=y_threshold, x_threshold=x_threshold,
        )
    return cell_groups + leftover_groups


__all__ = [
    "LineGroup",
    "group_by_table_cells",
    "horizontally_aligned",
    "group_by_adjacency",
    "group_page_lines",
]

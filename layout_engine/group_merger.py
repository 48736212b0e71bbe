"""
Group merger — collapse each LineGroup into one MergedRegion.

- displayText: newline-join of each member's authoritative text, re-normalized
  against the script of the whole group (not of each member).
- bbox: union of member boxes.
- orientation: snapped median of member first-edge angles (0° if none known).
- handwriting: any handwritten member marks the region.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from . import geometry
from .cross_reference import authoritative_text
from .layout_types import EMPTY_BBOX, CellRef, MergedRegion, Polygon, StructuredLine
from .region_grouper import LineGroup
from .script_utils import normalize_display_text

log = logging.getLogger(__name__)


def merge_lines(
    members: Sequence[StructuredLine],
    *,
    polygon: Optional[Polygon] = None,
    cell_ref: Optional[CellRef] = None,
) -> MergedRegion:
    joined = "\n".join(authoritative_text(m) for m in members)
    display_text = normalize_display_text(joined)

    boxes = [m.bbox for m in members if m.has_geometry]
    bbox = geometry.union_bbox(boxes) or EMPTY_BBOX

    orientation = geometry.representative_angle(
        geometry.angle_from_polygon(m.polygon) for m in members
    )
    is_hw = any(m.is_handwritten for m in members)

    if polygon is None:
        polygon = members[0].polygon if members else ()

    return MergedRegion(
        display_text=display_text,
        bbox=bbox,
        polygon=polygon,
        orientation_deg=orientation,
        is_handwritten=is_hw,
        page_index=members[0].page_index if members else 0,
        layout_text="\n".join(m.layout_text for m in members),
        line_count=len(members),
        cell=cell_ref,
    )


def merge_groups(lines: Sequence[StructuredLine], groups: Sequence[LineGroup]) -> List[MergedRegion]:
    out: List[MergedRegion] = []
    for gi, grp in enumerate(groups):
        members = [lines[i] for i in grp.members]
        if not members:
            continue
        if grp.cell is not None:
            region = merge_lines(
                members,
                polygon=grp.cell.polygon,
                cell_ref=(grp.cell.table_index, grp.cell.row_index, grp.cell.column_index),
            )
        else:
            region = merge_lines(members)
        out.append(region)
        log.debug(
            "Group #%d: %d lines, bbox=%s, ori=%s°, handwritten=%s",
            gi, len(members), tuple(round(v, 1) for v in region.bbox.as_xyxy()),
            region.orientation_deg, region.is_handwritten,
        )

    log.info("Merged %d groups into %d regions.", len(groups), len(out))
    return out


__all__ = ["merge_lines", "merge_groups"]

# layout_engine/reconcile_pipeline.py
"""
Layout reconciliation pipeline — one page of layout + read analysis → MergedRegion list.

Stages (each a pure function over immutable inputs):
1. cross_reference_lines(): layout lines ↔ read lines by IoU, handwriting flags
2. group_page_lines():      table cells first, adjacency fallback for leftovers
3. merge_groups():          one MergedRegion per group

Pages never share state, so reconcile_document() may fan pages out to a
thread pool; output order always follows page order.

Output order within a page: table cells row-major, then leftover clusters
top-to-bottom.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .cross_reference import cross_reference_lines
from .group_merger import merge_groups
from .layout_types import MergedRegion, PageAnalysis
from .region_grouper import group_page_lines
from .settings import (
    DEFAULT_IOU_THRESHOLD,
    DEFAULT_X_THRESHOLD,
    DEFAULT_Y_THRESHOLD,
    env_float,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileConfig:
    iou_threshold: float = DEFAULT_IOU_THRESHOLD
    y_threshold: float = DEFAULT_Y_THRESHOLD
    x_threshold: float = DEFAULT_X_THRESHOLD

    @classmethod
    def from_env(cls) -> "ReconcileConfig":
        return cls(
            iou_threshold=env_float("RECONCILE_IOU_THRESHOLD", DEFAULT_IOU_THRESHOLD),
            y_threshold=env_float("GROUP_Y_THRESHOLD", DEFAULT_Y_THRESHOLD),
            x_threshold=env_float("GROUP_X_THRESHOLD", DEFAULT_X_THRESHOLD),
        )


def reconcile_page(page: PageAnalysis, config: Optional[ReconcileConfig] = None) -> List[MergedRegion]:
    """
    Reconcile one page. A page with no layout lines yields [] (valid, not a fault).
    """
    cfg = config or ReconcileConfig()
    t0 = time.perf_counter()

    if not page.layout_lines:
        log.info("Page %d: no layout lines; nothing to reconcile.", page.page_index)
        return []

    structured = cross_reference_lines(
        page.layout_lines,
        page.read_lines,
        page.style_spans,
        iou_threshold=cfg.iou_threshold,
    )
    groups = group_page_lines(
        structured,
        page.table_cells,
        y_threshold=cfg.y_threshold,
        x_threshold=cfg.x_threshold,
    )
    regions = merge_groups(structured, groups)

    log.info(
        "Page %d: %d layout lines, %d read lines, %d cells → %d regions (%.1f ms)",
        page.page_index, len(page.layout_lines), len(page.read_lines), len(page.table_cells),
        len(regions), (time.perf_counter() - t0) * 1000.0,
    )
    return regions


def reconcile_document(
    pages: Sequence[PageAnalysis],
    config: Optional[ReconcileConfig] = None,
    *,
    max_workers: Optional[int] = None,
) -> List[List[MergedRegion]]:
    """Reconcile pages independently; result[i] belongs to pages[i]."""
    cfg = config or ReconcileConfig()
    if not pages:
        return []
    if not max_workers or max_workers <= 1 or len(pages) == 1:
        return [reconcile_page(p, cfg) for p in pages]

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(lambda p: reconcile_page(p, cfg), pages))


def summarize_regions(regions: Sequence[MergedRegion]) -> Dict[str, int]:
    hw = sum(1 for r in regions if r.is_handwritten)
    return {
        "total": len(regions),
        "handwritten": hw,
        "printed": len(regions) - hw,
        "table_cells": sum(1 for r in regions if r.cell is not None),
        "rotated": sum(1 for r in regions if round(r.orientation_deg) % 180 == 90),
    }


__all__ = ["ReconcileConfig", "reconcile_page", "reconcile_document", "summarize_regions"]

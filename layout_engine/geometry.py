"""
Layout Engine Geometry — polygon/box helpers shared by every reconciliation stage.

- Polygon → axis-aligned bounding box
- Intersection / IoU / strict overlap
- First-edge orientation + median + 0°/90° snapping

All functions are total over well-formed input: missing geometry gives None or
an empty box instead of raising.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence, Tuple

from .layout_types import EMPTY_BBOX, BoundingBox, Point, Polygon


# =============================
# Polygon → box
# =============================

def bbox_from_polygon(polygon: Sequence[Point]) -> BoundingBox:
    """Min/max reduction over all points. Empty polygon → EMPTY_BBOX."""
    if not polygon:
        return EMPTY_BBOX
    xs = [float(p.x) for p in polygon]
    ys = [float(p.y) for p in polygon]
    return BoundingBox(min(xs), min(ys), max(xs), max(ys))


def polygon_from_bbox(box: BoundingBox) -> Polygon:
    """Clockwise quad starting top-left (first edge points along +x)."""
    return (
        Point(box.min_x, box.min_y),
        Point(box.max_x, box.min_y),
        Point(box.max_x, box.max_y),
        Point(box.min_x, box.max_y),
    )


def bbox_area(box: BoundingBox) -> float:
    return box.width * box.height


def bbox_center(box: BoundingBox) -> Tuple[float, float]:
    return ((box.min_x + box.max_x) / 2.0, (box.min_y + box.max_y) / 2.0)


def union_bbox(boxes: Iterable[BoundingBox]) -> Optional[BoundingBox]:
    b: Optional[BoundingBox] = None
    for box in boxes:
        if b is None:
            b = box
            continue
        b = BoundingBox(
            min(b.min_x, box.min_x),
            min(b.min_y, box.min_y),
            max(b.max_x, box.max_x),
            max(b.max_y, box.max_y),
        )
    return b


# =============================
# Overlap tests
# =============================

def intersection_area(a: BoundingBox, b: BoundingBox) -> float:
    x1 = max(a.min_x, b.min_x)
    y1 = max(a.min_y, b.min_y)
    x2 = min(a.max_x, b.max_x)
    y2 = min(a.max_y, b.max_y)
    if x2 <= x1 or y2 <= y1:
        return 0.0
    return (x2 - x1) * (y2 - y1)


def iou(a: BoundingBox, b: BoundingBox) -> float:
    """Intersection-over-Union in [0, 1]; 0 when the union has no area."""
    inter = intersection_area(a, b)
    if inter <= 0:
        return 0.0
    union = bbox_area(a) + bbox_area(b) - inter
    if union <= 0:
        return 0.0
    return min(1.0, inter / union)


def overlaps(a: BoundingBox, b: BoundingBox) -> bool:
    """True iff the intersection has positive area (touching edges do not count)."""
    return intersection_area(a, b) > 0


# =============================
# Orientation
# =============================

def _reduce_180(deg: float) -> float:
    d = deg % 180.0
    # -1e-17 % 180 rounds up to 180.0
    if d >= 180.0:
        d -= 180.0
    return d


def angle_from_polygon(polygon: Sequence[Point]) -> Optional[float]:
    """Angle of the first edge (point 0 → point 1) in degrees, reduced into [0, 180)."""
    if not polygon or len(polygon) < 2:
        return None
    dx = float(polygon[1].x) - float(polygon[0].x)
    dy = float(polygon[1].y) - float(polygon[0].y)
    deg = math.degrees(math.atan2(dy, dx))
    return _reduce_180(deg)


def median(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    vals = sorted(float(v) for v in values)
    n = len(vals)
    mid = n // 2
    if n % 2:
        return vals[mid]
    return (vals[mid - 1] + vals[mid]) / 2.0


def snap_to_0_or_90(angle_deg: Optional[float]) -> int:
    """
    Snap to whichever of 0°/90° is angularly closer; ties go to 0°.
    None/NaN → 0.
    """
    if angle_deg is None or math.isnan(angle_deg):
        return 0
    deg = _reduce_180(float(angle_deg))
    d0 = min(deg, 180.0 - deg)
    d90 = abs(90.0 - deg)
    return 0 if d0 <= d90 else 90


def representative_angle(angles: Iterable[Optional[float]]) -> int:
    """Snapped median of the known angles; 0 when none are known."""
    known: List[float] = [a for a in angles if a is not None and math.isfinite(a)]
    return snap_to_0_or_90(median(known))


__all__ = [
    "bbox_from_polygon",
    "polygon_from_bbox",
    "bbox_area",
    "bbox_center",
    "union_bbox",
    "intersection_area",
    "iou",
    "overlaps",
    "angle_from_polygon",
    "median",
    "snap_to_0_or_90",
    "representative_angle",
]

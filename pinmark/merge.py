"""Detect freehand strokes drawn over existing ones and merge them.

A new stroke that passes within `threshold` of a finished stroke on the
same page is treated as a continuation of it (a circle drawn in two
strokes, an arrow head drawn after its shaft). Merging always needs an
explicit confirmation.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .models import (
    AnnotationStore, FINAL_COLOR, LIFT, Lift, Point, Stroke, StrokeEntry,
    split_subpaths,
)
from .simplify import simplify_stroke_points

logger = logging.getLogger(__name__)

ConfirmMerge = Callable[[int], bool]


@dataclass
class Overlap:
    target_stroke: Stroke
    should_merge: bool


@dataclass
class BoundingBox:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    def separated_from(self, other: "BoundingBox", threshold: float) -> bool:
        return (self.max_x + threshold < other.min_x
                or other.max_x + threshold < self.min_x
                or self.max_y + threshold < other.min_y
                or other.max_y + threshold < self.min_y)


def bounding_box(points: Sequence[StrokeEntry]) -> Optional[BoundingBox]:
    real = [p for p in points if not isinstance(p, Lift)]
    if not real:
        return None
    return BoundingBox(
        min_x=min(p.x for p in real),
        min_y=min(p.y for p in real),
        max_x=max(p.x for p in real),
        max_y=max(p.y for p in real),
    )


def point_segment_distance(p: Point, a: Point, b: Point) -> float:
    dx = b.x - a.x
    dy = b.y - a.y
    if dx == 0 and dy == 0:
        return math.hypot(p.x - a.x, p.y - a.y)
    t = ((p.x - a.x) * dx + (p.y - a.y) * dy) / (dx * dx + dy * dy)
    t = max(0.0, min(1.0, t))
    return math.hypot(p.x - (a.x + t * dx), p.y - (a.y + t * dy))


def _segments(points: Sequence[StrokeEntry]) -> list[tuple[Point, Point]]:
    segments = []
    for subpath in split_subpaths(list(points)):
        if len(subpath) == 1:
            # a lone point behaves as a zero-length segment
            segments.append((subpath[0], subpath[0]))
            continue
        for i in range(len(subpath) - 1):
            segments.append((subpath[i], subpath[i + 1]))
    return segments


def polyline_distance(a: Sequence[StrokeEntry], b: Sequence[StrokeEntry]) -> float:
    """Approximate minimum distance between two polylines.

    For every pair of segments the endpoints of each are measured against
    the other segment. Strokes are densely sampled, so skipping true
    segment-segment intersection is acceptable.
    """
    min_d = math.inf
    segs_b = _segments(b)
    for a1, a2 in _segments(a):
        for b1, b2 in segs_b:
            d = min(
                point_segment_distance(a1, b1, b2),
                point_segment_distance(a2, b1, b2),
                point_segment_distance(b1, a1, a2),
                point_segment_distance(b2, a1, a2),
            )
            if d < min_d:
                min_d = d
                if min_d == 0:
                    return 0.0
    return min_d


def find_overlaps(candidate: Stroke, existing: Sequence[Stroke],
                  threshold: float = 0.0,
                  confirm: Optional[ConfirmMerge] = None) -> list[Overlap]:
    """Find finished strokes on the candidate's page within `threshold`.

    `confirm` is asked once with the number of overlapping strokes; its
    answer is shared by every returned entry. Without it nothing merges.
    """
    candidate_box = bounding_box(candidate.points)
    if candidate_box is None:
        return []

    threshold = max(0.0, threshold)
    same_page = [
        s for s in existing
        if s.page_number == candidate.page_number
        and not s.is_draft
        and s.id != candidate.id
        and s.real_points()
    ]

    found: list[Stroke] = []
    for stroke in same_page:
        box = bounding_box(stroke.points)
        if candidate_box.separated_from(box, threshold):
            continue
        if polyline_distance(candidate.points, stroke.points) <= threshold:
            found.append(stroke)

    if not found:
        return []

    should_merge = bool(confirm(len(found))) if confirm is not None else False
    logger.debug(f"Stroke on page {candidate.page_number} overlaps {len(found)} "
                 f"stroke(s), merge={should_merge}")
    return [Overlap(target_stroke=s, should_merge=should_merge) for s in found]


def merge_point_lists(point_lists: Sequence[Sequence[StrokeEntry]],
                      connect_threshold: float = 1.0) -> list[StrokeEntry]:
    """Join sub-paths, lifting the pen across gaps wider than the threshold."""
    merged: list[StrokeEntry] = []
    for points in point_lists:
        points = list(points)
        if not merged:
            merged = points
            continue
        last = next((p for p in reversed(merged) if not isinstance(p, Lift)), None)
        first = next((p for p in points if not isinstance(p, Lift)), None)
        if last is not None and first is not None:
            gap = math.hypot(last.x - first.x, last.y - first.y)
        else:
            gap = math.inf
        if gap > connect_threshold:
            merged.append(LIFT)
        merged.extend(points)
    return merged


def merge_strokes(store: AnnotationStore, overlaps: Sequence[Overlap],
                  new_points: Sequence[StrokeEntry],
                  simplify_tolerance: float = 1.0,
                  connect_threshold: float = 1.0,
                  final_color: str = FINAL_COLOR) -> Stroke:
    """Fold the overlapping strokes and the new points into one stroke.

    The first overlap is kept and updated in place; the others are deleted.
    """
    if not overlaps:
        raise ValueError("Nothing to merge")

    main = overlaps[0].target_stroke
    others = [o.target_stroke for o in overlaps[1:]
              if o.target_stroke.id != main.id]

    sources = [main.points] + [s.points for s in others] + [list(new_points)]
    simplified = [simplify_stroke_points(pts, simplify_tolerance) for pts in sources]
    merged = merge_point_lists(simplified, connect_threshold)

    for stroke in others:
        store.delete_stroke(stroke.id)

    logger.info(f"Merged {len(others) + 1} stroke(s) into {main.id}")
    return store.update_stroke(
        main.id,
        points=merged,
        color=final_color,
        is_draft=False,
    )

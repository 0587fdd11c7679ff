"""Douglas-Peucker simplification of freehand point sequences."""

import math
from typing import Sequence

from .models import LIFT, Point, StrokeEntry, split_subpaths


def perpendicular_distance(point: Point, start: Point, end: Point) -> float:
    """Distance from `point` to the segment `start`-`end`.

    The projection is clamped to the segment, so a zero-length segment
    degrades to the plain distance between two points.
    """
    a = point.x - start.x
    b = point.y - start.y
    c = end.x - start.x
    d = end.y - start.y

    len_sq = c * c + d * d
    if len_sq == 0:
        return math.hypot(a, b)

    param = (a * c + b * d) / len_sq
    if param < 0:
        xx, yy = start.x, start.y
    elif param > 1:
        xx, yy = end.x, end.y
    else:
        xx = start.x + param * c
        yy = start.y + param * d

    return math.hypot(point.x - xx, point.y - yy)


def _douglas_peucker(points: Sequence[Point], epsilon: float) -> list[Point]:
    if len(points) <= 2:
        return list(points)

    start = points[0]
    end = points[-1]
    max_distance = 0.0
    max_index = 0
    for i in range(1, len(points) - 1):
        distance = perpendicular_distance(points[i], start, end)
        if distance > max_distance:
            max_distance = distance
            max_index = i

    if max_distance > epsilon:
        left = _douglas_peucker(points[:max_index + 1], epsilon)
        right = _douglas_peucker(points[max_index:], epsilon)
        return left[:-1] + right
    return [start, end]


def simplify_path(points: Sequence[Point], tolerance: float = 5.0) -> list[Point]:
    """Reduce a polyline to the subsequence that keeps its shape.

    `tolerance` is in the same unit as the points. The first and last
    points are always kept.
    """
    points = [p if isinstance(p, Point) else Point(*p) for p in points]
    return _douglas_peucker(points, tolerance)


def simplify_stroke_points(points: Sequence[StrokeEntry],
                           tolerance: float) -> list[StrokeEntry]:
    """Simplify each lifted sub-path of a stroke independently."""
    result: list[StrokeEntry] = []
    for subpath in split_subpaths(list(points)):
        if result:
            result.append(LIFT)
        result.extend(simplify_path(subpath, tolerance))
    return result

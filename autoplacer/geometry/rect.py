"""
Axis-aligned rectangle and point helpers.

All coordinates in mm.  A rectangle is an ``(x0, y0, x1, y1)`` tuple with
``x0 <= x1`` and ``y0 <= y1`` — the same layout as shapely's ``bounds``.
"""

from __future__ import annotations

import math
from typing import Iterable

Point = tuple[float, float]
Rect = tuple[float, float, float, float]

# Exact sin/cos for the quarter turns the placer tries, so rotated
# coordinates stay on the grid instead of drifting by 1e-16.
_QUARTER_TURNS = {0: (1.0, 0.0), 90: (0.0, 1.0), 180: (-1.0, 0.0), 270: (0.0, -1.0)}


# ── points ──────────────────────────────────────────────────────────


def rotate_point(p: Point, angle_deg: float) -> Point:
    """Rotate *p* counter-clockwise around the origin."""
    angle = angle_deg % 360
    key = round(angle)
    if abs(angle - key) < 1e-9 and key % 360 in _QUARTER_TURNS:
        cos_a, sin_a = _QUARTER_TURNS[key % 360]
    else:
        rad = math.radians(angle)
        cos_a, sin_a = math.cos(rad), math.sin(rad)
    x, y = p
    return (x * cos_a - y * sin_a, x * sin_a + y * cos_a)


def add_points(a: Point, b: Point) -> Point:
    return (a[0] + b[0], a[1] + b[1])


# ── rectangles ──────────────────────────────────────────────────────


def rect_from_points(points: Iterable[Point]) -> Rect:
    """Bounding rectangle of a non-empty point collection."""
    xs: list[float] = []
    ys: list[float] = []
    for x, y in points:
        xs.append(x)
        ys.append(y)
    if not xs:
        raise ValueError("cannot bound an empty point set")
    return (min(xs), min(ys), max(xs), max(ys))


def rect_union(a: Rect, b: Rect) -> Rect:
    return (min(a[0], b[0]), min(a[1], b[1]), max(a[2], b[2]), max(a[3], b[3]))


def inflate_rect(r: Rect, margin: float) -> Rect:
    """Grow (or shrink, for negative *margin*) a rectangle on all sides."""
    return (r[0] - margin, r[1] - margin, r[2] + margin, r[3] + margin)


def translate_rect(r: Rect, offset: Point) -> Rect:
    dx, dy = offset
    return (r[0] + dx, r[1] + dy, r[2] + dx, r[3] + dy)


def rect_width(r: Rect) -> float:
    return r[2] - r[0]


def rect_height(r: Rect) -> float:
    return r[3] - r[1]


def rect_area(r: Rect) -> float:
    return max(0.0, rect_width(r)) * max(0.0, rect_height(r))


def rect_contains_point(r: Rect, p: Point) -> bool:
    """Closed containment test."""
    return r[0] <= p[0] <= r[2] and r[1] <= p[1] <= r[3]


def clamp_rect(r: Rect, bounds: Rect) -> Rect:
    """Clamp every edge of *r* into *bounds*."""
    x0 = min(max(r[0], bounds[0]), bounds[2])
    x1 = min(max(r[2], bounds[0]), bounds[2])
    y0 = min(max(r[1], bounds[1]), bounds[3])
    y1 = min(max(r[3], bounds[1]), bounds[3])
    return (x0, y0, x1, y1)

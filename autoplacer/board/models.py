"""Board dataclasses — units, terminals, obstacles and the board itself."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum, IntEnum

from shapely.geometry import LineString, MultiPolygon, Point as ShapelyPoint, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union
from shapely.validation import make_valid

from autoplacer.config import PLACER_RULES
from autoplacer.geometry import (
    Point, Rect,
    rotate_point, add_points,
    rect_from_points, rect_union, rect_area, translate_rect,
)


EDGE_LAYER = "Edge.Cuts"
"""Layer holding the board outline.  Shapes on it are not obstacles."""


class Side(IntEnum):
    """Board side.  The value doubles as the grid plane index."""

    FRONT = 0
    BACK = 1

    @property
    def opposite(self) -> "Side":
        return Side.BACK if self is Side.FRONT else Side.FRONT


BOTH_SIDES = (Side.FRONT, Side.BACK)


def valid_area(geom: BaseGeometry) -> BaseGeometry:
    """Return *geom* repaired into a valid polygonal geometry.

    ``make_valid`` can split a bowtie into several polygons and leave
    stray lines or points behind; only the polygonal parts are kept.
    """
    if geom.is_valid:
        return geom
    fixed = make_valid(geom)
    if isinstance(fixed, (Polygon, MultiPolygon)):
        return fixed
    parts = [g for g in getattr(fixed, "geoms", ()) if isinstance(g, (Polygon, MultiPolygon))]
    return unary_union(parts) if parts else Polygon()


# ── Rotation policy ────────────────────────────────────────────────


class RotationMode(Enum):
    FORBIDDEN = "forbidden"
    PENALIZED = "penalized"
    FREE = "free"


@dataclass(frozen=True)
class RotationPolicy:
    """Whether (and at what cost) a unit may be tried at a rotation.

    ``scale`` multiplies the search cost found at the rotated
    orientation; it is 1.0 for free rotation.
    """

    mode: RotationMode
    scale: float = 1.0

    @classmethod
    def forbidden(cls) -> "RotationPolicy":
        return cls(RotationMode.FORBIDDEN, PLACER_RULES.orientation_penalty[0])

    @classmethod
    def free(cls) -> "RotationPolicy":
        return cls(RotationMode.FREE, 1.0)

    @classmethod
    def penalized(cls, scale: float) -> "RotationPolicy":
        return cls(RotationMode.PENALIZED, scale)

    @classmethod
    def from_cost_class(cls, cost_class: int) -> "RotationPolicy":
        """Build a policy from a 0..10 rotation cost class.

        0 prohibits rotation, 10 allows it with no penalty, anything in
        between is penalized along the configured penalty table.
        """
        table = PLACER_RULES.orientation_penalty
        if not 0 <= cost_class < len(table):
            raise ValueError(f"rotation cost class must be 0..{len(table) - 1}, got {cost_class}")
        if cost_class == 0:
            return cls.forbidden()
        if cost_class == len(table) - 1:
            return cls.free()
        return cls.penalized(table[cost_class])

    @property
    def allowed(self) -> bool:
        return self.mode is not RotationMode.FORBIDDEN


# ── Units ──────────────────────────────────────────────────────────


@dataclass
class Terminal:
    """A pad on a unit.  ``offset`` is local to the unit origin at 0°."""

    name: str
    offset: Point
    size: tuple[float, float] = (1.0, 1.0)
    net: int = 0                        # <= 0 means unconnected
    through_hole: bool = False          # present on both sides
    clearance_mm: float = 0.0


@dataclass
class Unit:
    """A placeable footprint.  Mutated in place by the placer."""

    reference: str
    position: Point
    courtyard: list[Point]              # local polygon at 0°
    terminals: list[Terminal] = field(default_factory=list)
    rotation_deg: float = 0.0
    side: Side = Side.FRONT
    rotation_90: RotationPolicy = field(default_factory=RotationPolicy.free)
    rotation_180: RotationPolicy = field(default_factory=RotationPolicy.free)
    needs_placed: bool = False
    is_placed: bool = False
    ratsnest_edges: int = 0             # ordering counter set by the placer

    # ── Orientation / position ───────────────────────────────────

    def move_to(self, position: Point) -> None:
        self.position = (float(position[0]), float(position[1]))

    def set_rotation(self, rotation_deg: float) -> None:
        self.rotation_deg = rotation_deg % 360

    def rotate(self, delta_deg: float) -> None:
        self.set_rotation(self.rotation_deg + delta_deg)

    # ── Terminals ────────────────────────────────────────────────

    def terminal_sides(self, terminal: Terminal) -> tuple[Side, ...]:
        return BOTH_SIDES if terminal.through_hole else (self.side,)

    def has_through_terminals(self) -> bool:
        return any(t.through_hole for t in self.terminals)

    def terminal_position(self, terminal: Terminal, offset: Point = (0.0, 0.0)) -> Point:
        """World position of *terminal*, displaced by a trial *offset*."""
        local = rotate_point(terminal.offset, self.rotation_deg)
        return add_points(add_points(self.position, local), offset)

    def terminal_rect(self, terminal: Terminal, offset: Point = (0.0, 0.0)) -> Rect:
        """World bounding box of the terminal pad."""
        cx, cy = self.terminal_position(terminal, offset)
        hw, hh = terminal.size[0] / 2, terminal.size[1] / 2
        corners = [rotate_point(c, self.rotation_deg)
                   for c in ((-hw, -hh), (hw, -hh), (hw, hh), (-hw, hh))]
        return rect_from_points((cx + x, cy + y) for x, y in corners)

    # ── Footprint shape ──────────────────────────────────────────

    def courtyard_points(self, offset: Point = (0.0, 0.0)) -> list[Point]:
        base = add_points(self.position, offset)
        return [add_points(base, rotate_point(p, self.rotation_deg))
                for p in self.courtyard]

    def courtyard_polygon(self, offset: Point = (0.0, 0.0)) -> BaseGeometry:
        """Courtyard area, repaired when the outline self-intersects."""
        return valid_area(Polygon(self.courtyard_points(offset)))

    def footprint_rect(self, offset: Point = (0.0, 0.0)) -> Rect:
        """Bounding box of the courtyard and every terminal pad."""
        rect = rect_from_points(self.courtyard_points(offset)) if self.courtyard \
            else rect_from_points([add_points(self.position, offset)])
        for t in self.terminals:
            rect = rect_union(rect, self.terminal_rect(t, offset))
        return rect

    def local_footprint_rect(self) -> Rect:
        """Footprint rectangle relative to the unit position."""
        return translate_rect(self.footprint_rect(), (-self.position[0], -self.position[1]))

    @property
    def area(self) -> float:
        """Footprint area in mm², used for placement ordering."""
        return rect_area(self.footprint_rect())

    @property
    def terminal_count(self) -> int:
        return len(self.terminals)


# ── Obstacles ──────────────────────────────────────────────────────


@dataclass
class Obstacle:
    """A drawn shape on the board.

    kind:    "segment" (start → end), "circle" (outline centred on
             ``start`` with ``radius``) or "arc" (centred on ``start``,
             from ``start_angle`` sweeping ``sweep_angle`` degrees).
    """

    kind: str
    start: Point
    end: Point = (0.0, 0.0)
    width_mm: float = 0.15
    layer: str = "Dwgs.User"
    radius: float = 0.0
    start_angle: float = 0.0
    sweep_angle: float = 360.0

    def geometry(self) -> BaseGeometry:
        """Centre-line geometry of the shape (no width applied)."""
        if self.kind == "segment":
            if self.start == self.end:
                return ShapelyPoint(self.start)
            return LineString([self.start, self.end])
        if self.kind == "circle":
            return ShapelyPoint(self.start).buffer(self.radius).exterior
        if self.kind == "arc":
            steps = max(2, int(math.ceil(abs(self.sweep_angle) / 5.0)) + 1)
            cx, cy = self.start
            pts = []
            for i in range(steps):
                a = math.radians(self.start_angle + self.sweep_angle * i / (steps - 1))
                pts.append((cx + self.radius * math.cos(a), cy + self.radius * math.sin(a)))
            return LineString(pts)
        raise ValueError(f"unknown obstacle kind {self.kind!r}")


# ── Board ──────────────────────────────────────────────────────────


@dataclass
class Board:
    """Board outline plus everything on it."""

    outline: list[Point]
    units: list[Unit] = field(default_factory=list)
    obstacles: list[Obstacle] = field(default_factory=list)
    cutouts: list[list[Point]] = field(default_factory=list)

    def outline_polygon(self) -> BaseGeometry:
        """Board area.  A self-intersecting outline or a cut-out crossing
        it is repaired, so the result may be a MultiPolygon."""
        return valid_area(Polygon(self.outline, holes=self.cutouts or None))

    def outline_edges(self) -> list[tuple[Point, Point]]:
        """Closed edge list of the outline and every cut-out."""
        edges: list[tuple[Point, Point]] = []
        for ring in [self.outline, *self.cutouts]:
            n = len(ring)
            for i in range(n):
                edges.append((ring[i], ring[(i + 1) % n]))
        return edges

    def bounding_box(self) -> Rect | None:
        """Bounding box of the outline, or None for an empty outline."""
        if not self.outline:
            return None
        return rect_from_points(self.outline)

    def unit(self, reference: str) -> Unit:
        for u in self.units:
            if u.reference == reference:
                return u
        raise KeyError(reference)

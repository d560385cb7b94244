"""Discretized placement grid — per-side cell flags plus a keep-out cost.

The grid covers the bounding box of the board outline.  Cell
``(row, col)`` spans ``[ox + col·p, ox + (col+1)·p)`` horizontally and
``[oy + row·p, oy + (row+1)·p)`` vertically, where ``p`` is the pitch.
Both board sides share the geometry but carry independent flags and
costs.  A cell is legal for placement iff it is flagged ZONE and not
OCCUPIED.
"""

from __future__ import annotations

import math
from enum import Enum, IntFlag
from typing import Iterable, Iterator, NamedTuple

from shapely.geometry import Point as ShapelyPoint
from shapely.prepared import prep as shapely_prep

from autoplacer.board.models import BOTH_SIDES, Obstacle, Side, Terminal, Unit
from autoplacer.geometry import Point, Rect, inflate_rect

from .models import GRID_PITCH_MM


_EPS = 1e-9


class CellFlag(IntFlag):
    EMPTY = 0x00
    HOLE = 0x01         # drilled hole or drawn obstacle
    OCCUPIED = 0x02     # covered by a placed unit
    EDGE = 0x20         # board edge / obstacle contour
    FRIEND = 0x40       # cell belongs to the net being handled
    ZONE = 0x80         # inside the board outline


class WriteMode(Enum):
    WRITE = "write"
    OR = "or"
    XOR = "xor"
    AND = "and"


class CellRange(NamedTuple):
    """Inclusive row/column range.  ``clamped`` is True when part of the
    requested area fell outside the grid."""

    row_min: int
    row_max: int
    col_min: int
    col_max: int
    clamped: bool

    @property
    def empty(self) -> bool:
        return self.row_min > self.row_max or self.col_min > self.col_max


class PlacementMatrix:
    """A two-sided occupancy grid over the board bounding box.

    World coordinates (mm) are mapped to cells; the origin is the
    lower-left corner of the board bounding box.  Reads outside the grid
    return EMPTY / zero cost and writes outside it are ignored.
    """

    def __init__(self, pitch: float = GRID_PITCH_MM) -> None:
        self.pitch = pitch
        self.origin_x = 0.0
        self.origin_y = 0.0
        self.nrows = 0
        self.ncols = 0
        self.board_box: Rect = (0.0, 0.0, 0.0, 0.0)

        self._cells: list[bytearray] | None = None
        self._cost: list[list[int]] | None = None

    # ── Sizing / lifecycle ─────────────────────────────────────────

    def compute_size(self, bbox: Rect) -> bool:
        """Fit the grid to *bbox*.  Returns False for a degenerate box."""
        x0, y0, x1, y1 = bbox
        width, height = x1 - x0, y1 - y0
        if width <= 0 or height <= 0:
            return False
        self.board_box = bbox
        self.origin_x = x0
        self.origin_y = y0
        self.ncols = int(math.ceil(width / self.pitch - _EPS))
        self.nrows = int(math.ceil(height / self.pitch - _EPS))
        return True

    def initialize(self) -> None:
        """Allocate both planes, all cells EMPTY with zero cost."""
        n = self.nrows * self.ncols
        self._cells = [bytearray(n) for _ in BOTH_SIDES]
        self._cost = [[0] * n for _ in BOTH_SIDES]

    def uninitialize(self) -> None:
        self._cells = None
        self._cost = None

    @property
    def initialized(self) -> bool:
        return self._cells is not None

    @property
    def bounds(self) -> Rect:
        """World rectangle covered by whole cells."""
        return (
            self.origin_x, self.origin_y,
            self.origin_x + self.ncols * self.pitch,
            self.origin_y + self.nrows * self.pitch,
        )

    # ── Coordinate conversion ──────────────────────────────────────

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.nrows and 0 <= col < self.ncols

    def world_to_cell(self, x: float, y: float) -> tuple[int, int]:
        """(row, col) of the cell containing a world point (unclamped)."""
        col = int(math.floor((x - self.origin_x) / self.pitch + _EPS))
        row = int(math.floor((y - self.origin_y) / self.pitch + _EPS))
        return (row, col)

    def cell_center(self, row: int, col: int) -> Point:
        return (
            self.origin_x + (col + 0.5) * self.pitch,
            self.origin_y + (row + 0.5) * self.pitch,
        )

    def cell_range(self, rect: Rect) -> CellRange:
        """Cells whose area meets the interior of *rect*, clamped to the grid."""
        row_min, row_max, col_min, col_max = self._raw_range(rect)
        clamped = (
            col_min < 0 or row_min < 0
            or col_max > self.ncols - 1 or row_max > self.nrows - 1
        )
        return CellRange(
            row_min=max(0, row_min),
            row_max=min(self.nrows - 1, row_max),
            col_min=max(0, col_min),
            col_max=min(self.ncols - 1, col_max),
            clamped=clamped,
        )

    def _raw_range(self, rect: Rect) -> tuple[int, int, int, int]:
        """Unclamped (row_min, row_max, col_min, col_max) meeting *rect*."""
        x0, y0, x1, y1 = rect
        p = self.pitch
        col_min = int(math.floor((x0 - self.origin_x) / p + _EPS))
        col_max = int(math.ceil((x1 - self.origin_x) / p - _EPS)) - 1
        row_min = int(math.floor((y0 - self.origin_y) / p + _EPS))
        row_max = int(math.ceil((y1 - self.origin_y) / p - _EPS)) - 1
        return (row_min, row_max, col_min, col_max)

    @staticmethod
    def iter_range(rng: CellRange) -> Iterator[tuple[int, int]]:
        for row in range(rng.row_min, rng.row_max + 1):
            for col in range(rng.col_min, rng.col_max + 1):
                yield (row, col)

    # ── Cell access ────────────────────────────────────────────────

    def get_cell(self, row: int, col: int, side: Side) -> int:
        if self._cells is None or not self.in_bounds(row, col):
            return CellFlag.EMPTY
        return self._cells[side][row * self.ncols + col]

    def write_cell(self, row: int, col: int, side: Side, flags: int, mode: WriteMode) -> None:
        if self._cells is None or not self.in_bounds(row, col):
            return
        plane = self._cells[side]
        i = row * self.ncols + col
        if mode is WriteMode.WRITE:
            plane[i] = flags
        elif mode is WriteMode.OR:
            plane[i] |= flags
        elif mode is WriteMode.XOR:
            plane[i] ^= flags
        elif mode is WriteMode.AND:
            plane[i] &= flags

    def set_cell(self, row: int, col: int, side: Side, flags: int) -> None:
        self.write_cell(row, col, side, flags, WriteMode.WRITE)

    def or_cell(self, row: int, col: int, side: Side, flags: int) -> None:
        self.write_cell(row, col, side, flags, WriteMode.OR)

    def xor_cell(self, row: int, col: int, side: Side, flags: int) -> None:
        self.write_cell(row, col, side, flags, WriteMode.XOR)

    def and_cell(self, row: int, col: int, side: Side, flags: int) -> None:
        self.write_cell(row, col, side, flags, WriteMode.AND)

    def get_cost(self, row: int, col: int, side: Side) -> int:
        if self._cost is None or not self.in_bounds(row, col):
            return 0
        return self._cost[side][row * self.ncols + col]

    def set_cost(self, row: int, col: int, side: Side, cost: int) -> None:
        if self._cost is not None and self.in_bounds(row, col):
            self._cost[side][row * self.ncols + col] = cost

    def add_cost(self, row: int, col: int, side: Side, cost: int) -> None:
        if self._cost is not None and self.in_bounds(row, col):
            self._cost[side][row * self.ncols + col] += cost

    def copy_side(self, src: Side, dst: Side) -> None:
        """Overwrite plane *dst* (flags and costs) with plane *src*."""
        if self._cells is None or self._cost is None:
            return
        self._cells[dst][:] = self._cells[src]
        self._cost[dst][:] = self._cost[src]

    def count_cells(self, side: Side, flags: int) -> int:
        """Number of cells on *side* carrying every bit of *flags*."""
        if self._cells is None:
            return 0
        return sum(1 for v in self._cells[side] if v & flags == flags)

    # ── Area tracing ───────────────────────────────────────────────

    def trace_filled_rectangle(
        self,
        rect: Rect,
        flags: int,
        mode: WriteMode,
        sides: Iterable[Side] = BOTH_SIDES,
    ) -> None:
        """Write *flags* into every cell meeting *rect*."""
        rng = self.cell_range(rect)
        if rng.empty:
            return
        sides = tuple(sides)
        for row, col in self.iter_range(rng):
            for side in sides:
                self.write_cell(row, col, side, flags, mode)

    def trace_segment(
        self,
        shape: Obstacle,
        flags: int,
        mode: WriteMode,
        sides: Iterable[Side] = BOTH_SIDES,
    ) -> None:
        """Write *flags* into cells whose centre lies within half the
        shape's width plus half a cell of its centre line."""
        geom = shape.geometry()
        reach = shape.width_mm / 2 + self.pitch / 2
        zone = geom.buffer(reach)
        prepared = shapely_prep(zone)
        rng = self.cell_range(zone.bounds)
        if rng.empty:
            return
        sides = tuple(sides)
        for row, col in self.iter_range(rng):
            if not prepared.intersects(ShapelyPoint(self.cell_center(row, col))):
                continue
            for side in sides:
                self.write_cell(row, col, side, flags, mode)

    def place_terminal(
        self,
        unit: Unit,
        terminal: Terminal,
        flags: int,
        margin: float,
        mode: WriteMode,
    ) -> None:
        """Trace a terminal pad, grown by *margin*, on every side it is on."""
        rect = inflate_rect(unit.terminal_rect(terminal), margin)
        self.trace_filled_rectangle(rect, flags, mode, unit.terminal_sides(terminal))

    def create_keepout_rectangle(
        self,
        rect: Rect,
        margin: float,
        keepout: int,
        sides: Iterable[Side],
    ) -> None:
        """Add a keep-out cost gradient around *rect*.

        Cells meeting *rect* receive the full *keepout* cost; a band of
        ``margin`` (at least one cell) around it ramps linearly down so
        that cells further away are cheaper.
        """
        band = max(1, int(margin / self.pitch + _EPS))
        # Unclamped inner bounds: the gradient is measured from the
        # rectangle even where it leaves the grid.
        row_lo, row_hi, col_lo, col_hi = self._raw_range(rect)
        if col_hi < col_lo or row_hi < row_lo:
            return

        steps = band + 1
        sides = tuple(sides)
        for row in range(max(0, row_lo - band), min(self.nrows - 1, row_hi + band) + 1):
            dr = row_lo - row if row < row_lo else max(0, row - row_hi)
            row_gain = steps - dr
            for col in range(max(0, col_lo - band), min(self.ncols - 1, col_hi + band) + 1):
                dc = col_lo - col if col < col_lo else max(0, col - col_hi)
                cost = (keepout * row_gain * (steps - dc)) // (steps * steps)
                if cost <= 0:
                    continue
                for side in sides:
                    self.add_cost(row, col, side, cost)

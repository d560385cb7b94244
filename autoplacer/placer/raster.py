"""Scanline rasterization of the board outline into the placement grid.

Each grid row is sampled by two horizontal scanlines, nudged just inside
its lower and upper edge.  For every scanline the crossings with the
outline edges are sorted and paired (odd-even rule); a cell becomes a
ZONE cell only when its full width lies inside a span on both scanlines.
A rectangular W × H outline therefore yields floor(W/p) × floor(H/p)
zone cells.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Sequence

from autoplacer.board.models import EDGE_LAYER, Board, Obstacle, Side
from autoplacer.geometry import Point

from .matrix import CellFlag, PlacementMatrix, WriteMode


log = logging.getLogger(__name__)

Edge = tuple[Point, Point]

# Fraction of a cell the scanlines are pulled inside their row.
_NUDGE = 1e-4
_EPS = 1e-9


def scanline_crossings(edges: Iterable[Edge], y: float) -> list[float]:
    """Sorted x-coordinates where the horizontal line at *y* crosses *edges*.

    An edge counts when ``min(y) <= y < max(y)``; horizontal edges never
    contribute.
    """
    xs: list[float] = []
    for (x0, y0), (x1, y1) in edges:
        if y0 == y1:
            continue
        if (y0 <= y < y1) or (y1 <= y < y0):
            xs.append(x0 + (y - y0) * (x1 - x0) / (y1 - y0))
    xs.sort()
    return xs


def _span_columns(matrix: PlacementMatrix, xs: Sequence[float]) -> set[int]:
    """Columns lying fully inside one of the spans ``xs[0]..xs[1]``, ..."""
    cols: set[int] = set()
    p = matrix.pitch
    for i in range(0, len(xs) - 1, 2):
        start = (xs[i] - matrix.origin_x) / p
        end = (xs[i + 1] - matrix.origin_x) / p
        first = max(0, int(math.ceil(start - _EPS)))
        last = min(matrix.ncols - 1, int(math.floor(end + _EPS)) - 1)
        cols.update(range(first, last + 1))
    return cols


def fill_board_zone(
    matrix: PlacementMatrix,
    edges: Sequence[Edge],
    side: Side = Side.BACK,
) -> bool:
    """Flag every cell inside the closed outline *edges* as ZONE.

    Returns False (and stops filling) when a scanline meets an odd
    number of edges, which means the outline is not closed.  Rows filled
    before the failure keep their flags.
    """
    p = matrix.pitch
    for row in range(matrix.nrows):
        y_lo = matrix.origin_y + (row + _NUDGE) * p
        y_hi = matrix.origin_y + (row + 1 - _NUDGE) * p

        lower = scanline_crossings(edges, y_lo)
        upper = scanline_crossings(edges, y_hi)
        if len(lower) % 2 or len(upper) % 2:
            log.error("Malformed board outline: odd crossing count on row %d "
                      "(%d / %d crossings)", row, len(lower), len(upper))
            return False

        for col in sorted(_span_columns(matrix, lower) & _span_columns(matrix, upper)):
            matrix.set_cell(row, col, side, CellFlag.ZONE)
    return True


def trace_obstacles(matrix: PlacementMatrix, obstacles: Iterable[Obstacle]) -> int:
    """Trace every drawn shape not on the outline layer as HOLE | EDGE.

    Returns the number of shapes traced.
    """
    count = 0
    for shape in obstacles:
        if shape.layer == EDGE_LAYER:
            continue
        matrix.trace_segment(shape, CellFlag.HOLE | CellFlag.EDGE, WriteMode.WRITE,
                             sides=(Side.BACK,))
        count += 1
    return count


def build_placement_matrix(
    board: Board, pitch: float,
) -> tuple[PlacementMatrix | None, bool]:
    """Size, allocate and fill a matrix for *board*.

    Returns ``(None, False)`` for a degenerate board.  Otherwise returns
    the matrix and whether the outline rasterized cleanly.  The back
    plane is filled first and copied onto the front plane.
    """
    bbox = board.bounding_box()
    matrix = PlacementMatrix(pitch)
    if bbox is None or not matrix.compute_size(bbox):
        log.warning("Board outline is degenerate (bbox=%s) — nothing to place", bbox)
        return None, False

    matrix.initialize()
    success = fill_board_zone(matrix, board.outline_edges(), Side.BACK)
    traced = trace_obstacles(matrix, board.obstacles)
    matrix.copy_side(Side.BACK, Side.FRONT)

    log.info("Placement grid: %d×%d cells at %.2fmm, %d zone cells, %d obstacles",
             matrix.ncols, matrix.nrows, pitch,
             matrix.count_cells(Side.BACK, CellFlag.ZONE), traced)
    return matrix, success

"""Exhaustive grid search for the cheapest legal position of one unit."""

from __future__ import annotations

import logging
import math

from autoplacer.board.models import Unit
from autoplacer.geometry import Point, rect_height, rect_width

from .evaluator import test_unit_on_board
from .models import PlacementContext, PlacementError, SearchResult
from .ratsnest import placement_ratsnest_cost


log = logging.getLogger(__name__)

_EPS = 1e-9


def snap_to_pitch(value: float, pitch: float) -> float:
    """Round *value* down to a multiple of *pitch*."""
    return math.floor(value / pitch + _EPS) * pitch


def _steps(start: float, limit: float, pitch: float) -> int:
    """Number of positions ``start + k·pitch`` strictly below *limit*."""
    span = (limit - start) / pitch
    if span <= _EPS:
        return 0
    return int(math.ceil(span - _EPS))


def candidate_positions(ctx: PlacementContext, unit: Unit) -> list[Point]:
    """Grid-aligned trial positions in scan order (y outer, x inner).

    The footprint rectangle must fit inside the board box at every
    position; the first position is snapped down to the pitch.
    """
    pitch = ctx.pitch
    rx0, ry0, rx1, ry1 = unit.local_footprint_rect()
    bx0, by0, bx1, by1 = ctx.board_box

    x_start = snap_to_pitch(bx0 - rx0, pitch)
    y_start = snap_to_pitch(by0 - ry0, pitch)
    nx = _steps(x_start, bx1 - rx1, pitch)
    ny = _steps(y_start, by1 - ry1, pitch)

    return [
        (round(x_start + i * pitch, 6), round(y_start + j * pitch, 6))
        for j in range(ny)
        for i in range(nx)
    ]


def find_optimal_placement(ctx: PlacementContext, unit: Unit) -> SearchResult:
    """Scan every grid position for *unit* at its current orientation.

    Each legal candidate scores ratsnest cost plus keep-out cost; the
    lowest score wins and ties keep the first candidate found.  The
    unit itself is not moved.

    Raises
    ------
    PlacementError
        If no candidate position is legal.
    """
    check_other_side = unit.has_through_terminals()
    ux, uy = unit.position

    best_pos: Point | None = None
    best_score = math.inf
    legal = 0

    for x, y in candidate_positions(ctx, unit):
        offset = (x - ux, y - uy)
        evaluation = test_unit_on_board(ctx, unit, check_other_side, offset)
        if not evaluation.legal:
            continue
        legal += 1
        score = placement_ratsnest_cost(ctx, unit, offset) + evaluation.cost
        if score < best_score:
            best_score = score
            best_pos = (x, y)

    if best_pos is None:
        fp = unit.footprint_rect()
        bb = ctx.board_box
        raise PlacementError(
            unit.reference,
            f"no legal position at {unit.rotation_deg:g}° inside the "
            f"{rect_width(bb):.1f}×{rect_height(bb):.1f}mm board for a "
            f"{rect_width(fp):.1f}×{rect_height(fp):.1f}mm footprint",
        )

    log.debug("%s @ %g°: best (%.2f, %.2f) score=%.2f over %d legal candidates",
              unit.reference, unit.rotation_deg, best_pos[0], best_pos[1],
              best_score, legal)
    return SearchResult(position=best_pos, cost=best_score, candidates=legal)

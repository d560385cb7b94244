"""Candidate legality and keep-out cost for one trial position."""

from __future__ import annotations

from autoplacer.board.models import Side, Unit
from autoplacer.geometry import Point, Rect, inflate_rect

from .matrix import CellFlag, PlacementMatrix
from .models import Evaluation, PlacementContext, Verdict


def test_rectangle(matrix: PlacementMatrix, rect: Rect, side: Side) -> Verdict:
    """Check the cells under *rect* (grown by half a cell) on *side*.

    Cells outside the grid count as out of board.  Board-zone membership
    is checked before occupancy, cell by cell.
    """
    rng = matrix.cell_range(inflate_rect(rect, matrix.pitch / 2))
    if rng.clamped or rng.empty:
        return Verdict.OUT_OF_BOARD

    for row, col in matrix.iter_range(rng):
        data = matrix.get_cell(row, col, side)
        if not data & CellFlag.ZONE:
            return Verdict.OUT_OF_BOARD
        if data & CellFlag.OCCUPIED:
            return Verdict.OCCUPIED
    return Verdict.LEGAL


def calculate_keepout_area(matrix: PlacementMatrix, rect: Rect, side: Side) -> int:
    """Sum of cell costs under *rect* (clamped to the grid)."""
    rng = matrix.cell_range(rect)
    if rng.empty:
        return 0
    return sum(matrix.get_cost(row, col, side) for row, col in matrix.iter_range(rng))


def test_unit_on_board(
    ctx: PlacementContext,
    unit: Unit,
    check_other_side: bool,
    offset: Point,
) -> Evaluation:
    """Test *unit* displaced by *offset*.

    The footprint rectangle must be legal on the unit's side, and on the
    opposite side too when *check_other_side* is set.  A legal candidate
    is priced by the keep-out cost under its footprint, grown by a
    margin that scales with the terminal count.
    """
    matrix = ctx.matrix
    rect = unit.footprint_rect(offset)

    verdict = test_rectangle(matrix, rect, unit.side)
    if verdict is not Verdict.LEGAL:
        return Evaluation(verdict)

    if check_other_side:
        verdict = test_rectangle(matrix, rect, unit.side.opposite)
        if verdict is not Verdict.LEGAL:
            return Evaluation(verdict)

    margin = ctx.rules.keepout_margin(matrix.pitch, unit.terminal_count)
    return Evaluation(Verdict.LEGAL,
                      calculate_keepout_area(matrix, inflate_rect(rect, margin), unit.side))

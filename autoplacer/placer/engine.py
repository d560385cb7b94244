"""Main placement engine — greedy grid-search autoplacer.

One unit is placed at a time.  Units already on the board are stamped
into the placement matrix first; each remaining unit is then chosen by
size and connectivity, searched over every grid position at each
permitted orientation, committed at its cheapest legal spot and stamped
in turn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from shapely.geometry.base import BaseGeometry

from autoplacer.board.connectivity import Connectivity, ConnectivityProvider
from autoplacer.board.models import BOTH_SIDES, Board, RotationPolicy, Side, Unit
from autoplacer.config import PLACER_RULES, PlacerRules
from autoplacer.geometry import Point, clamp_rect, inflate_rect, rect_contains_point

from .commit import Commit, UnitCommit
from .free_area import FreeAreaTracker
from .matrix import CellFlag, WriteMode
from .models import (
    PlacedUnit, PlacementContext, PlacementError, PlacementReport,
    PlacerState, ProgressReporter, RunResult, ROTATION_TRIALS,
)
from .raster import build_placement_matrix
from .search import find_optimal_placement


log = logging.getLogger(__name__)

RefreshCallback = Callable[[Unit | None], None]


@dataclass(frozen=True)
class _Choice:
    position: Point
    rotation_deg: float
    cost: float


class Autoplacer:
    """Places the units of one board.

    Parameters
    ----------
    board : Board
        The board whose units are placed.  Units are mutated in place.
    connectivity : ConnectivityProvider, optional
        Net and ratsnest queries.  Built from *board* at the start of
        each run when omitted.
    rules : PlacerRules
        Grid pitch and keep-out parameters.
    grid_pitch : float, optional
        Overrides ``rules.grid_pitch_mm``; clamped to the minimum pitch.
    progress : ProgressReporter, optional
        Receives stage text and one ``advance`` per placed unit.  A false
        ``keep_going`` stops the run after the current unit.
    refresh : callable, optional
        Called with ``None`` once every fixed unit is stamped, then with
        each unit as it is committed.
    """

    def __init__(
        self,
        board: Board,
        connectivity: ConnectivityProvider | None = None,
        *,
        rules: PlacerRules = PLACER_RULES,
        grid_pitch: float | None = None,
        progress: ProgressReporter | None = None,
        refresh: RefreshCallback | None = None,
    ) -> None:
        self.board = board
        self.rules = rules
        self.pitch = rules.effective_pitch(grid_pitch)
        self.progress = progress
        self.refresh = refresh
        self.state = PlacerState.IDLE
        self._connectivity = connectivity
        self._ctx: PlacementContext | None = None

    # ── Public API ─────────────────────────────────────────────────

    @property
    def context(self) -> PlacementContext | None:
        """Run context while a run is in progress, else None."""
        return self._ctx

    def free_area(self, side: Side) -> BaseGeometry | None:
        """Free area on *side* during a run (None between runs)."""
        if self._ctx is None:
            return None
        return self._ctx.free_area.free_area(side)

    def autoplace_footprints(
        self,
        units: Iterable[Unit],
        commit: Commit | None = None,
        place_offboard: bool = False,
    ) -> PlacementReport:
        """Place *units*, plus every off-board unit if *place_offboard*.

        Each unit to be placed is recorded in *commit* exactly once,
        before it is changed.  The report lists the committed
        placements in order; on an ``ABORTED`` result the units placed
        before the failure keep their new positions.
        """
        if commit is None:
            commit = UnitCommit()
        units = list(units)

        if len(self.board.outline) < 3:
            return self._fail("board outline has fewer than three vertices")

        matrix, ok = build_placement_matrix(self.board, self.pitch)
        if matrix is None:
            return self._fail("board outline is degenerate")
        if not ok:
            matrix.uninitialize()
            return self._fail("board outline is malformed (open contour)")

        connectivity = self._connectivity or Connectivity(self.board)
        free_area = FreeAreaTracker(self.board.outline_polygon(), self.pitch)
        self._ctx = PlacementContext(matrix, free_area, connectivity, self.rules)
        self.state = PlacerState.GRID_BUILT
        try:
            report = self._run(self._ctx, units, commit, place_offboard)
            report.free_area = {side: free_area.free_area(side) for side in BOTH_SIDES}
            return report
        finally:
            matrix.uninitialize()
            self._ctx = None

    # ── Run ────────────────────────────────────────────────────────

    def _fail(self, reason: str) -> PlacementReport:
        log.warning("Autoplacement not started: %s", reason)
        self.state = PlacerState.FAILED
        return PlacementReport(RunResult.FAILED, error=reason)

    def _run(
        self,
        ctx: PlacementContext,
        units: list[Unit],
        commit: Commit,
        place_offboard: bool,
    ) -> PlacementReport:
        report = PlacementReport(RunResult.COMPLETED)

        for unit in self.board.units:
            unit.needs_placed = False

        on_board = {id(u) for u in self.board.units}
        requested = []
        for unit in units:
            if id(unit) not in on_board:
                log.warning("Skipping '%s': unit is not on the board", unit.reference)
                continue
            requested.append(unit)
        if place_offboard:
            requested += [u for u in self.board.units
                          if not rect_contains_point(ctx.board_box, u.position)]
        for unit in requested:
            if unit.needs_placed:
                continue
            commit.modify(unit)
            unit.needs_placed = True
            report.modified.append(unit.reference)

        pending = 0
        for unit in self.board.units:
            if unit.needs_placed:
                pending += 1
            else:
                self._stamp_unit(ctx, unit)

        log.info("Autoplacing %d unit(s) on a %d×%d grid at %.2fmm",
                 pending, ctx.matrix.ncols, ctx.matrix.nrows, ctx.pitch)
        if self.progress is not None:
            self.progress.report_stage("Autoplacing components...")
            self.progress.set_max_progress(pending)
        self._notify(None)

        while True:
            self.state = PlacerState.SELECTING
            unit = self._pick_unit(ctx)
            if unit is None:
                break

            self.state = PlacerState.EVALUATING
            if self.progress is not None:
                self.progress.report_stage(f"Autoplacing {unit.reference}")
            choice = self._best_orientation(ctx, unit)
            if choice is None:
                self.state = PlacerState.ABORTED
                report.result = RunResult.ABORTED
                report.error = (f"Cannot place '{unit.reference}': no legal "
                                f"position at any permitted orientation")
                log.warning(report.error)
                return report

            self.state = PlacerState.COMMITTING
            self._commit_unit(ctx, unit, choice)
            report.placed.append(PlacedUnit(
                reference=unit.reference,
                x_mm=unit.position[0],
                y_mm=unit.position[1],
                rotation_deg=unit.rotation_deg,
                cost=choice.cost,
            ))
            log.info("Placed %s at (%.2f, %.2f) %g° cost=%.2f",
                     unit.reference, unit.position[0], unit.position[1],
                     unit.rotation_deg, choice.cost)
            self._notify(unit)

            if self.progress is not None:
                self.progress.advance()
                if not self.progress.keep_going():
                    log.info("Autoplacement cancelled after %d unit(s)",
                             len(report.placed))
                    self.state = PlacerState.CANCELLED
                    report.result = RunResult.CANCELLED
                    return report

        self.state = PlacerState.DONE
        log.info("Autoplacement complete: %d unit(s) placed", len(report.placed))
        return report

    def _notify(self, unit: Unit | None) -> None:
        if self.refresh is not None:
            self.refresh(unit)

    # ── Selection ──────────────────────────────────────────────────

    def _pick_unit(self, ctx: PlacementContext) -> Unit | None:
        """Next unit to place: the largest well-connected one.

        Units are ordered by area × terminal count, then (stably) by
        area × ratsnest edges to units outside themselves.  The first
        unit still needing placement with at least one such edge wins;
        otherwise the first unit still needing placement.
        """
        units = sorted(self.board.units,
                       key=lambda u: u.area * u.terminal_count, reverse=True)
        for unit in units:
            unit.ratsnest_edges = 0
        ctx.connectivity.recalculate_ratsnest()
        for unit in units:
            unit.ratsnest_edges = ctx.connectivity.edges_for_unit(unit)
        units.sort(key=lambda u: u.area * u.ratsnest_edges, reverse=True)

        fallback = None
        for unit in units:
            if not unit.needs_placed:
                continue
            if unit.ratsnest_edges > 0:
                return unit
            if fallback is None:
                fallback = unit
        return fallback

    # ── Orientation trials ─────────────────────────────────────────

    def _trial(
        self, ctx: PlacementContext, unit: Unit, policy: RotationPolicy | None,
    ) -> _Choice | None:
        try:
            found = find_optimal_placement(ctx, unit)
        except PlacementError as exc:
            log.debug(str(exc))
            return None
        scale = 1.0 if policy is None else policy.scale
        return _Choice(found.position, unit.rotation_deg, found.cost * scale)

    def _best_orientation(self, ctx: PlacementContext, unit: Unit) -> _Choice | None:
        """Cheapest legal placement over the current orientation and the
        180°, 90° and 270° turns its rotation policies permit.

        Each turn is measured from the initial orientation and penalized
        by its policy scale.  The unit is left at its initial
        orientation.
        """
        initial = unit.rotation_deg
        best = self._trial(ctx, unit, None)

        for delta in ROTATION_TRIALS:
            policy = unit.rotation_180 if delta == 180 else unit.rotation_90
            if not policy.allowed:
                continue
            unit.set_rotation(initial + delta)
            try:
                choice = self._trial(ctx, unit, policy)
            finally:
                unit.set_rotation(initial)
            if choice is not None and (best is None or choice.cost < best.cost):
                best = choice
        return best

    # ── Commit / stamping ──────────────────────────────────────────

    def _commit_unit(self, ctx: PlacementContext, unit: Unit, choice: _Choice) -> None:
        unit.set_rotation(choice.rotation_deg)
        unit.move_to(choice.position)
        unit.is_placed = True
        unit.needs_placed = False
        self._stamp_unit(ctx, unit)

    def _stamp_unit(self, ctx: PlacementContext, unit: Unit) -> None:
        """Mark *unit* occupied in the matrix and write its keep-out.

        The footprint rectangle, grown by half a cell and clamped to the
        board box, is occupied on the unit's side; each terminal pad is
        occupied on every side it reaches.
        """
        matrix = ctx.matrix
        pitch = ctx.pitch
        sides = (unit.side,)
        rect = clamp_rect(inflate_rect(unit.footprint_rect(), pitch / 2), ctx.board_box)

        matrix.trace_filled_rectangle(rect, CellFlag.OCCUPIED, WriteMode.OR, sides)
        for terminal in unit.terminals:
            matrix.place_terminal(unit, terminal, CellFlag.OCCUPIED,
                                  pitch / 2 + terminal.clearance_mm, WriteMode.OR)

        margin = ctx.rules.keepout_margin(pitch, unit.terminal_count)
        matrix.create_keepout_rectangle(rect, margin, ctx.rules.keepout_cost, sides)
        ctx.free_area.add_unit(unit, margin)

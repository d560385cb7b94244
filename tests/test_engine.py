"""Tests for the autoplacer orchestrator.

Uses the sensor board fixture as the main end-to-end case:
  - 40 × 30 mm outline, J1 connector already placed
  - U1, R1, C1 and D1 auto-placed

Validates:
  - Every requested unit is placed, fixed units are left alone
  - No two units share a grid cell on the same side
  - Every unit sits inside the board zone
  - Rotation policies are honoured (forbidden, penalized, free)
  - Abort, cancel and failure results leave the board consistent
  - The commit log records each unit once and can undo the run
  - Self-intersecting outlines and courtyards do not break a run
"""

from __future__ import annotations

import itertools
import unittest

from autoplacer.board import Board, RotationPolicy, Side, Terminal
from autoplacer.geometry import inflate_rect
from autoplacer.placer import (
    Autoplacer, CellFlag, PlacerState, RunResult, UnitCommit, build_placement_matrix,
)

from tests.board_fixture import (
    RecordingProgress, make_rect_board, make_sensor_board, make_unit, rect_outline,
)


AUTO_REFS = ["U1", "R1", "C1", "D1"]


def _place_sensor_board(**kwargs):
    board = make_sensor_board()
    placer = Autoplacer(board, **kwargs)
    report = placer.autoplace_footprints([board.unit(r) for r in AUTO_REFS])
    return board, placer, report


def _cells(matrix, unit):
    rng = matrix.cell_range(inflate_rect(unit.footprint_rect(), matrix.pitch / 2))
    return rng, set(matrix.iter_range(rng))


class TestSensorBoard(unittest.TestCase):
    """End-to-end run on the sensor board."""

    @classmethod
    def setUpClass(cls):
        cls.board, cls.placer, cls.report = _place_sensor_board()

    def test_completed(self):
        self.assertIs(self.report.result, RunResult.COMPLETED)
        self.assertTrue(self.report.ok)
        self.assertIsNone(self.report.error)
        self.assertIs(self.placer.state, PlacerState.DONE)

    def test_all_units_placed(self):
        self.assertEqual(sorted(p.reference for p in self.report.placed), sorted(AUTO_REFS))
        self.assertEqual(sorted(self.report.modified), sorted(AUTO_REFS))
        for ref in AUTO_REFS:
            unit = self.board.unit(ref)
            self.assertTrue(unit.is_placed, ref)
            self.assertFalse(unit.needs_placed, ref)

    def test_report_matches_units(self):
        for p in self.report.placed:
            unit = self.board.unit(p.reference)
            self.assertEqual((p.x_mm, p.y_mm), unit.position)
            self.assertEqual(p.rotation_deg, unit.rotation_deg)

    def test_fixed_unit_untouched(self):
        j1 = self.board.unit("J1")
        self.assertEqual(j1.position, (4.0, 15.0))
        self.assertEqual(j1.rotation_deg, 0.0)
        self.assertNotIn("J1", self.report.modified)

    def test_positions_on_grid(self):
        for p in self.report.placed:
            self.assertEqual(p.x_mm, round(p.x_mm))
            self.assertEqual(p.y_mm, round(p.y_mm))

    def test_no_shared_cells(self):
        """No two units cover the same grid cell on the same side."""
        matrix, _ = build_placement_matrix(self.board, 1.0)
        for a, b in itertools.combinations(self.board.units, 2):
            if a.side is not b.side:
                continue
            _, cells_a = _cells(matrix, a)
            _, cells_b = _cells(matrix, b)
            self.assertFalse(cells_a & cells_b, f"{a.reference} overlaps {b.reference}")

    def test_inside_board_zone(self):
        matrix, _ = build_placement_matrix(self.board, 1.0)
        for ref in AUTO_REFS:
            rng, cells = _cells(matrix, self.board.unit(ref))
            self.assertFalse(rng.clamped, ref)
            for row, col in cells:
                self.assertTrue(matrix.get_cell(row, col, Side.FRONT) & CellFlag.ZONE,
                                f"{ref} leaves the board at {(row, col)}")

    def test_forbidden_rotation_kept(self):
        self.assertEqual(self.board.unit("D1").rotation_deg, 0.0)

    def test_free_area_reported(self):
        board_area = 40 * 30
        front = self.report.free_area[Side.FRONT].area
        back = self.report.free_area[Side.BACK].area
        self.assertLess(front, board_area)
        # only J1's through-hole pads reach the back
        self.assertLess(back, board_area)
        self.assertGreater(back, front)

    def test_matrix_released(self):
        self.assertIsNone(self.placer.context)
        self.assertIsNone(self.placer.free_area(Side.FRONT))


class TestSingleUnit(unittest.TestCase):

    def test_first_legal_cell_in_scan_order(self):
        unit = make_unit("U1", 2, 2, terminals=[
            Terminal("1", (-0.5, 0.0), size=(0.8, 0.8), net=5),
            Terminal("2", (0.5, 0.0), size=(0.8, 0.8), net=5),
        ])
        board = make_rect_board(20, 20, units=[unit])
        report = Autoplacer(board).autoplace_footprints([unit])
        self.assertIs(report.result, RunResult.COMPLETED)
        self.assertEqual(unit.position, (2.0, 2.0))
        self.assertEqual(unit.rotation_deg, 0.0)
        self.assertEqual(report.placed[0].cost, 0.0)

    def test_grid_pitch_override(self):
        unit = make_unit("U1", 2, 2)
        board = make_rect_board(20, 20, units=[unit])
        placer = Autoplacer(board, grid_pitch=0.5)
        self.assertEqual(placer.pitch, 0.5)
        placer.autoplace_footprints([unit])
        # half-pitch inflation is 0.25, so the unit clears the edge at 1.5
        self.assertEqual(unit.position, (1.5, 1.5))

    def test_grid_pitch_clamped(self):
        placer = Autoplacer(make_rect_board(10, 10), grid_pitch=0.01)
        self.assertEqual(placer.pitch, 0.25)

    def test_attracted_to_neighbour(self):
        anchor = make_unit("B", 2, 2, position=(25.0, 5.0),
                           terminals=[Terminal("1", (0.0, 0.0), net=1)], is_placed=True)
        mover = make_unit("A", 4, 2, terminals=[Terminal("1", (-1.5, 0.0), net=1)],
                          rotation_90=RotationPolicy.forbidden(),
                          rotation_180=RotationPolicy.forbidden())
        board = make_rect_board(30, 10, units=[anchor, mover])
        report = Autoplacer(board).autoplace_footprints([mover])
        self.assertEqual(mover.position, (19.0, 5.0))
        self.assertEqual(report.placed[0].cost, 7.5)
        self.assertEqual(anchor.position, (25.0, 5.0))


class TestOrientation(unittest.TestCase):

    def _mover_board(self, rotation_180):
        anchor = make_unit("B", 2, 2, position=(25.0, 5.0),
                           terminals=[Terminal("1", (0.0, 0.0), net=1)])
        mover = make_unit("A", 4, 2, terminals=[Terminal("1", (-1.5, 0.0), net=1)],
                          rotation_90=RotationPolicy.forbidden(),
                          rotation_180=rotation_180)
        return make_rect_board(30, 10, units=[anchor, mover]), mover

    def test_forbidden_rotation_never_used(self):
        board, mover = self._mover_board(RotationPolicy.from_cost_class(0))
        Autoplacer(board).autoplace_footprints([mover])
        self.assertEqual(mover.rotation_deg, 0.0)

    def test_free_rotation_taken_when_cheaper(self):
        board, mover = self._mover_board(RotationPolicy.free())
        report = Autoplacer(board).autoplace_footprints([mover])
        self.assertEqual(mover.rotation_deg, 180.0)
        self.assertEqual(mover.position, (19.0, 5.0))
        self.assertEqual(report.placed[0].cost, 4.5)

    def test_penalty_can_outweigh_gain(self):
        # 4.5 × 1.9 = 8.55 is worse than 7.5 unrotated
        board, mover = self._mover_board(RotationPolicy.from_cost_class(1))
        Autoplacer(board).autoplace_footprints([mover])
        self.assertEqual(mover.rotation_deg, 0.0)

    def test_rotation_needed_to_fit(self):
        unit = make_unit("U1", 4, 10)
        board = make_rect_board(30, 6, units=[unit])
        report = Autoplacer(board).autoplace_footprints([unit])
        self.assertIs(report.result, RunResult.COMPLETED)
        self.assertEqual(unit.rotation_deg, 90.0)

    def test_quarter_turn_back_wins(self):
        """Only the narrow orientations fit; 270° puts the pad nearest F1."""
        partner = make_unit("F1", 2, 2, position=(3.0, 2.0), is_placed=True,
                            terminals=[Terminal("1", (0.0, 0.0), net=1)])
        unit = make_unit("U1", 2, 2, terminals=[Terminal("1", (4.0, 0.0), net=1)])
        board = make_rect_board(6, 20, units=[partner, unit])
        report = Autoplacer(board).autoplace_footprints([unit])

        self.assertIs(report.result, RunResult.COMPLETED)
        self.assertEqual(unit.rotation_deg, 270.0)
        self.assertEqual(unit.position, (3.0, 10.0))
        # 90° could only reach 9.0 with the pad pointing away from F1
        self.assertEqual(report.placed[0].cost, 4.0)

    def test_rotation_needed_but_forbidden(self):
        unit = make_unit("U1", 4, 10,
                         rotation_90=RotationPolicy.forbidden(),
                         rotation_180=RotationPolicy.free())
        board = make_rect_board(30, 6, units=[unit])
        report = Autoplacer(board).autoplace_footprints([unit])
        self.assertIs(report.result, RunResult.ABORTED)
        self.assertEqual(unit.rotation_deg, 0.0)


class TestAbort(unittest.TestCase):

    def test_oversized_unit_aborts(self):
        big = make_unit("BIG", 50, 40)
        board = make_rect_board(40, 30, units=[big])
        placer = Autoplacer(board)
        report = placer.autoplace_footprints([big])

        self.assertIs(report.result, RunResult.ABORTED)
        self.assertFalse(report.ok)
        self.assertIn("BIG", report.error)
        self.assertIs(placer.state, PlacerState.ABORTED)
        self.assertEqual(report.placed, [])
        self.assertEqual(big.position, (0.0, 0.0))
        self.assertEqual(big.rotation_deg, 0.0)
        self.assertFalse(big.is_placed)

    def test_earlier_placements_kept(self):
        """Units committed before the failing one keep their placement."""
        anchor = make_unit("F1", 2, 2, position=(20.0, 15.0), is_placed=True,
                           terminals=[Terminal("1", (0.0, 0.0), net=1)])
        small = make_unit("S1", 2, 2, terminals=[Terminal("1", (0.0, 0.0), net=1)])
        big = make_unit("BIG", 50, 40)
        board = make_rect_board(40, 30, units=[anchor, small, big])
        report = Autoplacer(board).autoplace_footprints([small, big])

        # S1 is connected, so it goes first; BIG has no edges and fails
        self.assertIs(report.result, RunResult.ABORTED)
        self.assertEqual([p.reference for p in report.placed], ["S1"])
        self.assertTrue(small.is_placed)
        self.assertNotEqual(small.position, (0.0, 0.0))
        self.assertFalse(big.is_placed)
        self.assertTrue(big.needs_placed)


class TestCancel(unittest.TestCase):

    def test_cancel_after_first_unit(self):
        progress = RecordingProgress(stop_after=1)
        board, placer, report = _place_sensor_board(progress=progress)

        self.assertIs(report.result, RunResult.CANCELLED)
        self.assertIs(placer.state, PlacerState.CANCELLED)
        self.assertEqual(len(report.placed), 1)
        self.assertEqual(progress.advanced, 1)
        self.assertEqual(progress.max_progress, 4)
        self.assertEqual(progress.stages[0], "Autoplacing components...")
        self.assertEqual(progress.stages[1], f"Autoplacing {report.placed[0].reference}")

        waiting = [r for r in AUTO_REFS if r != report.placed[0].reference]
        for ref in waiting:
            unit = board.unit(ref)
            self.assertTrue(unit.needs_placed, ref)
            self.assertFalse(unit.is_placed, ref)
            self.assertEqual(unit.position, (0.0, 0.0))

    def test_progress_counts_every_unit(self):
        progress = RecordingProgress()
        _, _, report = _place_sensor_board(progress=progress)
        self.assertIs(report.result, RunResult.COMPLETED)
        self.assertEqual(progress.advanced, 4)


class TestRefresh(unittest.TestCase):

    def test_refresh_sequence(self):
        calls = []
        board = make_sensor_board()
        placer = Autoplacer(board, refresh=lambda unit: calls.append(
            (unit.reference if unit else None, placer.free_area(Side.FRONT).area)))
        report = placer.autoplace_footprints([board.unit(r) for r in AUTO_REFS])

        self.assertEqual(calls[0][0], None)
        self.assertEqual([ref for ref, _ in calls[1:]], [p.reference for p in report.placed])
        areas = [area for _, area in calls]
        self.assertEqual(areas, sorted(areas, reverse=True))
        self.assertEqual(len(set(areas)), len(areas))


class TestOffboard(unittest.TestCase):

    def _board(self):
        stray = make_unit("STRAY", 2, 2, position=(-50.0, -50.0))
        fixed = make_unit("FIX", 2, 2, position=(5.0, 5.0), is_placed=True)
        return make_rect_board(20, 20, units=[stray, fixed]), stray, fixed

    def test_offboard_units_placed(self):
        board, stray, fixed = self._board()
        report = Autoplacer(board).autoplace_footprints([], place_offboard=True)
        self.assertEqual(report.modified, ["STRAY"])
        self.assertEqual([p.reference for p in report.placed], ["STRAY"])
        x, y = stray.position
        self.assertTrue(0 < x < 20 and 0 < y < 20)
        self.assertEqual(fixed.position, (5.0, 5.0))

    def test_offboard_ignored_by_default(self):
        board, stray, _ = self._board()
        report = Autoplacer(board).autoplace_footprints([])
        self.assertIs(report.result, RunResult.COMPLETED)
        self.assertEqual(report.placed, [])
        self.assertEqual(stray.position, (-50.0, -50.0))

    def test_unit_not_on_board_skipped(self):
        board, _, _ = self._board()
        foreign = make_unit("X", 2, 2, position=(5.0, 15.0))
        commit = UnitCommit()
        report = Autoplacer(board).autoplace_footprints([foreign], commit)

        self.assertIs(report.result, RunResult.COMPLETED)
        self.assertEqual(report.modified, [])
        self.assertEqual(report.placed, [])
        self.assertEqual(len(commit), 0)
        self.assertFalse(foreign.needs_placed)
        self.assertEqual(foreign.position, (5.0, 15.0))

    def test_requested_and_offboard_recorded_once(self):
        board, stray, _ = self._board()
        commit = UnitCommit()
        Autoplacer(board).autoplace_footprints([stray], commit, place_offboard=True)
        self.assertEqual(len(commit), 1)


class TestFailure(unittest.TestCase):

    def test_degenerate_board(self):
        unit = make_unit("U1", 2, 2, position=(3.0, 0.0))
        board = Board(outline=[(0.0, 0.0), (5.0, 0.0), (10.0, 0.0)], units=[unit])
        commit = UnitCommit()
        placer = Autoplacer(board)
        report = placer.autoplace_footprints([unit], commit)
        self.assertIs(report.result, RunResult.FAILED)
        self.assertIs(placer.state, PlacerState.FAILED)
        self.assertEqual(len(commit), 0)
        self.assertEqual(unit.position, (3.0, 0.0))
        self.assertFalse(unit.needs_placed)

    def test_malformed_outline(self):
        class OpenBoard(Board):
            def outline_edges(self):
                return super().outline_edges()[:-1]

        unit = make_unit("U1", 2, 2)
        board = OpenBoard(outline=[(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)],
                          units=[unit])
        commit = UnitCommit()
        report = Autoplacer(board).autoplace_footprints([unit], commit)
        self.assertIs(report.result, RunResult.FAILED)
        self.assertIn("malformed", report.error)
        self.assertEqual(len(commit), 0)
        self.assertEqual(unit.position, (0.0, 0.0))


class TestInvalidGeometry(unittest.TestCase):
    """Outlines and courtyards that are not valid polygons still place."""

    def test_bowtie_outline(self):
        fixed = make_unit("F1", 2, 2, position=(16.0, 10.0), is_placed=True)
        unit = make_unit("U1", 2, 2)
        board = Board(outline=[(0.0, 0.0), (20.0, 20.0), (20.0, 0.0), (0.0, 20.0)],
                      units=[fixed, unit])
        report = Autoplacer(board).autoplace_footprints([unit])

        self.assertIs(report.result, RunResult.COMPLETED)
        # first position whose cells fit in the left triangle
        self.assertEqual(unit.position, (2.0, 6.0))
        self.assertFalse(unit.needs_placed)
        self.assertTrue(report.free_area[Side.FRONT].is_valid)

    def test_cutout_crossing_outline(self):
        unit = make_unit("U1", 2, 2)
        board = make_rect_board(20, 20, units=[unit])
        board.cutouts = [rect_outline(10, 10, origin=(15.0, 15.0))]
        report = Autoplacer(board).autoplace_footprints([unit])

        self.assertIs(report.result, RunResult.COMPLETED)
        self.assertEqual(unit.position, (2.0, 2.0))
        self.assertTrue(report.free_area[Side.BACK].is_valid)

    def test_bowtie_courtyard(self):
        fixed = make_unit("F1", 2, 2, position=(5.0, 5.0), is_placed=True)
        fixed.courtyard = [(-1.0, -1.0), (1.0, 1.0), (1.0, -1.0), (-1.0, 1.0)]
        unit = make_unit("U1", 2, 2)
        board = make_rect_board(20, 20, units=[fixed, unit])
        report = Autoplacer(board).autoplace_footprints([unit])

        self.assertIs(report.result, RunResult.COMPLETED)
        self.assertTrue(unit.is_placed)
        self.assertFalse(unit.needs_placed)


class TestCommit(unittest.TestCase):

    def test_each_unit_recorded_once(self):
        board = make_sensor_board()
        commit = UnitCommit()
        units = [board.unit(r) for r in AUTO_REFS]
        Autoplacer(board).autoplace_footprints(units + units[:2], commit)
        self.assertEqual(len(commit), 4)
        self.assertEqual([u.reference for u in commit.modified], AUTO_REFS)
        for snap in commit.snapshots:
            self.assertEqual(snap.position, (0.0, 0.0))
            self.assertFalse(snap.is_placed)

    def test_revert_restores_board(self):
        board = make_sensor_board()
        commit = UnitCommit()
        Autoplacer(board).autoplace_footprints([board.unit(r) for r in AUTO_REFS], commit)
        commit.revert()
        for ref in AUTO_REFS:
            unit = board.unit(ref)
            self.assertEqual(unit.position, (0.0, 0.0))
            self.assertEqual(unit.rotation_deg, 0.0)
            self.assertFalse(unit.is_placed)


if __name__ == "__main__":
    unittest.main()

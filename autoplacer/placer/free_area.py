"""Free-area bookkeeping — what is left of the board on each side.

Every unit stamped into the grid also has its courtyard, its inflated
footprint box and its inflated terminal pads subtracted from a per-side
free-area geometry.  The result is only used for diagnostics and
overlay drawing; legality is decided on the grid.
"""

from __future__ import annotations

from shapely.geometry import box as shapely_box
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from autoplacer.board.models import BOTH_SIDES, Side, Unit, valid_area
from autoplacer.geometry import inflate_rect


class FreeAreaTracker:
    """Per-side free area, starting from the full board shape."""

    def __init__(self, board_shape: BaseGeometry, pitch: float) -> None:
        self.board_shape = valid_area(board_shape)
        self.pitch = pitch
        self._free: dict[Side, BaseGeometry] = {side: self.board_shape for side in BOTH_SIDES}

    def build_unit_areas(self, unit: Unit, clearance: float) -> dict[Side, BaseGeometry]:
        """Area *unit* takes on each side it occupies.

        The footprint box is grown by half a cell plus *clearance*; each
        terminal pad by half a cell plus its own clearance.
        """
        parts: dict[Side, list[BaseGeometry]] = {side: [] for side in BOTH_SIDES}

        if len(unit.courtyard) >= 3:
            parts[unit.side].append(unit.courtyard_polygon())
        body = inflate_rect(unit.footprint_rect(), self.pitch / 2 + clearance)
        parts[unit.side].append(shapely_box(*body))

        for t in unit.terminals:
            pad = shapely_box(*inflate_rect(unit.terminal_rect(t),
                                            self.pitch / 2 + t.clearance_mm))
            for side in unit.terminal_sides(t):
                parts[side].append(pad)

        return {side: unary_union(geoms) for side, geoms in parts.items() if geoms}

    def subtract(self, areas: dict[Side, BaseGeometry]) -> None:
        for side, area in areas.items():
            self._free[side] = self._free[side].difference(area)

    def add_unit(self, unit: Unit, clearance: float) -> None:
        """Remove the area taken by *unit* from the free area."""
        self.subtract(self.build_unit_areas(unit, clearance))

    def free_area(self, side: Side) -> BaseGeometry:
        """Free area on *side* (shapely geometries are immutable)."""
        return self._free[side]

    def free_fraction(self, side: Side) -> float:
        """Share of the board area still free on *side*."""
        total = self.board_shape.area
        if total <= 0:
            return 0.0
        return self._free[side].area / total

"""Placement serialization — JSON conversion."""

from __future__ import annotations

from autoplacer.board.models import Board

from .models import PlacedUnit, PlacementReport, RunResult


def placement_to_dict(report: PlacementReport, board: Board) -> dict:
    """Serialize a PlacementReport (and the board outline) to a JSON-safe dict."""
    return {
        "result": report.result.value,
        "error": report.error,
        "units": [
            {
                "reference": p.reference,
                "x_mm": p.x_mm,
                "y_mm": p.y_mm,
                "rotation_deg": p.rotation_deg,
                "cost": p.cost,
            }
            for p in report.placed
        ],
        "modified": list(report.modified),
        "outline": [{"x": x, "y": y} for x, y in board.outline],
    }


def parse_placement(data: dict) -> PlacementReport:
    """Parse a placement dict back into a PlacementReport.

    Free-area geometry is not serialized and comes back empty.
    """
    placed = [
        PlacedUnit(
            reference=u["reference"],
            x_mm=u["x_mm"],
            y_mm=u["y_mm"],
            rotation_deg=u["rotation_deg"],
            cost=u.get("cost", 0.0),
        )
        for u in data["units"]
    ]
    return PlacementReport(
        result=RunResult(data.get("result", RunResult.COMPLETED.value)),
        placed=placed,
        modified=list(data.get("modified", [])),
        error=data.get("error"),
    )


def apply_placement(board: Board, report: PlacementReport) -> int:
    """Move the board's units to the positions in *report*.

    Returns the number of units updated.  Unknown references raise
    ``KeyError``.
    """
    for p in report.placed:
        unit = board.unit(p.reference)
        unit.move_to((p.x_mm, p.y_mm))
        unit.set_rotation(p.rotation_deg)
        unit.is_placed = True
        unit.needs_placed = False
    return len(report.placed)

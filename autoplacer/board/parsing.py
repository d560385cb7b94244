"""Board parsing — convert raw dicts/JSON into a Board."""

from __future__ import annotations

from .models import (
    Board, Obstacle, RotationPolicy, Side, Terminal, Unit,
)


def parse_board(data: dict) -> Board:
    """Parse a raw dict (from JSON / tool input) into a Board.

    Unit rotation costs (``rotation_cost_90``, ``rotation_cost_180``) are
    classes 0..10: 0 forbids the rotation, 10 allows it with no penalty.
    A missing class defaults to 10, matching a directly built ``Unit``.
    """
    return Board(
        outline=_parse_points(data["outline"]),
        units=[_parse_unit(u) for u in data.get("units", [])],
        obstacles=[_parse_obstacle(o) for o in data.get("obstacles", [])],
        cutouts=[_parse_points(c) for c in data.get("cutouts", [])],
    )


def _parse_points(data: list) -> list[tuple[float, float]]:
    """Accept ``[[x, y], ...]`` or ``[{"x": .., "y": ..}, ...]``."""
    points = []
    for v in data:
        if isinstance(v, dict):
            points.append((float(v["x"]), float(v["y"])))
        else:
            points.append((float(v[0]), float(v[1])))
    return points


def _parse_unit(u: dict) -> Unit:
    x, y = u["position"]
    return Unit(
        reference=u["reference"],
        position=(float(x), float(y)),
        courtyard=_parse_points(u.get("courtyard", [])),
        terminals=[_parse_terminal(t) for t in u.get("terminals", [])],
        rotation_deg=float(u.get("rotation_deg", 0.0)),
        side=Side[u.get("side", "front").upper()],
        rotation_90=RotationPolicy.from_cost_class(int(u.get("rotation_cost_90", 10))),
        rotation_180=RotationPolicy.from_cost_class(int(u.get("rotation_cost_180", 10))),
        is_placed=bool(u.get("is_placed", False)),
    )


def _parse_terminal(t: dict) -> Terminal:
    ox, oy = t["offset"]
    w, h = t.get("size", (1.0, 1.0))
    return Terminal(
        name=str(t["name"]),
        offset=(float(ox), float(oy)),
        size=(float(w), float(h)),
        net=int(t.get("net", 0)),
        through_hole=bool(t.get("through_hole", False)),
        clearance_mm=float(t.get("clearance_mm", 0.0)),
    )


def _parse_obstacle(o: dict) -> Obstacle:
    start = o["start"]
    end = o.get("end", start)
    return Obstacle(
        kind=o.get("kind", "segment"),
        start=(float(start[0]), float(start[1])),
        end=(float(end[0]), float(end[1])),
        width_mm=float(o.get("width_mm", 0.15)),
        layer=o.get("layer", "Dwgs.User"),
        radius=float(o.get("radius", 0.0)),
        start_angle=float(o.get("start_angle", 0.0)),
        sweep_angle=float(o.get("sweep_angle", 360.0)),
    )

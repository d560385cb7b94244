"""Connectivity cost of a unit at a trial offset."""

from __future__ import annotations

import math

from autoplacer.board.models import Unit
from autoplacer.geometry import Point

from .models import PlacementContext


def connection_cost(start: Point, end: Point) -> float:
    """Cost of one ratsnest line.

    Length plus a slope penalty: with ``dx >= dy`` the cost is
    ``hypot(dx, 2·dy)``, so horizontal and vertical lines cost their
    length and a 45° line costs the most relative to its length.
    """
    dx = abs(end[0] - start[0])
    dy = abs(end[1] - start[1])
    if dx < dy:
        dx, dy = dy, dx
    return math.hypot(dx, dy * 2.0)


def placement_ratsnest_cost(ctx: PlacementContext, unit: Unit, offset: Point) -> float:
    """Sum of connection costs from each terminal (moved by *offset*) to
    the nearest same-net terminal on another placed unit.

    Terminals with no such neighbour contribute nothing.
    """
    total = 0.0
    for terminal in unit.terminals:
        nearest = ctx.connectivity.nearest_same_net_terminal(
            unit, terminal, offset, ctx.board_box,
        )
        if nearest is None:
            continue
        total += connection_cost(unit.terminal_position(terminal, offset), nearest.position)
    return total

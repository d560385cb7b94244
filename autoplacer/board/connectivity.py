"""Net connectivity for placement ordering and ratsnest costing.

The ratsnest of a net is its minimum spanning tree over the current
terminal positions of every unit carrying that net.  The placer only
needs two narrow queries from it:

  edges_for_unit             how many ratsnest edges leave a unit
  nearest_same_net_terminal  closest terminal on another placed unit
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import NamedTuple, Protocol

from autoplacer.geometry import Point, Rect, rect_contains_point

from .models import Board, Terminal, Unit


class NearestTerminal(NamedTuple):
    unit: Unit
    terminal: Terminal
    position: Point


@dataclass
class RatsnestEdge:
    """One unrouted connection between two terminals of a net."""

    net: int
    unit_a: Unit
    terminal_a: Terminal
    unit_b: Unit
    terminal_b: Terminal

    @property
    def internal(self) -> bool:
        return self.unit_a is self.unit_b


class ConnectivityProvider(Protocol):
    """What the placer asks of the connectivity service."""

    def recalculate_ratsnest(self) -> None: ...

    def edges_for_unit(self, unit: Unit) -> int: ...

    def nearest_same_net_terminal(
        self, unit: Unit, terminal: Terminal,
        offset: Point, within: Rect | None = None,
    ) -> NearestTerminal | None: ...


class Connectivity:
    """Ratsnest built from the board's units, grouped by net code.

    Nets with a non-positive code are unconnected and never appear in
    the ratsnest.
    """

    def __init__(self, board: Board) -> None:
        self.board = board
        self._by_net: dict[int, list[tuple[Unit, Terminal]]] = {}
        self._edges: list[RatsnestEdge] = []
        self.rebuild()

    def rebuild(self) -> None:
        """Re-index terminals by net (call after units are added)."""
        self._by_net.clear()
        for unit in self.board.units:
            for t in unit.terminals:
                if t.net > 0:
                    self._by_net.setdefault(t.net, []).append((unit, t))

    def net_terminals(self, net: int) -> list[tuple[Unit, Terminal]]:
        return list(self._by_net.get(net, ()))

    # ── Ratsnest ───────────────────────────────────────────────────

    def recalculate_ratsnest(self) -> None:
        """Rebuild the spanning tree of every net from current positions."""
        self._edges = []
        for net, members in self._by_net.items():
            self._edges.extend(_minimum_spanning_edges(net, members))

    @property
    def edges(self) -> list[RatsnestEdge]:
        return list(self._edges)

    def edges_for_unit(self, unit: Unit) -> int:
        """Count ratsnest edges with exactly one end on *unit*."""
        return sum(
            1 for e in self._edges
            if not e.internal and (e.unit_a is unit or e.unit_b is unit)
        )

    # ── Nearest terminal ───────────────────────────────────────────

    def nearest_same_net_terminal(
        self,
        unit: Unit,
        terminal: Terminal,
        offset: Point = (0.0, 0.0),
        within: Rect | None = None,
    ) -> NearestTerminal | None:
        """Closest same-net terminal on another unit.

        *offset* displaces *terminal* (a trial move of *unit*).  When
        *within* is given, only units whose position lies inside it are
        considered placed.
        """
        if terminal.net <= 0:
            return None
        px, py = unit.terminal_position(terminal, offset)
        best: NearestTerminal | None = None
        best_dist = math.inf
        for other, t in self._by_net.get(terminal.net, ()):
            if other is unit:
                continue
            if within is not None and not rect_contains_point(within, other.position):
                continue
            ox, oy = other.terminal_position(t)
            dist = math.hypot(px - ox, py - oy)
            if dist < best_dist:
                best_dist = dist
                best = NearestTerminal(other, t, (ox, oy))
        return best


def _minimum_spanning_edges(
    net: int, members: list[tuple[Unit, Terminal]],
) -> list[RatsnestEdge]:
    """Prim's MST over terminal positions (O(n²), nets are small)."""
    n = len(members)
    if n < 2:
        return []
    positions = [u.terminal_position(t) for u, t in members]
    in_tree = [False] * n
    best_dist = [math.inf] * n
    parent = [-1] * n
    best_dist[0] = 0.0
    edges: list[RatsnestEdge] = []
    for _ in range(n):
        cur = min((i for i in range(n) if not in_tree[i]), key=lambda i: best_dist[i])
        in_tree[cur] = True
        if parent[cur] >= 0:
            pu, pt = members[parent[cur]]
            cu, ct = members[cur]
            edges.append(RatsnestEdge(net, pu, pt, cu, ct))
        cx, cy = positions[cur]
        for i in range(n):
            if in_tree[i]:
                continue
            d = math.hypot(positions[i][0] - cx, positions[i][1] - cy)
            if d < best_dist[i]:
                best_dist[i] = d
                parent[i] = cur
    return edges

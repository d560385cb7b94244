"""Board model — the read/query side the placer works against.

Submodules:
  models        Board, Unit, Terminal, Obstacle, Side, RotationPolicy.
  connectivity  Net ratsnest, per-unit edge counts, nearest same-net terminal.
  parsing       Dict/JSON conversion (parse_board).
"""

from .models import (
    Board, Unit, Terminal, Obstacle,
    Side, BOTH_SIDES, EDGE_LAYER,
    RotationMode, RotationPolicy,
)
from .connectivity import Connectivity, ConnectivityProvider, NearestTerminal, RatsnestEdge
from .parsing import parse_board

__all__ = [
    # Models
    "Board", "Unit", "Terminal", "Obstacle",
    "Side", "BOTH_SIDES", "EDGE_LAYER",
    "RotationMode", "RotationPolicy",
    # Connectivity
    "Connectivity", "ConnectivityProvider", "NearestTerminal", "RatsnestEdge",
    # Parsing
    "parse_board",
]

"""Placer — positions board units on a two-sided placement grid.

Submodules:
  models        Result types, PlacementError, run context, constants.
  matrix        Two-sided cell grid with flag and cost planes.
  raster        Board outline and obstacle rasterization.
  free_area     Per-side free-area geometry (diagnostics only).
  evaluator     Candidate legality and keep-out cost.
  ratsnest      Connection cost of a unit at a trial offset.
  search        Exhaustive grid search at one orientation.
  commit        Undo log for units the placer modifies.
  engine        Orchestrator (Autoplacer.autoplace_footprints).
  serialization JSON conversion (placement_to_dict, parse_placement).
"""

from .models import (
    PlacedUnit, PlacementReport, PlacementError, PlacementContext,
    PlacerState, RunResult, Verdict, Evaluation, SearchResult,
)
from .matrix import CellFlag, PlacementMatrix, WriteMode
from .raster import build_placement_matrix
from .search import find_optimal_placement
from .commit import UnitCommit, UnitSnapshot
from .engine import Autoplacer
from .serialization import placement_to_dict, parse_placement, apply_placement

__all__ = [
    # Models
    "PlacedUnit", "PlacementReport", "PlacementError", "PlacementContext",
    "PlacerState", "RunResult", "Verdict", "Evaluation", "SearchResult",
    # Grid
    "CellFlag", "PlacementMatrix", "WriteMode", "build_placement_matrix",
    # Search / engine
    "find_optimal_placement", "Autoplacer",
    # Commit
    "UnitCommit", "UnitSnapshot",
    # Serialization
    "placement_to_dict", "parse_placement", "apply_placement",
]

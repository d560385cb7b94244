"""Placer result types, errors, run context and configuration constants."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Protocol

from shapely.geometry.base import BaseGeometry

from autoplacer.board.connectivity import ConnectivityProvider
from autoplacer.board.models import Side
from autoplacer.config import PLACER_RULES, PlacerRules
from autoplacer.geometry import Point, Rect

if TYPE_CHECKING:
    from .free_area import FreeAreaTracker
    from .matrix import PlacementMatrix


# ── Outcomes ───────────────────────────────────────────────────────


class RunResult(Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ABORTED = "aborted"         # a unit had no legal placement
    FAILED = "failed"           # the grid could not be built

    @property
    def ok(self) -> bool:
        return self is RunResult.COMPLETED


class PlacerState(Enum):
    IDLE = auto()
    GRID_BUILT = auto()
    SELECTING = auto()
    EVALUATING = auto()
    COMMITTING = auto()
    DONE = auto()
    CANCELLED = auto()
    ABORTED = auto()
    FAILED = auto()


class Verdict(Enum):
    LEGAL = "legal"
    OUT_OF_BOARD = "out_of_board"
    OCCUPIED = "occupied"


@dataclass(frozen=True)
class Evaluation:
    """Outcome of testing one unit at one trial offset."""

    verdict: Verdict
    cost: int = 0

    @property
    def legal(self) -> bool:
        return self.verdict is Verdict.LEGAL


@dataclass(frozen=True)
class SearchResult:
    """Best position found for a unit at one orientation."""

    position: Point
    cost: float
    candidates: int         # number of legal candidates scored


@dataclass
class PlacedUnit:
    """A committed placement, as reported back to the caller."""

    reference: str
    x_mm: float
    y_mm: float
    rotation_deg: float
    cost: float


@dataclass
class PlacementReport:
    """Everything a placement run produced."""

    result: RunResult
    placed: list[PlacedUnit] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    error: str | None = None
    free_area: dict[Side, BaseGeometry] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.result.ok


class PlacementError(Exception):
    """Raised when a unit cannot be legally placed."""

    def __init__(self, reference: str, reason: str) -> None:
        self.reference = reference
        self.reason = reason
        super().__init__(f"Cannot place '{reference}': {reason}")


# ── Caller hooks ───────────────────────────────────────────────────


class ProgressReporter(Protocol):
    def report_stage(self, text: str) -> None: ...

    def set_max_progress(self, count: int) -> None: ...

    def advance(self) -> None: ...

    def keep_going(self) -> bool: ...


# ── Run context ────────────────────────────────────────────────────


@dataclass
class PlacementContext:
    """State owned by one placement run, threaded through the search."""

    matrix: "PlacementMatrix"
    free_area: "FreeAreaTracker"
    connectivity: ConnectivityProvider
    rules: PlacerRules = PLACER_RULES

    @property
    def pitch(self) -> float:
        return self.matrix.pitch

    @property
    def board_box(self) -> Rect:
        return self.matrix.board_box


# ── Configuration ──────────────────────────────────────────────────

# Derived from shared PlacerRules (autoplacer.config).
GRID_PITCH_MM = PLACER_RULES.grid_pitch_mm

ROTATION_TRIALS = (180, 90, 270)    # tried after the current orientation

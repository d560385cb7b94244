"""Shared placement rules for the autoplacer.

These values describe the placement grid and the keep-out gradient
written around every stamped unit.  The matrix, the evaluator and the
orchestrator all derive their parameters from this single source of
truth.

Change a value here and every stage stays in sync automatically.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PlacerRules:
    """Design rules for automatic placement.

    All distances are in millimetres.
    """

    grid_pitch_mm: float = 1.0
    """Placement-grid cell size (trial positions are multiples of it)."""

    min_grid_pitch_mm: float = 0.25
    """Smallest pitch the engine accepts.  Finer values are clamped."""

    keepout_gain: int = 16
    """Divisor turning ``pitch × terminal_count`` into a keep-out band
    width.  A unit with 16 terminals gets a one-pitch band."""

    keepout_cost: int = 500
    """Cost written into cells covered by a placed unit.  The band around
    the unit ramps linearly from this value down to zero."""

    orientation_penalty: tuple[float, ...] = (
        2.0, 1.9, 1.8, 1.7, 1.6, 1.5, 1.4, 1.3, 1.2, 1.1, 1.0,
    )
    """Cost multiplier indexed by rotation cost class (0 = rotation
    prohibited, 10 = rotation free with no penalty)."""

    # ── Derived helpers ────────────────────────────────────────────

    def effective_pitch(self, pitch_mm: float | None = None) -> float:
        """Return *pitch_mm* (or the default pitch) floor-clamped to the
        minimum pitch."""
        pitch = self.grid_pitch_mm if pitch_mm is None else pitch_mm
        return max(pitch, self.min_grid_pitch_mm)

    def keepout_margin(self, pitch_mm: float, terminal_count: int) -> float:
        """Width of the keep-out band around a unit with
        *terminal_count* terminals."""
        return pitch_mm * terminal_count / self.keepout_gain


# Module-level singleton — importable everywhere.
PLACER_RULES = PlacerRules()

"""Autoplacer — automatic footprint placement on a printed circuit board.

Packages:

  geometry  — points, axis-aligned rectangles, rotation helpers
  board     — board outline, units, terminals, obstacles, connectivity
  placer    — placement grid, candidate search, orchestrator
  config    — shared placement rules (grid pitch, keep-out costs)
"""

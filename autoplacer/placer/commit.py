"""Commit log — remembers units before the placer modifies them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from autoplacer.board.models import Unit
from autoplacer.geometry import Point


class Commit(Protocol):
    def modify(self, unit: Unit) -> None: ...


@dataclass(frozen=True)
class UnitSnapshot:
    """State of a unit at the time it was first recorded."""

    reference: str
    position: Point
    rotation_deg: float
    needs_placed: bool
    is_placed: bool

    @classmethod
    def of(cls, unit: Unit) -> "UnitSnapshot":
        return cls(unit.reference, unit.position, unit.rotation_deg,
                   unit.needs_placed, unit.is_placed)


class UnitCommit:
    """In-memory commit: one snapshot per modified unit, in call order.

    Recording the same unit twice keeps the first snapshot.
    """

    def __init__(self) -> None:
        self._entries: dict[int, tuple[Unit, UnitSnapshot]] = {}

    def modify(self, unit: Unit) -> None:
        if id(unit) not in self._entries:
            self._entries[id(unit)] = (unit, UnitSnapshot.of(unit))

    @property
    def modified(self) -> list[Unit]:
        return [unit for unit, _ in self._entries.values()]

    @property
    def snapshots(self) -> list[UnitSnapshot]:
        return [snap for _, snap in self._entries.values()]

    def __len__(self) -> int:
        return len(self._entries)

    def revert(self) -> None:
        """Put every recorded unit back the way it was."""
        for unit, snap in self._entries.values():
            unit.move_to(snap.position)
            unit.set_rotation(snap.rotation_deg)
            unit.needs_placed = snap.needs_placed
            unit.is_placed = snap.is_placed

"""In-memory picture of the roster.

The logistics and repair readers update one ``GameState`` at the same time
without a lock. That holds only while they write disjoint fields:
``Echelon.logistics_assignment`` for one, ``Member.repair_eta`` for the other.
A reader that writes a field someone else writes needs its own serialization.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .catalog import LogisticsSupport
from .errors import RosterIndexError

DEFAULT_ECHELONS = 10
DEFAULT_MEMBERS = 5


@dataclass(frozen=True)
class Assignment:
    logistics_support: LogisticsSupport
    eta: datetime


@dataclass
class Member:
    repair_eta: datetime | None = None


@dataclass
class Echelon:
    number: int
    members: list[Member] = field(default_factory=list)
    logistics_assignment: Assignment | None = None

    def member(self, slot: int) -> Member:
        """Member at a 0-based slot."""
        if slot < 0 or slot >= len(self.members):
            raise RosterIndexError(
                f"Echelon {self.number} has no member slot {slot} (0..{len(self.members) - 1})"
            )
        return self.members[slot]


@dataclass
class GameState:
    echelons: list[Echelon]
    requires_update: bool = True

    @classmethod
    def create(cls, echelons: int = DEFAULT_ECHELONS, members: int = DEFAULT_MEMBERS) -> GameState:
        return cls(
            echelons=[
                Echelon(number=n, members=[Member() for _ in range(members)])
                for n in range(1, echelons + 1)
            ]
        )

    def echelon(self, number: int) -> Echelon:
        """Echelon by its 1-based number as shown in game."""
        if number < 1 or number > len(self.echelons):
            raise RosterIndexError(f"Echelon {number} outside 1..{len(self.echelons)}")
        return self.echelons[number - 1]

    def assignments(self) -> dict[int, Assignment]:
        return {
            e.number: e.logistics_assignment
            for e in self.echelons
            if e.logistics_assignment is not None
        }

    def repair_etas(self) -> dict[int, dict[int, datetime]]:
        etas: dict[int, dict[int, datetime]] = {}
        for e in self.echelons:
            timers = {
                slot: m.repair_eta for slot, m in enumerate(e.members) if m.repair_eta is not None
            }
            if timers:
                etas[e.number] = timers
        return etas

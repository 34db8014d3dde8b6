"""Apply freshly parsed records to the shared state.

Each apply clears every field of its kind across the roster and then writes the
new records, so an echelon missing from the screenshot reads as idle. All
targets are resolved before the clear; a bad index leaves the state untouched.
"""

from __future__ import annotations

import logging

from .catalog import LogisticsCatalog
from .records import LogisticsRecord, RepairRecord
from .state import Assignment, GameState, Member

_logger = logging.getLogger(__name__)


def apply_logistics(
    state: GameState, records: list[LogisticsRecord], catalog: LogisticsCatalog
) -> None:
    targets = [
        (state.echelon(r.echelon), catalog[r.catalog_index], r) for r in records
    ]

    for echelon in state.echelons:
        echelon.logistics_assignment = None

    for echelon, support, record in targets:
        _logger.info(
            "Echelon %d is doing logistics support %s, ETA: %s",
            echelon.number,
            support.name,
            record.eta.strftime("%Y-%m-%d %H:%M:%S"),
        )
        echelon.logistics_assignment = Assignment(logistics_support=support, eta=record.eta)


def apply_repairs(state: GameState, records: list[RepairRecord]) -> None:
    targets: list[tuple[Member, RepairRecord]] = [
        (state.echelon(r.echelon).member(r.slot), r) for r in records
    ]

    for echelon in state.echelons:
        for member in echelon.members:
            member.repair_eta = None

    for member, record in targets:
        member.repair_eta = record.eta

    by_echelon: dict[int, dict[int, str]] = {}
    for record in records:
        by_echelon.setdefault(record.echelon, {})[record.slot] = str(record.duration)
    for number, timers in sorted(by_echelon.items()):
        _logger.info("Echelon %d has repair timers: %s", number, timers)

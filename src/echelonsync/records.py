"""Grammars for recognized status-screen text.

Logistics and repair text are treated differently when the grammar does not
match: a logistics row is dropped, a repair timer reads as zero. Both behaviors
are relied upon by callers, so keep them apart.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from .errors import RecordParseError

_logger = logging.getLogger(__name__)

LOGISTICS_RE = re.compile(r"(\d) In logistics (\d) - (\d) (\d\d):(\d\d):(\d\d)")
TIMER_RE = re.compile(r"(\d\d):(\d\d):(\d\d)")


@dataclass(frozen=True)
class LogisticsRecord:
    echelon: int
    chapter: int
    number: int
    duration: timedelta
    eta: datetime

    @property
    def catalog_index(self) -> int:
        return catalog_index(self.chapter, self.number)


@dataclass(frozen=True)
class RepairRecord:
    echelon: int
    slot: int
    duration: timedelta
    eta: datetime


def catalog_index(chapter: int, number: int) -> int:
    return chapter * 4 + number - 1


def _duration(hours: str, minutes: str, seconds: str) -> timedelta:
    return timedelta(hours=int(hours), minutes=int(minutes), seconds=int(seconds))


def parse_logistics(echelon_text: str, status_text: str, now: datetime) -> LogisticsRecord | None:
    text = f"{echelon_text} {status_text}"
    m = LOGISTICS_RE.fullmatch(text)
    if m is None:
        _logger.debug("Dropping unrecognized logistics text: %r", text)
        return None
    echelon, chapter, number, hours, minutes, seconds = m.groups()
    duration = _duration(hours, minutes, seconds)
    return LogisticsRecord(
        echelon=int(echelon),
        chapter=int(chapter),
        number=int(number),
        duration=duration,
        eta=now + duration,
    )


def parse_timer(text: str) -> timedelta:
    """Duration shown by a repair timer; anything else (idle, blank, noise) is zero."""
    m = TIMER_RE.fullmatch(text)
    if m is None:
        return timedelta(0)
    return _duration(*m.groups())


def parse_echelon_number(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        raise RecordParseError(f"Echelon number is not an integer: {text!r}", text=text) from None


def parse_repair(
    echelon_text: str, timer_texts: dict[int, str], now: datetime
) -> list[RepairRecord]:
    echelon = parse_echelon_number(echelon_text)
    records = []
    for slot in sorted(timer_texts):
        duration = parse_timer(timer_texts[slot])
        records.append(RepairRecord(echelon=echelon, slot=slot, duration=duration, eta=now + duration))
    return records

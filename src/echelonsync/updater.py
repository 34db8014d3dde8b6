"""Resynchronize ``GameState`` from one screenshot of the home status screen.

A pass captures a single frame and hands it to the logistics reader and the
repair reader, which run concurrently and each write their own fields of the
state. ``requires_update`` is cleared only when both readers finish; any
failure propagates and leaves it set so the next ``execute`` tries again.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

import numpy as np

from .adb_client import ScreenshotSource
from .catalog import LogisticsCatalog
from .debug import save_entries_debug
from .detector import MatchResult
from .dispatch import RecognitionDispatcher, join_all
from .layout import (
    LOGISTICS,
    REPAIR,
    TIMER_FIELD_PREFIX,
    LayoutDescriptor,
    Rect,
    build_entries,
    default_logistics_layout,
    default_repair_layout,
)
from .merge import apply_logistics, apply_repairs
from .records import LogisticsRecord, RepairRecord, parse_logistics, parse_repair
from .state import GameState

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class MarkerMatcher(Protocol):
    async def match(
        self, frame: np.ndarray, markers: list[str], region: Rect
    ) -> list[MatchResult]: ...


class Navigator(Protocol):
    def check_logistics(self) -> None: ...

    def ensure_status_screen(self) -> None: ...


class NullNavigator:
    """For when the status screen is already in view, e.g. a saved screenshot."""

    def check_logistics(self) -> None:
        return None

    def ensure_status_screen(self) -> None:
        return None


class StatusUpdater:
    def __init__(
        self,
        source: ScreenshotSource,
        matcher: MarkerMatcher,
        dispatcher: RecognitionDispatcher,
        catalog: LogisticsCatalog,
        navigator: Navigator | None = None,
        layouts: dict[str, LayoutDescriptor] | None = None,
        clock: Callable[[], datetime] = _utcnow,
        debug_dir: str = "",
    ) -> None:
        self.source = source
        self.matcher = matcher
        self.dispatcher = dispatcher
        self.catalog = catalog
        self.navigator = navigator or NullNavigator()
        self.layouts = {
            LOGISTICS: default_logistics_layout(),
            REPAIR: default_repair_layout(),
        }
        self.layouts.update(layouts or {})
        self.clock = clock
        self.debug_dir = debug_dir

    async def execute(self, state: GameState) -> None:
        await asyncio.to_thread(self.navigator.check_logistics)
        if state.requires_update:
            await self.update(state)

    async def update(self, state: GameState) -> None:
        await asyncio.to_thread(self.navigator.ensure_status_screen)
        _logger.info("Updating game state")
        frame = await asyncio.to_thread(self.source.capture_frame)
        try:
            await join_all([self.read_logistics(frame, state), self.read_repairs(frame, state)])
        except Exception:
            _logger.warning("Game state update failed; it will be retried on the next run")
            raise
        state.requires_update = False
        _logger.info("Finished updating game state")

    async def _find_entries(self, frame: np.ndarray, layout: LayoutDescriptor) -> list[dict[str, str]]:
        matches = await self.matcher.match(frame, layout.markers, layout.search)
        if self.debug_dir:
            await asyncio.to_thread(save_entries_debug, frame, matches, layout, self.debug_dir)
        entries = build_entries(frame, matches, layout)
        return await self.dispatcher.recognize_entries(entries, layout)

    async def read_logistics(self, frame: np.ndarray, state: GameState) -> list[LogisticsRecord]:
        _logger.info("Reading logistics support status")
        texts = await self._find_entries(frame, self.layouts[LOGISTICS])
        now = self.clock()
        records = []
        for text in texts:
            record = parse_logistics(text["echelon"], text["status"], now)
            if record is not None:
                records.append(record)
        apply_logistics(state, records, self.catalog)
        return records

    async def read_repairs(self, frame: np.ndarray, state: GameState) -> list[RepairRecord]:
        _logger.info("Reading repair status")
        layout = self.layouts[REPAIR]
        texts = await self._find_entries(frame, layout)
        now = self.clock()
        slots = layout.timer_slots()
        records: list[RepairRecord] = []
        for text in texts:
            timers = {slot: text[f"{TIMER_FIELD_PREFIX}{slot}"] for slot in slots}
            records.extend(parse_repair(text["echelon"], timers, now))
        apply_repairs(state, records)
        return records

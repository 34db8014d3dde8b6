from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path

import numpy as np
import pytest

from echelonsync import updater as updater_module
from echelonsync.catalog import LogisticsCatalog
from echelonsync.detector import MatchResult
from echelonsync.dispatch import RecognitionDispatcher
from echelonsync.errors import RecognitionError
from echelonsync.layout import Rect
from echelonsync.state import Assignment, GameState
from echelonsync.updater import StatusUpdater

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)

# Logistics markers at (400, 100) and (400, 400): rows start at (257, 78) and
# (257, 378). Repair markers at (350, 500) and (350, 650): rows start at
# (239, 488) and (239, 638). Each field crop is tagged by the value of its
# top-left pixel, which the fake recognizer maps back to text.
LOGISTICS_BOXES = [(400, 100), (400, 400)]
REPAIR_BOXES = {"repairing": [(350, 500)], "standby": [(350, 650)]}
CODES = {
    (257, 103): 1,
    (371, 100): 2,
    (257, 403): 3,
    (371, 400): 4,
    (239, 513): 5,
    (350, 570): 6,
    (526, 570): 7,
    (239, 663): 8,
}
TEXTS = {
    1: "1",
    2: "In logistics 1 - 2 00:10:00",
    3: "4",
    4: "In logistics 3 - 1 02:00:00",
    5: "2",
    6: "01:00:00",
    7: "Idle",
    8: "3",
}


def _frame() -> np.ndarray:
    frame = np.zeros((900, 1400, 3), dtype=np.uint8)
    for (x, y), code in CODES.items():
        frame[y, x] = code
    return frame


class _FakeSource:
    def __init__(self, frame: np.ndarray) -> None:
        self.frame = frame
        self.captures = 0

    def capture_frame(self) -> np.ndarray:
        self.captures += 1
        return self.frame


class _FakeMatcher:
    def __init__(self, boxes: dict[str, list[tuple[int, int]]]) -> None:
        self.boxes = boxes

    async def match(self, frame: np.ndarray, markers: list[str], region: Rect) -> list[MatchResult]:
        return [
            MatchResult(name=marker, confidence=1.0, x=x, y=y, w=40, h=40)
            for marker in markers
            for x, y in self.boxes.get(marker, [])
        ]


class _CodeRecognizer:
    def __init__(self, texts: dict[int, str], fail_on: int | None = None) -> None:
        self.texts = texts
        self.fail_on = fail_on

    def recognize(self, image: np.ndarray, config: str) -> str:
        code = int(image[0, 0, 0])
        if code == self.fail_on:
            raise RecognitionError("tesseract crashed")
        return self.texts.get(code, "")


class _RecordingNavigator:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def check_logistics(self) -> None:
        self.calls.append("check_logistics")

    def ensure_status_screen(self) -> None:
        self.calls.append("ensure_status_screen")


def _updater(
    boxes: dict[str, list[tuple[int, int]]] | None = None,
    fail_on: int | None = None,
    navigator: _RecordingNavigator | None = None,
) -> tuple[StatusUpdater, _FakeSource]:
    if boxes is None:
        boxes = {"logistics": LOGISTICS_BOXES, **REPAIR_BOXES}
    source = _FakeSource(_frame())
    updater = StatusUpdater(
        source=source,
        matcher=_FakeMatcher(boxes),
        dispatcher=RecognitionDispatcher(_CodeRecognizer(TEXTS, fail_on)),
        catalog=LogisticsCatalog.default(),
        navigator=navigator,
        clock=lambda: NOW,
    )
    return updater, source


def _snapshot(state: GameState) -> list[tuple[Assignment | None, list[datetime | None]]]:
    return [(e.logistics_assignment, [m.repair_eta for m in e.members]) for e in state.echelons]


@pytest.mark.asyncio
async def test_logistics_end_to_end() -> None:
    updater, source = _updater(boxes={"logistics": LOGISTICS_BOXES})
    state = GameState.create()
    catalog = LogisticsCatalog.default()
    state.echelon(7).logistics_assignment = Assignment(catalog[0], NOW)

    await updater.update(state)

    assignments = state.assignments()
    assert set(assignments) == {1, 4}
    assert assignments[1].logistics_support.name == "1-2"
    assert assignments[1].eta == NOW + timedelta(minutes=10)
    assert assignments[4].logistics_support.name == "3-1"
    assert assignments[4].eta == NOW + timedelta(hours=2)
    assert state.requires_update is False
    assert source.captures == 1


@pytest.mark.asyncio
async def test_repair_rows_from_both_markers() -> None:
    updater, _ = _updater()
    state = GameState.create()
    state.echelon(9).members[2].repair_eta = NOW - timedelta(hours=1)

    await updater.update(state)

    etas = state.repair_etas()
    assert set(etas) == {2, 3}
    assert etas[2][0] == NOW + timedelta(hours=1)
    assert etas[2][1] == NOW
    assert etas[3] == {slot: NOW for slot in range(5)}


@pytest.mark.asyncio
async def test_concurrent_pass_matches_sequential_passes() -> None:
    concurrent_state = GameState.create()
    updater, _ = _updater()
    await updater.update(concurrent_state)

    for order in (("read_logistics", "read_repairs"), ("read_repairs", "read_logistics")):
        state = GameState.create()
        updater, source = _updater()
        frame = source.capture_frame()
        for name in order:
            await getattr(updater, name)(frame, state)
        assert _snapshot(state) == _snapshot(concurrent_state)


@pytest.mark.asyncio
async def test_failure_keeps_the_update_flag() -> None:
    updater, _ = _updater(fail_on=4)
    state = GameState.create()

    with pytest.raises(RecognitionError):
        await updater.update(state)

    assert state.requires_update is True


@pytest.mark.asyncio
async def test_failed_logistics_read_leaves_previous_assignments() -> None:
    updater, _ = _updater(boxes={"logistics": LOGISTICS_BOXES}, fail_on=2)
    state = GameState.create()
    catalog = LogisticsCatalog.default()
    state.echelon(7).logistics_assignment = Assignment(catalog[0], NOW)

    with pytest.raises(RecognitionError):
        await updater.update(state)

    assert set(state.assignments()) == {7}


@pytest.mark.asyncio
async def test_nothing_detected_clears_everything() -> None:
    updater, _ = _updater(boxes={})
    state = GameState.create()
    catalog = LogisticsCatalog.default()
    state.echelon(2).logistics_assignment = Assignment(catalog[3], NOW)
    state.echelon(2).members[0].repair_eta = NOW

    await updater.update(state)

    assert state.assignments() == {}
    assert state.repair_etas() == {}
    assert state.requires_update is False


@pytest.mark.asyncio
async def test_execute_skips_update_when_state_is_fresh() -> None:
    navigator = _RecordingNavigator()
    updater, source = _updater(navigator=navigator)
    state = GameState.create()
    state.requires_update = False

    await updater.execute(state)

    assert navigator.calls == ["check_logistics"]
    assert source.captures == 0


@pytest.mark.asyncio
async def test_execute_updates_stale_state() -> None:
    navigator = _RecordingNavigator()
    updater, source = _updater(navigator=navigator)
    state = GameState.create()

    await updater.execute(state)

    assert navigator.calls == ["check_logistics", "ensure_status_screen"]
    assert source.captures == 1
    assert state.requires_update is False


@pytest.mark.asyncio
async def test_debug_screenshots_are_saved(tmp_path: Path) -> None:
    source = _FakeSource(_frame())
    updater = StatusUpdater(
        source=source,
        matcher=_FakeMatcher({"logistics": LOGISTICS_BOXES}),
        dispatcher=RecognitionDispatcher(_CodeRecognizer(TEXTS)),
        catalog=LogisticsCatalog.default(),
        clock=lambda: NOW,
        debug_dir=str(tmp_path / "shots"),
    )

    await updater.update(GameState.create())

    names = sorted(p.name.rsplit("_", 1)[0] for p in (tmp_path / "shots").glob("*.png"))
    assert names == ["status_logistics", "status_repair"]


@pytest.mark.asyncio
async def test_debug_screenshots_are_written_off_the_event_loop(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    loop_thread = threading.get_ident()
    writer_threads: list[int] = []

    def record_thread(*args: object) -> str:
        writer_threads.append(threading.get_ident())
        return ""

    monkeypatch.setattr(updater_module, "save_entries_debug", record_thread)
    updater = StatusUpdater(
        source=_FakeSource(_frame()),
        matcher=_FakeMatcher({}),
        dispatcher=RecognitionDispatcher(_CodeRecognizer(TEXTS)),
        catalog=LogisticsCatalog.default(),
        clock=lambda: NOW,
        debug_dir=str(tmp_path),
    )

    await updater.update(GameState.create())

    assert len(writer_threads) == 2
    assert loop_thread not in writer_threads

"""Layout descriptors for the home status screen.

Every offset here is calibrated for one UI layout and resolution. When the game
moves things around, override the descriptor in the YAML config instead of
editing code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from .detector import MatchResult

LOGISTICS = "logistics"
REPAIR = "repair"

TIMER_FIELD_PREFIX = "timer_"


@dataclass
class Rect:
    x: int
    y: int
    w: int
    h: int | None = None


@dataclass
class FieldRect:
    name: str
    x: int
    y: int
    w: int
    h: int
    ocr_config: str | None = None


@dataclass
class LayoutDescriptor:
    kind: str
    markers: list[str]
    search: Rect
    row: Rect
    fields: list[FieldRect] = field(default_factory=list)

    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def timer_slots(self) -> list[int]:
        return [
            int(f.name[len(TIMER_FIELD_PREFIX) :])
            for f in self.fields
            if f.name.startswith(TIMER_FIELD_PREFIX)
        ]


@dataclass
class EntryCrop:
    """One record row cut out of the screenshot, with its field crops."""

    kind: str
    marker: MatchResult
    image: np.ndarray
    fields: dict[str, np.ndarray]


def default_logistics_layout() -> LayoutDescriptor:
    return LayoutDescriptor(
        kind=LOGISTICS,
        markers=["logistics"],
        search=Rect(347, 0, 229, None),
        row=Rect(-143, -22, 976, 144),
        fields=[
            # Echelon number without the word "Echelon"
            FieldRect("echelon", 0, 25, 83, 119),
            # Brown banner reading "In logistics x - x xx:xx:xx"
            FieldRect("status", 114, 22, 859, 108),
        ],
    )


def default_repair_layout(members: int = 5) -> LayoutDescriptor:
    fields = [FieldRect("echelon", 0, 25, 83, 119)]
    fields.extend(
        FieldRect(f"{TIMER_FIELD_PREFIX}{slot}", 111 + 176 * slot, 82, 159, 51)
        for slot in range(members)
    )
    return LayoutDescriptor(
        kind=REPAIR,
        markers=["repairing", "standby"],
        search=Rect(315, 0, 159, None),
        row=Rect(-111, -12, 1088, 144),
        fields=fields,
    )


def clip_box(frame: np.ndarray, rect: Rect) -> tuple[int, int, int, int]:
    height, width = frame.shape[:2]
    h = height - rect.y if rect.h is None else rect.h
    x1 = max(0, min(rect.x, width - 1))
    y1 = max(0, min(rect.y, height - 1))
    x2 = max(x1 + 1, min(rect.x + rect.w, width))
    y2 = max(y1 + 1, min(rect.y + h, height))
    return x1, y1, x2, y2


def crop(frame: np.ndarray, rect: Rect) -> tuple[np.ndarray, int, int]:
    x1, y1, x2, y2 = clip_box(frame, rect)
    return frame[y1:y2, x1:x2], x1, y1


def row_rect(marker: MatchResult, layout: LayoutDescriptor) -> Rect:
    """Row belonging to ``marker`` in frame coordinates, before any clipping."""
    return Rect(
        marker.x + layout.row.x,
        marker.y + layout.row.y,
        layout.row.w,
        layout.row.h,
    )


def extract_entry(frame: np.ndarray, marker: MatchResult, layout: LayoutDescriptor) -> np.ndarray:
    """Cut the whole record row belonging to ``marker`` out of ``frame``."""
    image, _, _ = crop(frame, row_rect(marker, layout))
    return image


def split_fields(
    frame: np.ndarray, row: Rect, layout: LayoutDescriptor
) -> dict[str, np.ndarray]:
    """Field crops of ``row``, each placed in frame coordinates and clipped on its own.

    A row hanging off the frame edge keeps its fields aligned with the pixels
    they were calibrated against.
    """
    fields: dict[str, np.ndarray] = {}
    for f in layout.fields:
        image, _, _ = crop(frame, Rect(row.x + f.x, row.y + f.y, f.w, f.h))
        fields[f.name] = image
    return fields


def build_entries(
    frame: np.ndarray, markers: list[MatchResult], layout: LayoutDescriptor
) -> list[EntryCrop]:
    entries: list[EntryCrop] = []
    for marker in markers:
        row = row_rect(marker, layout)
        image, _, _ = crop(frame, row)
        entries.append(
            EntryCrop(
                kind=layout.kind,
                marker=marker,
                image=image,
                fields=split_fields(frame, row, layout),
            )
        )
    return entries

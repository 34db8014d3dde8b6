from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .layout import (
    LOGISTICS,
    REPAIR,
    TIMER_FIELD_PREFIX,
    FieldRect,
    LayoutDescriptor,
    Rect,
    default_logistics_layout,
    default_repair_layout,
)
from .ocr import DEFAULT_OCR_CONFIG
from .state import DEFAULT_ECHELONS, DEFAULT_MEMBERS


@dataclass
class MarkerConfig:
    name: str
    path: str
    threshold: float


@dataclass
class OcrConfig:
    config: str = DEFAULT_OCR_CONFIG
    tesseract_cmd: str = ""


@dataclass
class RosterConfig:
    echelons: int = DEFAULT_ECHELONS
    members: int = DEFAULT_MEMBERS


@dataclass
class SyncConfig:
    adb_path: str
    serial: str
    screenshot_dir: str
    save_debug_screenshots: bool
    markers: list[MarkerConfig]
    ocr: OcrConfig = field(default_factory=OcrConfig)
    roster: RosterConfig = field(default_factory=RosterConfig)
    layouts: dict[str, LayoutDescriptor] = field(default_factory=dict)
    catalog_path: str = ""


def _validate(cfg: dict[str, Any]) -> dict[str, Any]:
    required = [
        "adb_path",
        "serial",
        "screenshot_dir",
        "save_debug_screenshots",
        "markers",
    ]
    missing = [k for k in required if k not in cfg]
    if missing:
        raise ValueError(f"Missing config keys: {', '.join(missing)}")
    return cfg


def _parse_rect(label: str, item: Any, allow_open_height: bool = False) -> Rect:
    if not isinstance(item, (list, tuple)) or len(item) != 4:
        raise ValueError(f"{label} must be a list of [x, y, w, h], got {item!r}")
    x, y, w, h = item
    if h is None and not allow_open_height:
        raise ValueError(f"{label} needs an explicit height")
    rect = Rect(x=int(x), y=int(y), w=int(w), h=None if h is None else int(h))
    if rect.w <= 0 or (rect.h is not None and rect.h <= 0):
        raise ValueError(f"{label} width and height must be > 0")
    return rect


def _parse_fields(label: str, items: dict[str, Any]) -> list[FieldRect]:
    fields: list[FieldRect] = []
    for name, item in items.items():
        ocr_config = None
        if isinstance(item, dict):
            ocr_config = item.get("ocr_config")
            item = item.get("rect")
        rect = _parse_rect(f"{label}.{name}", item)
        if rect.h is None:
            raise ValueError(f"{label}.{name} needs an explicit height")
        fields.append(FieldRect(str(name), rect.x, rect.y, rect.w, rect.h, ocr_config))
    return fields


def _parse_layout(kind: str, item: dict[str, Any], base: LayoutDescriptor) -> LayoutDescriptor:
    label = f"layouts.{kind}"
    layout = LayoutDescriptor(
        kind=kind,
        markers=[str(m) for m in item.get("markers", base.markers)],
        search=(
            _parse_rect(f"{label}.search", item["search"], allow_open_height=True)
            if "search" in item
            else base.search
        ),
        row=_parse_rect(f"{label}.row", item["row"]) if "row" in item else base.row,
        fields=_parse_fields(f"{label}.fields", item["fields"]) if "fields" in item else base.fields,
    )
    _validate_layout(layout)
    return layout


def _validate_layout(layout: LayoutDescriptor) -> None:
    label = f"layouts.{layout.kind}"
    if not layout.markers:
        raise ValueError(f"{label}.markers must not be empty")
    names = layout.field_names()
    if len(set(names)) != len(names):
        raise ValueError(f"{label}.fields has duplicate names")
    if "echelon" not in names:
        raise ValueError(f"{label}.fields requires an `echelon` field")
    if layout.kind == LOGISTICS and "status" not in names:
        raise ValueError(f"{label}.fields requires a `status` field")
    if layout.kind == REPAIR:
        for name in names:
            if name == "echelon":
                continue
            suffix = name[len(TIMER_FIELD_PREFIX) :]
            if not name.startswith(TIMER_FIELD_PREFIX) or not suffix.isdigit():
                raise ValueError(f"{label}.fields.{name} must be named `timer_<slot>`")


def load_config(path: str) -> SyncConfig:
    p = Path(path)
    raw = yaml.safe_load(p.read_text())
    cfg = _validate(raw)

    markers: list[MarkerConfig] = []
    for item in cfg["markers"]:
        markers.append(
            MarkerConfig(
                name=item["name"],
                path=item["path"],
                threshold=float(item["threshold"]),
            )
        )

    ocr_raw = cfg.get("ocr") or {}
    ocr = OcrConfig(
        config=str(ocr_raw.get("config", DEFAULT_OCR_CONFIG)),
        tesseract_cmd=str(ocr_raw.get("tesseract_cmd", "")),
    )

    roster_raw = cfg.get("roster") or {}
    roster = RosterConfig(
        echelons=int(roster_raw.get("echelons", DEFAULT_ECHELONS)),
        members=int(roster_raw.get("members", DEFAULT_MEMBERS)),
    )
    if roster.echelons < 1 or roster.members < 1:
        raise ValueError("roster.echelons and roster.members must be >= 1")

    layouts = {
        LOGISTICS: default_logistics_layout(),
        REPAIR: default_repair_layout(roster.members),
    }
    for kind, item in (cfg.get("layouts") or {}).items():
        if kind not in layouts:
            raise ValueError(f"Unknown layout kind: {kind}")
        layouts[kind] = _parse_layout(kind, item, layouts[kind])

    marker_names = {m.name for m in markers}
    for layout in layouts.values():
        undefined = [m for m in layout.markers if m not in marker_names]
        if undefined:
            raise ValueError(
                f"layouts.{layout.kind} uses markers missing from `markers`: {', '.join(undefined)}"
            )

    return SyncConfig(
        adb_path=cfg["adb_path"],
        serial=cfg["serial"],
        screenshot_dir=cfg["screenshot_dir"],
        save_debug_screenshots=bool(cfg["save_debug_screenshots"]),
        markers=markers,
        ocr=ocr,
        roster=roster,
        layouts=layouts,
        catalog_path=str(cfg.get("catalog_path") or ""),
    )

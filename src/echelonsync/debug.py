from __future__ import annotations

import logging
import re
import time
from pathlib import Path

import cv2
import numpy as np

from .detector import MatchResult
from .layout import LayoutDescriptor

_logger = logging.getLogger(__name__)


def save_debug(frame: np.ndarray, directory: str, label: str) -> str:
    ts = int(time.time() * 1000)
    safe_label = re.sub(r"[^a-zA-Z0-9_.-]+", "_", label).strip("_") or "debug"
    out = Path(directory) / f"{safe_label}_{ts}.png"
    out.parent.mkdir(parents=True, exist_ok=True)
    cv2.imwrite(str(out), frame)
    return str(out)


def draw_entries(
    frame: np.ndarray, matches: list[MatchResult], layout: LayoutDescriptor
) -> np.ndarray:
    """Copy of ``frame`` with each marker box in yellow and its row in green."""
    debug = frame.copy()
    for m in matches:
        cv2.rectangle(debug, (m.x, m.y), (m.x + m.w, m.y + m.h), (0, 255, 255), 2)
        rx = m.x + layout.row.x
        ry = m.y + layout.row.y
        rh = layout.row.h or 0
        cv2.rectangle(debug, (rx, ry), (rx + layout.row.w, ry + rh), (0, 255, 0), 2)
    return debug


def save_entries_debug(
    frame: np.ndarray, matches: list[MatchResult], layout: LayoutDescriptor, directory: str
) -> str:
    path = save_debug(draw_entries(frame, matches, layout), directory, f"status_{layout.kind}")
    _logger.debug("%s debug screenshot=%s", layout.kind, path)
    return path

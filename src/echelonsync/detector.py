from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np

from .layout import Rect, crop

_logger = logging.getLogger(__name__)


@dataclass
class MatchResult:
    name: str
    confidence: float
    x: int
    y: int
    w: int
    h: int


@dataclass
class Template:
    name: str
    image: np.ndarray
    threshold: float


def load_template(path: str, name: str, threshold: float) -> Template:
    p = Path(path)
    image = cv2.imread(str(p), cv2.IMREAD_COLOR)
    if image is None:
        raise FileNotFoundError(f"Template image not found or unreadable: {p}")
    return Template(name=name, image=image, threshold=threshold)


def find_all_matches(
    frame: np.ndarray, template: Template, region: Rect
) -> list[MatchResult]:
    """Every non-overlapping spot in ``region`` where ``template`` clears its threshold.

    Boxes are in ``frame`` coordinates, sorted top to bottom.
    """
    area, ox, oy = crop(frame, region)
    ch, cw = area.shape[:2]
    th, tw = template.image.shape[:2]
    if ch < th or cw < tw:
        return []

    result = cv2.matchTemplate(area, template.image, cv2.TM_CCOEFF_NORMED)
    ys, xs = np.where(result >= template.threshold)

    candidates: list[MatchResult] = []
    for y, x in zip(ys.tolist(), xs.tolist()):
        candidates.append(
            MatchResult(
                name=template.name,
                confidence=float(result[y, x]),
                x=ox + int(x),
                y=oy + int(y),
                w=int(tw),
                h=int(th),
            )
        )

    candidates.sort(key=lambda m: m.confidence, reverse=True)

    selected: list[MatchResult] = []
    min_dist = max(tw, th) * 0.7
    min_dist_sq = min_dist * min_dist
    for m in candidates:
        cx = m.x + m.w / 2.0
        cy = m.y + m.h / 2.0
        keep = True
        for s in selected:
            dx = cx - (s.x + s.w / 2.0)
            dy = cy - (s.y + s.h / 2.0)
            if (dx * dx + dy * dy) < min_dist_sq:
                keep = False
                break
        if keep:
            selected.append(m)

    selected.sort(key=lambda m: (m.y, m.x))
    return selected


class RegionMatcher:
    """Looks up named markers inside a sub-rectangle of a screenshot."""

    def __init__(self, templates: dict[str, Template]) -> None:
        self.templates = templates

    @classmethod
    def from_paths(cls, markers: list[tuple[str, str, float]]) -> RegionMatcher:
        return cls(
            {
                name: load_template(path=path, name=name, threshold=threshold)
                for name, path, threshold in markers
            }
        )

    def find_all(self, frame: np.ndarray, marker: str, region: Rect) -> list[MatchResult]:
        tmpl = self.templates.get(marker)
        if tmpl is None:
            raise ValueError(f"Template not defined in config.markers: {marker}")
        return find_all_matches(frame, tmpl, region)

    async def match(
        self, frame: np.ndarray, markers: list[str], region: Rect
    ) -> list[MatchResult]:
        """Concatenated matches for each marker, in the order the markers are given."""
        found: list[MatchResult] = []
        for marker in markers:
            matches = await asyncio.to_thread(self.find_all, frame, marker, region)
            _logger.debug("Marker %s matched %d time(s)", marker, len(matches))
            found.extend(matches)
        return found

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import CatalogIndexError
from .records import catalog_index

DEFAULT_CHAPTERS = 14


@dataclass(frozen=True)
class LogisticsSupport:
    chapter: int
    number: int
    duration_sec: int = 0

    @property
    def name(self) -> str:
        return f"{self.chapter}-{self.number}"


class LogisticsCatalog:
    """Ordered logistics mission definitions, four per chapter."""

    def __init__(self, entries: list[LogisticsSupport]) -> None:
        self._entries = list(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> LogisticsSupport:
        if index < 0 or index >= len(self._entries):
            raise CatalogIndexError(
                f"Logistics catalog index {index} outside 0..{len(self._entries) - 1}"
            )
        return self._entries[index]

    def lookup(self, chapter: int, number: int) -> LogisticsSupport:
        return self[catalog_index(chapter, number)]

    @classmethod
    def default(cls, chapters: int = DEFAULT_CHAPTERS) -> LogisticsCatalog:
        return cls(
            [
                LogisticsSupport(chapter=chapter, number=number)
                for chapter in range(chapters)
                for number in range(1, 5)
            ]
        )

    @classmethod
    def load(cls, path: str) -> LogisticsCatalog:
        raw = yaml.safe_load(Path(path).read_text())
        items: list[dict[str, Any]] = raw.get("logistics", []) if isinstance(raw, dict) else []
        if not items:
            raise ValueError(f"No `logistics` entries in catalog: {path}")
        entries = sorted(
            (
                LogisticsSupport(
                    chapter=int(item["chapter"]),
                    number=int(item["number"]),
                    duration_sec=int(item.get("duration_sec", 0)),
                )
                for item in items
            ),
            key=lambda e: catalog_index(e.chapter, e.number),
        )
        for position, entry in enumerate(entries):
            if catalog_index(entry.chapter, entry.number) != position:
                raise ValueError(
                    f"Catalog {path} has a gap or duplicate at logistics {entry.name}"
                )
        return cls(entries)

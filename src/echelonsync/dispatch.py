"""Concurrent OCR fan-out.

Recognition calls for every field of every entry are scheduled before any of
them is awaited, so work on different entries overlaps as well as work on the
fields of one entry. Results are paired with their entry by position, never by
completion order.

There is no timeout and no cap on in-flight calls: a hung backend hangs the
whole pass, and many detections mean many simultaneous Tesseract processes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Iterable
from typing import Any

import numpy as np

from .layout import EntryCrop, LayoutDescriptor
from .ocr import DEFAULT_OCR_CONFIG, Recognizer

_logger = logging.getLogger(__name__)


async def join_all(aws: Iterable[Awaitable[Any]]) -> list[Any]:
    """Wait for every awaitable; on the first failure cancel the rest and re-raise it."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class RecognitionDispatcher:
    def __init__(self, recognizer: Recognizer, default_config: str = DEFAULT_OCR_CONFIG) -> None:
        self.recognizer = recognizer
        self.default_config = default_config

    async def _recognize(self, image: np.ndarray, config: str) -> str:
        return await asyncio.to_thread(self.recognizer.recognize, image, config)

    def _configs(self, layout: LayoutDescriptor) -> dict[str, str]:
        return {f.name: f.ocr_config or self.default_config for f in layout.fields}

    async def recognize_entries(
        self, entries: list[EntryCrop], layout: LayoutDescriptor
    ) -> list[dict[str, str]]:
        configs = self._configs(layout)
        pending = [
            {
                name: asyncio.ensure_future(
                    self._recognize(image, configs.get(name, self.default_config))
                )
                for name, image in entry.fields.items()
            }
            for entry in entries
        ]
        _logger.debug(
            "Dispatched %d OCR call(s) for %d %s entr(ies)",
            sum(len(p) for p in pending),
            len(entries),
            layout.kind,
        )
        await join_all(task for fields in pending for task in fields.values())
        return [{name: task.result() for name, task in fields.items()} for fields in pending]

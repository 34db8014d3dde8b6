from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .adb_client import AdbClient, ImageFileSource, ScreenshotSource
from .catalog import LogisticsCatalog
from .config import SyncConfig, load_config
from .detector import RegionMatcher
from .dispatch import RecognitionDispatcher
from .ocr import TesseractRecognizer
from .state import GameState
from .updater import StatusUpdater

ANSI_RED = "\033[31m"
ANSI_RESET = "\033[0m"


class _LevelFormatter(logging.Formatter):
    def __init__(self, color: bool) -> None:
        super().__init__("[%(levelname)s] %(message)s")
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if self.color and record.levelno >= logging.WARNING:
            return f"{ANSI_RED}{line}{ANSI_RESET}"
        return line


def setup_logging(verbose: bool) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(_LevelFormatter(color=sys.stderr.isatty()))
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, handlers=[handler])


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Read echelon logistics and repair status from the game")
    parser.add_argument("--config", default="config.yaml", help="Path to YAML config")
    parser.add_argument("--image", default="", help="Read this screenshot instead of capturing over ADB")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def build_updater(cfg: SyncConfig, image: str = "") -> StatusUpdater:
    source: ScreenshotSource
    if image:
        source = ImageFileSource(image)
    else:
        source = AdbClient(cfg.adb_path, cfg.serial)
    matcher = RegionMatcher.from_paths([(m.name, m.path, m.threshold) for m in cfg.markers])
    dispatcher = RecognitionDispatcher(
        TesseractRecognizer(cfg.ocr.tesseract_cmd), default_config=cfg.ocr.config
    )
    catalog = LogisticsCatalog.load(cfg.catalog_path) if cfg.catalog_path else LogisticsCatalog.default()
    return StatusUpdater(
        source=source,
        matcher=matcher,
        dispatcher=dispatcher,
        catalog=catalog,
        layouts=cfg.layouts,
        debug_dir=cfg.screenshot_dir if cfg.save_debug_screenshots else "",
    )


def format_state(state: GameState) -> str:
    lines = []
    for echelon in state.echelons:
        parts = [f"Echelon {echelon.number:>2}:"]
        assignment = echelon.logistics_assignment
        if assignment is not None:
            parts.append(
                f"logistics {assignment.logistics_support.name} until "
                f"{assignment.eta.strftime('%H:%M:%S')}"
            )
        repairs = [
            f"#{slot + 1} {m.repair_eta.strftime('%H:%M:%S')}"
            for slot, m in enumerate(echelon.members)
            if m.repair_eta is not None
        ]
        if repairs:
            parts.append("repair " + ", ".join(repairs))
        if len(parts) == 1:
            parts.append("idle")
        lines.append(" ".join(parts))
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)
    cfg = load_config(args.config)
    updater = build_updater(cfg, args.image)
    state = GameState.create(cfg.roster.echelons, cfg.roster.members)
    try:
        asyncio.run(updater.execute(state))
    except Exception as exc:
        logging.getLogger(__name__).error("%s", exc)
        return 1
    print(format_state(state))
    return 0

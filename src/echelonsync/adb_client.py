from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

import cv2
import numpy as np

from .errors import ScreenshotError

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
IEND_CHUNK = b"IEND\xaeB`\x82"


class ScreenshotSource(Protocol):
    def capture_frame(self) -> np.ndarray: ...


def decode_frame(png_bytes: bytes) -> np.ndarray:
    if not png_bytes:
        raise ScreenshotError(
            "Screenshot bytes are empty or not a valid PNG stream. "
            "Check `adb devices` and run: adb exec-out screencap -p > /tmp/screen.png"
        )
    arr = np.frombuffer(png_bytes, dtype=np.uint8)
    frame = cv2.imdecode(arr, cv2.IMREAD_COLOR)
    if frame is None:
        raise ScreenshotError(
            f"Failed to decode screenshot bytes (len={len(png_bytes)}). "
            "Try: adb exec-out screencap -p > /tmp/screen.png and inspect the file."
        )
    return frame


@dataclass
class AdbClient:
    adb_path: str = "adb"
    serial: str = ""

    def _base_cmd(self) -> list[str]:
        cmd = [self.adb_path]
        if self.serial:
            cmd.extend(["-s", self.serial])
        return cmd

    def run(self, *args: str, timeout: Optional[float] = 10) -> subprocess.CompletedProcess:
        cmd = self._base_cmd() + list(args)
        return subprocess.run(cmd, capture_output=True, check=True, timeout=timeout)

    def _extract_png(self, raw: bytes) -> bytes:
        start = raw.find(PNG_MAGIC)
        if start != -1:
            end = raw.find(IEND_CHUNK, start)
            if end == -1:
                return raw[start:]
            return raw[start : end + len(IEND_CHUNK)]

        # Some adb builds translate LF to CRLF on exec-out.
        data = raw.replace(b"\r\n", b"\n")
        alt_magic = b"\x89PNG\n\x1a\n"
        start = data.find(alt_magic)
        if start == -1:
            return b""
        end = data.find(IEND_CHUNK, start)
        if end == -1:
            return data[start:]
        return data[start : end + len(IEND_CHUNK)]

    def screenshot_png_bytes(self) -> bytes:
        proc = self.run("exec-out", "screencap", "-p", timeout=15)
        return self._extract_png(proc.stdout)

    def capture_frame(self) -> np.ndarray:
        return decode_frame(self.screenshot_png_bytes())


@dataclass
class ImageFileSource:
    """Serves a saved screenshot, for replaying a status screen offline."""

    path: str

    def capture_frame(self) -> np.ndarray:
        p = Path(self.path)
        frame = cv2.imread(str(p), cv2.IMREAD_COLOR)
        if frame is None:
            raise ScreenshotError(f"Screenshot image not found or unreadable: {p}")
        return frame

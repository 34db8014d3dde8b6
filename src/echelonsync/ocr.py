from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import cv2
import numpy as np
import pytesseract

from .errors import RecognitionError

DEFAULT_OCR_CONFIG = "--oem 3 --psm 7"


class Recognizer(Protocol):
    """OCR backend. Must be safe to call from several threads at once."""

    def recognize(self, image: np.ndarray, config: str) -> str: ...


def preprocess(image: np.ndarray) -> np.ndarray:
    gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY) if image.ndim == 3 else image
    gray = cv2.GaussianBlur(gray, (3, 3), 0)
    return cv2.adaptiveThreshold(
        gray,
        255,
        cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
        cv2.THRESH_BINARY,
        25,
        5,
    )


@dataclass
class TesseractRecognizer:
    tesseract_cmd: str = ""

    def __post_init__(self) -> None:
        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd

    def recognize(self, image: np.ndarray, config: str) -> str:
        try:
            return pytesseract.image_to_string(preprocess(image), config=config).strip()
        except pytesseract.TesseractNotFoundError as exc:
            raise RecognitionError(
                "Tesseract OCR is not installed or `ocr.tesseract_cmd` is wrong."
            ) from exc
        except pytesseract.TesseractError as exc:
            raise RecognitionError(f"Tesseract failed: {exc}") from exc

from __future__ import annotations

from typing import Any

import numpy as np
import pytest
import pytesseract

from echelonsync.errors import RecognitionError
from echelonsync.ocr import TesseractRecognizer, preprocess


def _crop() -> np.ndarray:
    crop = np.full((60, 200, 3), 255, dtype=np.uint8)
    crop[20:40, 30:170] = 0
    return crop


def test_preprocess_binarizes() -> None:
    out = preprocess(_crop())

    assert out.shape == (60, 200)
    assert set(np.unique(out).tolist()) <= {0, 255}


def test_recognize_strips_text(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: dict[str, Any] = {}

    def fake_image_to_string(image: np.ndarray, config: str = "") -> str:
        seen["config"] = config
        seen["ndim"] = image.ndim
        return " 01:02:03\n\x0c"

    monkeypatch.setattr(pytesseract, "image_to_string", fake_image_to_string)

    assert TesseractRecognizer().recognize(_crop(), "--psm 7") == "01:02:03"
    assert seen == {"config": "--psm 7", "ndim": 2}


def test_missing_tesseract_is_a_recognition_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def not_found(image: np.ndarray, config: str = "") -> str:
        raise pytesseract.TesseractNotFoundError()

    monkeypatch.setattr(pytesseract, "image_to_string", not_found)

    with pytest.raises(RecognitionError):
        TesseractRecognizer().recognize(_crop(), "--psm 7")

"""Exception hierarchy for echelonsync."""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for all echelonsync errors."""


class ScreenshotError(SyncError):
    """Screenshot bytes were empty or could not be decoded."""


class RecognitionError(SyncError):
    """The OCR backend is unavailable or failed on a crop."""


class RecordParseError(SyncError, ValueError):
    """Recognized text that must be well formed was not."""

    def __init__(self, message: str, *, text: str = "") -> None:
        self.text = text
        super().__init__(message)


class RosterIndexError(SyncError, IndexError):
    """An echelon or member position is outside the roster."""


class CatalogIndexError(SyncError, IndexError):
    """A computed logistics catalog index is outside the catalog."""

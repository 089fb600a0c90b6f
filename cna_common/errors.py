from __future__ import annotations

from typing import Iterable, List


class CnaImportError(ValueError):
    """Base class for import failures; the message is meant for end users."""


class StructuralError(CnaImportError):
    """Empty input, too few rows, no columns, unreadable or unsupported file."""


class SchemaError(CnaImportError):
    """Required canonical columns could not be matched to any header."""

    def __init__(self, message: str, missing: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.missing: List[str] = list(missing)


class NoValidRecordsError(CnaImportError):
    """Every row was dropped during normalization."""


class ExtractionError(CnaImportError):
    """The document-extraction service failed or returned an unusable payload."""

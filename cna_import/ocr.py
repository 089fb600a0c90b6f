from __future__ import annotations

import logging
from typing import List, Optional, Tuple

LOGGER = logging.getLogger(__name__)

OCR_METHODS = ("auto", "tesseract")


def _tesseract_available() -> bool:
    try:
        import pytesseract  # type: ignore  # noqa: F401
        import pdf2image  # type: ignore  # noqa: F401
    except ImportError:
        return False
    return True


def _ocr_with_tesseract(document: bytes, page_number: int) -> Optional[str]:
    import pytesseract  # type: ignore
    from pdf2image import convert_from_bytes  # type: ignore
    from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError  # type: ignore

    try:
        images = convert_from_bytes(document, first_page=page_number + 1, last_page=page_number + 1)
        if not images:
            return None
        return pytesseract.image_to_string(images[0])
    except (
        pytesseract.TesseractError,
        pytesseract.TesseractNotFoundError,
        PDFInfoNotInstalledError,
        PDFPageCountError,
        PDFSyntaxError,
        OSError,
    ) as exc:
        LOGGER.warning("Tesseract OCR failed on page %d: %s", page_number + 1, exc)
        return None


def ocr_page(document: bytes, page_number: int, method: str = "auto") -> Tuple[Optional[str], Optional[str]]:
    """
    OCR one zero-based page of an in-memory PDF.

    Returns (text, method used), or (None, None) when OCR is unavailable or
    produced nothing.
    """

    if method not in OCR_METHODS:
        LOGGER.warning("Unknown OCR method '%s', defaulting to auto.", method)
    preferred: List[str] = ["tesseract"]

    for chosen in preferred:
        if chosen == "tesseract":
            if not _tesseract_available():
                LOGGER.warning("OCR requested but pytesseract/pdf2image are not installed (pip install cna-import[ocr]).")
                continue
            text = _ocr_with_tesseract(document, page_number)
            if text and text.strip():
                return text, "tesseract"
    return None, None

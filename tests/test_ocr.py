import logging

from cna_import import ocr


def test_ocr_page_uses_tesseract_when_available(monkeypatch):
    monkeypatch.setattr(ocr, "_tesseract_available", lambda: True)
    monkeypatch.setattr(ocr, "_ocr_with_tesseract", lambda document, page_number: f"page {page_number} text")

    assert ocr.ocr_page(b"%PDF", 2) == ("page 2 text", "tesseract")


def test_ocr_page_without_tesseract_returns_nothing(monkeypatch, caplog):
    monkeypatch.setattr(ocr, "_tesseract_available", lambda: False)

    with caplog.at_level(logging.WARNING, logger="cna_import.ocr"):
        assert ocr.ocr_page(b"%PDF", 0) == (None, None)

    assert "not installed" in caplog.text


def test_ocr_page_ignores_blank_results_and_unknown_methods(monkeypatch, caplog):
    monkeypatch.setattr(ocr, "_tesseract_available", lambda: True)
    monkeypatch.setattr(ocr, "_ocr_with_tesseract", lambda document, page_number: "  \n")

    with caplog.at_level(logging.WARNING, logger="cna_import.ocr"):
        assert ocr.ocr_page(b"%PDF", 0, method="docling") == (None, None)

    assert "Unknown OCR method 'docling'" in caplog.text

import json
import logging
from io import BytesIO
from unittest import mock

import pytest
import requests
from pypdf import PdfWriter

from cna_common.errors import ExtractionError
from cna_import import extraction
from cna_import.config import Settings
from cna_import.extraction import (
    MALFORMED_TABLE_MESSAGE,
    NO_COLUMNS_MESSAGE,
    OllamaTableExtractor,
    TableExtractor,
    extract_pdf_table,
    parse_extraction_payload,
)


class RaisingExtractor(TableExtractor):
    def __init__(self, exc):
        self.exc = exc

    def extract_table(self, document, filename, instructions):
        raise self.exc


class StaticExtractor(TableExtractor):
    def __init__(self, reply):
        self.reply = reply

    def extract_table(self, document, filename, instructions):
        return self.reply


def test_payload_in_code_fence_is_accepted():
    reply = 'Here you go:\n```json\n{"data": [["a", "b"], ["1", "2"]]}\n```'

    assert parse_extraction_payload(reply) == (["a", "b"], [["1", "2"]])


def test_non_string_cells_are_stringified():
    headers, rows = parse_extraction_payload(json.dumps({"data": [["a", "b", "c"], [1, None, " x "]]}))

    assert rows == [["1", "", "x"]]


def test_error_reply_is_passed_through():
    with pytest.raises(ExtractionError) as excinfo:
        parse_extraction_payload(json.dumps({"error": "No structured table found."}))

    assert str(excinfo.value) == "No structured table found."


@pytest.mark.parametrize(
    "reply, message",
    [
        ("not json", "failed to return valid JSON"),
        ("[1, 2]", "unexpected format"),
        ('{"data": [["a"]]}', MALFORMED_TABLE_MESSAGE),
        ('{"data": "a,b"}', MALFORMED_TABLE_MESSAGE),
        ('{"rows": []}', MALFORMED_TABLE_MESSAGE),
        ('{"data": [[], ["1"]]}', NO_COLUMNS_MESSAGE),
        ('{"data": [["a"], "1"]}', "not a list"),
        ('{"data": [["a"], [{"x": 1}]]}', "non-text cell"),
    ],
)
def test_malformed_payloads_are_rejected(reply, message):
    with pytest.raises(ExtractionError) as excinfo:
        parse_extraction_payload(reply)

    assert message in str(excinfo.value)


def test_extract_pdf_table_corrects_row_width(caplog):
    reply = json.dumps({"data": [["Name", "Grade"], ["Jane"], ["Sam", "Grade 3", "extra"]]})

    with caplog.at_level(logging.INFO):
        table = extract_pdf_table(b"%PDF", "cna.pdf", StaticExtractor(reply))

    assert table.headers == ["Name", "Grade"]
    assert table.rows == [{"Name": "Jane", "Grade": ""}, {"Name": "Sam", "Grade": "Grade 3"}]
    assert "inconsistent column count" in caplog.text
    assert "PDF extraction success: filename=cna.pdf" in caplog.text


def test_request_failures_are_wrapped():
    extractor = RaisingExtractor(requests.ConnectionError("connection refused"))

    with pytest.raises(ExtractionError, match="request failed: connection refused"):
        extract_pdf_table(b"%PDF", "cna.pdf", extractor)


def test_import_errors_from_extractor_keep_their_message():
    extractor = RaisingExtractor(ExtractionError("No extractable text found in cna.pdf."))

    with pytest.raises(ExtractionError, match="^No extractable text found in cna.pdf.$"):
        extract_pdf_table(b"%PDF", "cna.pdf", extractor)


def test_ollama_extractor_sends_document_text(monkeypatch):
    monkeypatch.setattr(extraction, "pdf_text", lambda document, **kwargs: "--- Page 1 ---\nName Grade")
    client = mock.Mock()
    client.chat_completion.return_value = '{"data": [["Name"], ["Jane"]]}'

    reply = OllamaTableExtractor(client, "llama3").extract_table(b"%PDF", "cna.pdf", "extract it")

    assert reply == '{"data": [["Name"], ["Jane"]]}'
    messages = client.chat_completion.call_args.args[0]
    assert messages[0] == {"role": "system", "content": "extract it"}
    assert "Name Grade" in messages[1]["content"]
    assert client.chat_completion.call_args.kwargs == {"model": "llama3", "response_format": "json"}


def test_ollama_extractor_rejects_textless_pdf(monkeypatch):
    monkeypatch.setattr(extraction, "pdf_text", lambda document, **kwargs: "")
    client = mock.Mock()

    with pytest.raises(ExtractionError, match="No extractable text"):
        OllamaTableExtractor(client, "llama3").extract_table(b"%PDF", "scan.pdf", "extract it")

    client.chat_completion.assert_not_called()


def blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    buffer = BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def test_scanned_pdf_is_read_through_ocr(monkeypatch):
    calls = []

    def fake_ocr(document, page_number, method="auto"):
        calls.append((page_number, method))
        return "Name Division Grade Position\nJane Finance 12 Accountant", "tesseract"

    monkeypatch.setattr(extraction, "ocr_page", fake_ocr)
    client = mock.Mock()
    client.chat_completion.return_value = '{"data": [["Name"], ["Jane"]]}'
    extractor = OllamaTableExtractor(client, "llama3", ocr_enabled=True, ocr_method="tesseract")

    extractor.extract_table(blank_pdf(), "scan.pdf", "extract it")

    assert calls == [(0, "tesseract")]
    messages = client.chat_completion.call_args.args[0]
    assert "--- Page 1 ---\nName Division Grade Position" in messages[1]["content"]


def test_scanned_pdf_without_ocr_is_rejected(monkeypatch):
    monkeypatch.setattr(extraction, "ocr_page", mock.Mock(side_effect=AssertionError("OCR should stay off")))
    client = mock.Mock()

    with pytest.raises(ExtractionError, match="OCR_ENABLED=true"):
        OllamaTableExtractor(client, "llama3").extract_table(blank_pdf(), "scan.pdf", "extract it")

    client.chat_completion.assert_not_called()


def test_extractor_takes_ocr_options_from_settings():
    settings = Settings(
        ollama_host="http://ollama:11434",
        extraction_model="llama3",
        keep_alive="5m",
        request_timeout=None,
        preview_rows=60,
        agency_type="National Department",
        model_denylist_enabled=False,
        model_denylist_substrings=[],
        ocr_enabled=True,
        ocr_method="tesseract",
        ocr_text_threshold=10,
    )

    extractor = OllamaTableExtractor.from_settings(settings)

    assert (extractor.ocr_enabled, extractor.ocr_method, extractor.ocr_text_threshold) == (True, "tesseract", 10)

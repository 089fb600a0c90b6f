"""
PDF table extraction through an external language-model service.

The service is untrusted: its reply is parsed and shape-checked by
`parse_extraction_payload` before any row reaches normalization. One request
is made per document, with no retry.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from io import BytesIO
from typing import Any, List, Optional, Tuple

import requests
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from cna_common.errors import CnaImportError, ExtractionError, StructuralError
from cna_common.normalize import RawTable, rows_from_grid

from .config import Settings
from .ocr import ocr_page
from .ollama_client import OllamaClient

LOGGER = logging.getLogger(__name__)

MALFORMED_TABLE_MESSAGE = (
    "Uploaded document is incomplete or malformed. The extraction service could not find a valid data table."
)
NO_COLUMNS_MESSAGE = (
    "The extraction service extracted a table with no columns. "
    "The document might be empty or in an unsupported layout."
)

CNA_EXTRACTION_PROMPT = """You are a high-precision data extraction engine. Extract the CNA response table from the document text below.
The table headers are question codes (e.g. A1, B3, G10) plus officer details. If the table spans several pages, rebuild it as one table.
Trim every cell, use "" for blank cells and return every value as a string.
Respond with a single JSON object {"data": [[header...], [row...], ...]} with the header row first and no other text.
If there is no structured table, respond with {"error": "No structured table found. Please upload a table-formatted PDF or Excel file with question codes as headers."}"""

ESTABLISHMENT_EXTRACTION_PROMPT = """You are a data extraction expert. Extract the establishment (position list) table from the document text below.
Headers are variants of: Position Number, Division, Grade, Designation, Occupant, Status. If the table spans several pages, rebuild it as one table.
Trim every cell, use "" for blank cells and return every value as a string.
Respond with a single JSON object {"data": [[header...], [row...], ...]} with the header row first and no other text.
If there is no structured table, respond with {"error": "No structured establishment table found in the PDF."}"""

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class TableExtractor(ABC):
    @abstractmethod
    def extract_table(self, document: bytes, filename: str, instructions: str) -> str:
        """Return the raw service reply for `document`; validation happens elsewhere."""
        raise NotImplementedError


def pdf_text(
    document: bytes,
    *,
    ocr_enabled: bool = False,
    ocr_method: str = "auto",
    ocr_text_threshold: int = 50,
) -> str:
    """
    Concatenate page text with page markers so the model can stitch tables.

    With OCR enabled, pages whose text layer is shorter than
    `ocr_text_threshold` characters are OCR'd instead (scanned pages).
    """

    try:
        reader = PdfReader(BytesIO(document))
        pages: List[str] = []
        for idx, page in enumerate(reader.pages):
            text = (page.extract_text() or "").strip()
            if ocr_enabled and len(text) < ocr_text_threshold:
                ocr_text, method_used = ocr_page(document, page_number=idx, method=ocr_method)
                if ocr_text:
                    LOGGER.info("Page %d text recovered with %s OCR.", idx + 1, method_used)
                    text = ocr_text.strip()
            if text:
                pages.append(f"--- Page {idx + 1} ---\n{text}")
    except (PdfReadError, ValueError) as exc:
        raise StructuralError(f"The PDF could not be read: {exc}") from exc
    return "\n\n".join(pages)


class OllamaTableExtractor(TableExtractor):
    def __init__(
        self,
        client: OllamaClient,
        model: str,
        ocr_enabled: bool = False,
        ocr_method: str = "auto",
        ocr_text_threshold: int = 50,
    ) -> None:
        self.client = client
        self.model = model
        self.ocr_enabled = ocr_enabled
        self.ocr_method = ocr_method
        self.ocr_text_threshold = ocr_text_threshold

    @classmethod
    def from_settings(cls, settings: Settings) -> "OllamaTableExtractor":
        client = OllamaClient(
            settings.ollama_host,
            keep_alive=settings.keep_alive,
            timeout=settings.request_timeout,
            denylist_enabled=settings.model_denylist_enabled,
            denylist_substrings=settings.model_denylist_substrings,
        )
        return cls(
            client,
            settings.extraction_model,
            ocr_enabled=settings.ocr_enabled,
            ocr_method=settings.ocr_method,
            ocr_text_threshold=settings.ocr_text_threshold,
        )

    def extract_table(self, document: bytes, filename: str, instructions: str) -> str:
        text = pdf_text(
            document,
            ocr_enabled=self.ocr_enabled,
            ocr_method=self.ocr_method,
            ocr_text_threshold=self.ocr_text_threshold,
        )
        if not text:
            hint = (
                "OCR found no text either."
                if self.ocr_enabled
                else "Set OCR_ENABLED=true to OCR scanned pages, or convert the file to Excel or CSV first."
            )
            raise ExtractionError(f"No extractable text found in {filename}. {hint}")
        messages = [
            {"role": "system", "content": instructions},
            {"role": "user", "content": f"Document: {filename}\n\n{text}"},
        ]
        return self.client.chat_completion(messages, model=self.model, response_format="json")


def _cell(value: Any, row_index: int) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (bool, int, float)):
        return str(value)
    raise ExtractionError(f"Extracted row {row_index} contains a non-text cell: {value!r}")


def parse_extraction_payload(text: str) -> Tuple[List[str], List[List[str]]]:
    """
    Validate a service reply and return (headers, rows).

    Accepts {"data": [[...], ...]} with at least a header row and one data row.
    An {"error": "..."} reply is raised with its message passed through verbatim.
    """

    raw = (text or "").strip()
    fenced = _CODE_FENCE.search(raw)
    if fenced:
        raw = fenced.group(1).strip()

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        LOGGER.error("Failed to parse JSON from extraction service: %s", raw[:200])
        raise ExtractionError(f"The extraction service failed to return valid JSON for the PDF. {exc}") from exc

    if not isinstance(payload, dict):
        raise ExtractionError("The extraction service returned an unexpected format (expected a JSON object).")

    error = payload.get("error")
    if error:
        raise ExtractionError(str(error))

    data = payload.get("data")
    if not isinstance(data, list) or len(data) < 2:
        raise ExtractionError(MALFORMED_TABLE_MESSAGE)

    grid: List[List[str]] = []
    for index, row in enumerate(data):
        if not isinstance(row, list):
            raise ExtractionError(f"Extracted row {index} is not a list of cells.")
        grid.append([_cell(value, index) for value in row])

    headers, rows = grid[0], grid[1:]
    if not headers:
        raise ExtractionError(NO_COLUMNS_MESSAGE)
    return headers, rows


def extract_pdf_table(
    document: bytes,
    filename: str,
    extractor: Optional[TableExtractor],
    instructions: str = CNA_EXTRACTION_PROMPT,
) -> RawTable:
    if extractor is None:
        raise ExtractionError("No extraction service is configured to parse PDF files.")

    try:
        reply = extractor.extract_table(document, filename, instructions)
    except CnaImportError:
        raise
    except (requests.RequestException, ValueError) as exc:
        raise ExtractionError(f"The extraction service request failed: {exc}") from exc

    headers, grid = parse_extraction_payload(reply)
    rows = rows_from_grid(headers, grid, source="Extracted")
    LOGGER.info(
        "PDF extraction success: filename=%s timestamp=%s processed %d rows, %d columns.",
        filename,
        datetime.now(timezone.utc).isoformat(),
        len(rows),
        len(headers),
    )
    return RawTable(headers=headers, rows=rows)

"""
Entry adapters for CNA and establishment imports.

Pasted tab-separated text, spreadsheets (first sheet of xlsx/xlsm, or CSV)
and PDFs (via the extraction service) are all reduced to a `RawTable` and then
handed to the shared normalizers in `cna_common.normalize`.
"""

from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path
from typing import Any, Optional, Tuple

import pandas as pd
import polars as pl

from cna_common.errors import StructuralError
from cna_common.normalize import (
    EstablishmentImport,
    ImportResult,
    RawTable,
    normalize_establishment_table,
    normalize_officer_table,
    rows_from_grid,
)

from .config import ImportContext
from .extraction import (
    CNA_EXTRACTION_PROMPT,
    ESTABLISHMENT_EXTRACTION_PROMPT,
    TableExtractor,
    extract_pdf_table,
)

LOGGER = logging.getLogger(__name__)

EXCEL_SUFFIXES = {".xlsx", ".xlsm"}
SPREADSHEET_SUFFIXES = EXCEL_SUFFIXES | {".csv"}
SUPPORTED_SUFFIXES = SPREADSHEET_SUFFIXES | {".pdf"}


def _read_source(path_or_bytes: Any, filename: Optional[str] = None) -> Tuple[bytes, str]:
    """
    Return (payload bytes, file name) for paths, bytes, BytesIO or upload wrappers.

    BytesIO inputs are rewound first so a stream left at EOF still reads fully.
    """

    if isinstance(path_or_bytes, (str, Path)):
        path = Path(path_or_bytes)
        return path.read_bytes(), filename or path.name
    if isinstance(path_or_bytes, (bytes, bytearray)):
        return bytes(path_or_bytes), filename or ""
    if isinstance(path_or_bytes, BytesIO):
        path_or_bytes.seek(0)
        return path_or_bytes.read(), filename or ""
    # Upload wrappers (e.g. Streamlit's UploadedFile) expose getvalue() and name.
    if hasattr(path_or_bytes, "getvalue"):
        return path_or_bytes.getvalue(), filename or getattr(path_or_bytes, "name", "")
    if hasattr(path_or_bytes, "read"):
        return path_or_bytes.read(), filename or getattr(path_or_bytes, "name", "")
    raise StructuralError(f"Unsupported input source: {type(path_or_bytes).__name__}")


def _suffix(filename: str) -> str:
    return Path(filename).suffix.lower()


def parse_pasted_text(pasted_text: str) -> RawTable:
    """Split tab-separated text (header row first) into a RawTable."""

    if not pasted_text or not pasted_text.strip():
        raise StructuralError("Pasted data is empty.")

    # Only whole-line whitespace is dropped; leading tabs mark empty cells.
    lines = [line.rstrip("\r\n") for line in pasted_text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise StructuralError("Pasted data must contain a header row and at least one data row.")

    headers = lines[0].split("\t")
    grid = []
    for line in lines[1:]:
        values = line.split("\t")
        if len(values) < len(headers):
            values = values + [""] * (len(headers) - len(values))
        grid.append(values)
    return RawTable(headers=headers, rows=rows_from_grid(headers, grid, source="Pasted"))


def _frame_to_table(frame: pl.DataFrame) -> RawTable:
    headers = list(frame.columns)
    frame = frame.with_columns([pl.col(c).cast(pl.Utf8).fill_null("") for c in headers])
    return RawTable(headers=headers, rows=frame.to_dicts())


def _read_csv(payload: bytes, label: str) -> pl.DataFrame:
    try:
        return pl.read_csv(BytesIO(payload), infer_schema_length=0, truncate_ragged_lines=True)
    except pl.exceptions.NoDataError as exc:
        raise StructuralError("The selected sheet is empty.") from exc
    except pl.exceptions.ComputeError as exc:
        raise StructuralError(f"{label} could not be read as CSV: {exc}") from exc


def _read_first_sheet(payload: bytes, label: str) -> pl.DataFrame:
    """Read the first worksheet with every cell as text and blanks as ''."""

    try:
        pandas_df = pd.read_excel(BytesIO(payload), sheet_name=0, dtype=str, keep_default_na=False)
    except Exception as exc:
        raise StructuralError(
            f"{label} seems to be corrupted or in an unsupported format. Please upload a valid .xlsx or .csv file. ({exc})"
        ) from exc
    pandas_df = pandas_df.fillna("")
    pandas_df.columns = [str(c) for c in pandas_df.columns]
    return pl.from_pandas(pandas_df.astype(str))


def load_spreadsheet(path_or_bytes: Any, filename: Optional[str] = None) -> RawTable:
    payload, name = _read_source(path_or_bytes, filename)
    suffix = _suffix(name) or ".xlsx"
    label = name or "in-memory workbook"

    if suffix == ".csv":
        frame = _read_csv(payload, label)
    elif suffix in EXCEL_SUFFIXES:
        frame = _read_first_sheet(payload, label)
    else:
        raise StructuralError(f"Unsupported spreadsheet type '{suffix}'. Please upload a .xlsx or .csv file.")

    if not frame.columns:
        raise StructuralError("The selected sheet is empty.")
    LOGGER.debug("Loaded %s: %d rows, %d columns.", label, frame.height, frame.width)
    return _frame_to_table(frame)


def _load_table(
    path_or_bytes: Any,
    filename: Optional[str],
    extractor: Optional[TableExtractor],
    instructions: str,
    kind: str,
) -> RawTable:
    payload, name = _read_source(path_or_bytes, filename)
    suffix = _suffix(name)
    if suffix in SPREADSHEET_SUFFIXES:
        return load_spreadsheet(payload, name)
    if suffix == ".pdf":
        return extract_pdf_table(payload, name, extractor, instructions)
    raise StructuralError(f"Unsupported {kind}file type. Please upload a .xlsx, .csv, or .pdf file.")


def parse_cna_file(
    path_or_bytes: Any,
    agency_type: str,
    *,
    filename: Optional[str] = None,
    context: Optional[ImportContext] = None,
    extractor: Optional[TableExtractor] = None,
) -> ImportResult:
    context = context or ImportContext()
    table = _load_table(path_or_bytes, filename, extractor, CNA_EXTRACTION_PROMPT, "")
    return normalize_officer_table(
        table,
        agency_type,
        aliases=context.aliases.officer,
        grading_table=context.grading_table,
        preview_rows=context.preview_rows,
    )


def parse_pasted_data(
    pasted_text: str,
    agency_type: str,
    *,
    context: Optional[ImportContext] = None,
) -> ImportResult:
    context = context or ImportContext()
    return normalize_officer_table(
        parse_pasted_text(pasted_text),
        agency_type,
        aliases=context.aliases.officer,
        grading_table=context.grading_table,
        preview_rows=context.preview_rows,
    )


def parse_establishment_file(
    path_or_bytes: Any,
    agency_type: str,
    *,
    filename: Optional[str] = None,
    context: Optional[ImportContext] = None,
    extractor: Optional[TableExtractor] = None,
) -> EstablishmentImport:
    context = context or ImportContext()
    table = _load_table(path_or_bytes, filename, extractor, ESTABLISHMENT_EXTRACTION_PROMPT, "establishment ")
    return normalize_establishment_table(
        table,
        agency_type,
        aliases=context.aliases.establishment,
        grading_table=context.grading_table,
    )

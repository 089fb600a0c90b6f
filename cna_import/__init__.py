"""
File adapters, extraction client, export and CLI for CNA imports.
"""

from .adapters import (  # noqa: F401
    load_spreadsheet,
    parse_cna_file,
    parse_establishment_file,
    parse_pasted_data,
    parse_pasted_text,
)
from .config import ImportContext, Settings, load_context, load_settings  # noqa: F401
from .extraction import (  # noqa: F401
    OllamaTableExtractor,
    TableExtractor,
    extract_pdf_table,
    parse_extraction_payload,
)
from .export import records_to_frame, write_records  # noqa: F401

__all__ = [
    "load_spreadsheet",
    "parse_cna_file",
    "parse_establishment_file",
    "parse_pasted_data",
    "parse_pasted_text",
    "ImportContext",
    "Settings",
    "load_context",
    "load_settings",
    "OllamaTableExtractor",
    "TableExtractor",
    "extract_pdf_table",
    "parse_extraction_payload",
    "records_to_frame",
    "write_records",
]

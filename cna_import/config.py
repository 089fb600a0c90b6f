from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from cna_common.classify import DEFAULT_GRADING_TABLE, GradingTable
from cna_common.normalize import DEFAULT_PREVIEW_ROWS
from cna_common.schema import (
    ESTABLISHMENT_HEADER_ALIASES,
    OFFICER_HEADER_ALIASES,
    HeaderAliases,
    merge_alias_overrides,
)

load_dotenv()


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_int(value: str | None, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _parse_float(value: str | None) -> Optional[float]:
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _parse_list(value: str | None) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Settings:
    ollama_host: str
    extraction_model: str
    keep_alive: str
    request_timeout: Optional[float]
    preview_rows: int
    agency_type: str
    model_denylist_enabled: bool
    model_denylist_substrings: List[str]
    ocr_enabled: bool = False
    ocr_method: str = "auto"
    ocr_text_threshold: int = 50
    alias_config: Path = Path("config/aliases.yaml")
    grading_config: Path = Path("config/grading.yaml")


def load_settings() -> Settings:
    return Settings(
        ollama_host=os.getenv("OLLAMA_HOST", "http://localhost:11434"),
        extraction_model=os.getenv("EXTRACTION_MODEL", "llama3"),
        keep_alive=os.getenv("KEEP_ALIVE", "5m"),
        request_timeout=_parse_float(os.getenv("REQUEST_TIMEOUT")),
        preview_rows=_parse_int(os.getenv("PREVIEW_ROWS"), DEFAULT_PREVIEW_ROWS),
        agency_type=os.getenv("AGENCY_TYPE", "National Department"),
        model_denylist_enabled=_parse_bool(os.getenv("MODEL_DENYLIST_ENABLED"), False),
        model_denylist_substrings=_parse_list(os.getenv("MODEL_DENYLIST_SUBSTRINGS", "")),
        ocr_enabled=_parse_bool(os.getenv("OCR_ENABLED"), False),
        ocr_method=os.getenv("OCR_METHOD", "auto"),
        ocr_text_threshold=_parse_int(os.getenv("OCR_TEXT_THRESHOLD"), 50),
        alias_config=Path(os.getenv("ALIAS_CONFIG", "config/aliases.yaml")),
        grading_config=Path(os.getenv("GRADING_CONFIG", "config/grading.yaml")),
    )


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a YAML mapping.")
    return data


@dataclass(frozen=True)
class AliasConfig:
    officer: HeaderAliases = OFFICER_HEADER_ALIASES
    establishment: HeaderAliases = ESTABLISHMENT_HEADER_ALIASES


def load_alias_config(path: Path = Path("config/aliases.yaml")) -> AliasConfig:
    """
    Built-in alias tables with optional YAML overrides.

    ```yaml
    officer:
      division: ["section"]
    establishment:
      occupant: ["holder"]
    ```
    """

    data = _read_yaml(path)
    return AliasConfig(
        officer=merge_alias_overrides(data.get("officer"), OFFICER_HEADER_ALIASES),
        establishment=merge_alias_overrides(data.get("establishment"), ESTABLISHMENT_HEADER_ALIASES),
    )


def load_grading_table(path: Path = Path("config/grading.yaml")) -> GradingTable:
    """The YAML table replaces the built-in one entirely when the file exists."""

    data = _read_yaml(path)
    if not data:
        return DEFAULT_GRADING_TABLE
    return GradingTable.from_mapping(data, context=str(path))


@dataclass
class ImportContext:
    """Everything an import call needs besides the input itself."""

    aliases: AliasConfig = field(default_factory=AliasConfig)
    grading_table: GradingTable = DEFAULT_GRADING_TABLE
    preview_rows: int = DEFAULT_PREVIEW_ROWS


def load_context(settings: Optional[Settings] = None) -> ImportContext:
    settings = settings or load_settings()
    return ImportContext(
        preview_rows=settings.preview_rows,
        aliases=load_alias_config(settings.alias_config),
        grading_table=load_grading_table(settings.grading_config),
    )

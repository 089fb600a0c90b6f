"""
Cell-value coercion helpers.

Every parser is total: bad or missing input returns the documented default
instead of raising, so one messy cell never sinks a whole import.
"""

from __future__ import annotations

import math
import re
from typing import Any, List, Optional

from .records import URGENCY_LEVELS, TrainingRecord

_LIST_SPLIT = re.compile(r"[,;]")
_TRAINING_ENTRY = re.compile(r"^(.*) \((\d{4}-\d{2}-\d{2})\)$")

_TRUE_VALUES = {"yes", "true", "1"}
_FALSE_VALUES = {"no", "false", "0"}


def cell_text(value: Any) -> str:
    """Trimmed string form of a cell; None/NaN become ''."""

    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def optional_text(value: Any) -> Optional[str]:
    text = cell_text(value)
    return text or None


def parse_list(value: Any) -> List[str]:
    if not isinstance(value, str) or not value.strip():
        return []
    return [piece.strip() for piece in _LIST_SPLIT.split(value) if piece.strip()]


def parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if not isinstance(value, str):
        return None
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None


def parse_training_history(value: Any) -> List[TrainingRecord]:
    """Parse "Course A (2023-01-05), Course B" into training records."""

    if not isinstance(value, str) or not value.strip():
        return []
    records: List[TrainingRecord] = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        match = _TRAINING_ENTRY.match(entry)
        if match:
            records.append(TrainingRecord(match.group(1).strip(), match.group(2)))
        else:
            records.append(TrainingRecord(entry, "N/A"))
    return records


def parse_int(value: Any) -> Optional[int]:
    """Integer parse; integral floats ("7.0") are accepted, anything else is None."""

    text = cell_text(value)
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    if math.isfinite(number) and number.is_integer():
        return int(number)
    return None


def parse_rating(value: Any, low: float = 0, high: float = 10) -> Optional[float]:
    """Capability score within [low, high], or None when absent/invalid."""

    text = cell_text(value)
    if not text:
        return None
    try:
        score = float(text)
    except ValueError:
        return None
    if not math.isfinite(score) or score < low or score > high:
        return None
    return score


def parse_gender(value: Any) -> Optional[str]:
    lowered = cell_text(value).lower()
    if lowered == "male":
        return "Male"
    if lowered == "female":
        return "Female"
    return None


def parse_urgency(value: Any) -> str:
    text = cell_text(value)
    return text if text in URGENCY_LEVELS else "Low"

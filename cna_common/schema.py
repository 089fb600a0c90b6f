from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

LOGGER = logging.getLogger(__name__)

# Bump whenever an alias is added, removed or reordered: alias order decides
# which header wins when several match.
ALIAS_TABLE_VERSION = 1

RATING_HEADER_PATTERN = re.compile(r"^(?:[A-G][0-9]{1,2}|H[256])$", re.IGNORECASE)


@dataclass(frozen=True)
class HeaderAliases:
    """Canonical field -> ordered aliases (most specific first) for one import type."""

    name: str
    aliases: Mapping[str, Tuple[str, ...]]
    required: Tuple[str, ...]

    def for_field(self, field: str) -> Tuple[str, ...]:
        return self.aliases.get(field, ())


OFFICER_ALIASES: Mapping[str, Tuple[str, ...]] = {
    "email": ("email address", "e-mail", "email"),
    "name": ("full name", "officer name", "name", "occupant", "i1"),
    "position": ("job title", "position", "role", "designation", "i4"),
    "position_number": ("position no.", "position no", "position number", "pos no.", "pos no", "position id"),
    "division": ("business unit", "division", "department", "directorate", "division/section", "i6"),
    "grade": ("position grade", "job grade", "grade", "level", "classification", "i5"),
    "spa_rating": ("spa rating", "performance rating", "spa score", "most attained spa rating", "spa", "i12"),
    "technical_capability_gaps": ("technical capability gaps", "technical gaps"),
    "leadership_capability_gaps": ("leadership capability gaps", "leadership gaps"),
    "ict_skills": ("ict skills", "it skills"),
    "training_history": ("training history", "completed training"),
    "training_preferences": ("training preferences", "learning preferences"),
    "urgency": ("urgency level", "urgency"),
    "next_training_due_date": ("next training due date", "training due date", "next training due"),
    "age": ("age", "i2"),
    "gender": ("gender", "sex"),
    "date_of_birth": ("date of birth", "dob", "i3"),
    "job_qualification": ("job qualification", "qualification", "highest qualification", "i8", "i11"),
    "commencement_date": ("commencement date", "start date", "i10"),
    "years_of_experience": ("years of experience", "experience", "i9"),
    "employment_status": ("employment status", "status", "i7"),
    "file_number": ("file number", "filenumber"),
    "tna_process_exists": ("h1",),
    "tna_assessment_methods": ("h3",),
    "tna_process_documented": ("h4",),
    "tna_desired_courses": ("h7",),
    "tna_interested_topics": ("h8",),
    "tna_priorities": ("h9",),
}

ESTABLISHMENT_ALIASES: Mapping[str, Tuple[str, ...]] = {
    "position_number": ("position number", "position no.", "pos no"),
    "division": ("division", "department", "business unit", "description", "descriptions"),
    "grade": ("grade", "level", "classification", "class"),
    "designation": ("designation", "position title", "position", "job title"),
    "occupant": ("occupant", "name", "incumbent"),
    "status": ("status", "employment status"),
}

OFFICER_REQUIRED: Tuple[str, ...] = ("name", "division", "grade", "position")
ESTABLISHMENT_REQUIRED: Tuple[str, ...] = ("position_number", "designation", "grade", "division")

OFFICER_HEADER_ALIASES = HeaderAliases("officer", OFFICER_ALIASES, OFFICER_REQUIRED)
ESTABLISHMENT_HEADER_ALIASES = HeaderAliases("establishment", ESTABLISHMENT_ALIASES, ESTABLISHMENT_REQUIRED)


def _alias_pattern(alias: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(alias)}(?!\w)", re.IGNORECASE)


def find_header(headers: Sequence[Any], aliases: Iterable[str]) -> Optional[Any]:
    """
    Return the first header containing one of `aliases` as a whole word.

    Aliases are tried in order, so the earliest alias wins even when a later
    alias matches an earlier column. The original (untrimmed) header is returned.
    """

    trimmed = [str(h if h is not None else "").strip() for h in headers]
    for alias in aliases:
        try:
            pattern = _alias_pattern(alias)
        except re.error as exc:
            LOGGER.error("Header alias %r could not be compiled (%s); using substring match.", alias, exc)
            lowered = alias.lower()
            for idx, header in enumerate(trimmed):
                if lowered in header.lower():
                    return headers[idx]
            continue
        for idx, header in enumerate(trimmed):
            if pattern.search(header):
                return headers[idx]
    return None


def resolve_headers(headers: Sequence[Any], table: HeaderAliases) -> Dict[str, Any]:
    """Map each canonical field with a matching header to that header."""

    resolved: Dict[str, Any] = {}
    for field, aliases in table.aliases.items():
        found = find_header(headers, aliases)
        if found is not None:
            resolved[field] = found
    return resolved


def missing_required(resolved: Mapping[str, Any], required: Iterable[str]) -> List[str]:
    return [field for field in required if field not in resolved]


def is_rating_header(header: Any) -> bool:
    return bool(RATING_HEADER_PATTERN.match(str(header if header is not None else "").strip()))


def rating_headers(headers: Sequence[Any]) -> List[Any]:
    return [h for h in headers if is_rating_header(h)]


def merge_alias_overrides(
    overrides: Mapping[str, Any] | None,
    base: HeaderAliases,
) -> HeaderAliases:
    """
    Merge alias overrides into a base table.

    Overrides are canonical -> list of aliases. Listed aliases go ahead of the
    defaults for that field (so they win ties); unknown fields are added.
    Fields not mentioned keep their defaults.
    """

    merged: Dict[str, Tuple[str, ...]] = {k: tuple(v) for k, v in base.aliases.items()}
    for field, extra in (overrides or {}).items():
        if isinstance(extra, str):
            extra = [extra]
        if not isinstance(extra, (list, tuple)):
            raise ValueError(f"Aliases for '{field}' must be a list of header names.")
        ordered: List[str] = []
        for alias in [*(str(a).strip().lower() for a in extra), *merged.get(str(field), ())]:
            if alias and alias not in ordered:
                ordered.append(alias)
        merged[str(field)] = tuple(ordered)
    return HeaderAliases(base.name, merged, base.required)

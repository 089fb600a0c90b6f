from __future__ import annotations

from typing import Dict, Iterable, List

from .records import OfficerRecord


def officer_key(record: OfficerRecord) -> str:
    """Email when present, otherwise "name-position"; both lower-cased."""

    email = (record.email or "").strip().lower()
    if email:
        return email
    return f"{(record.name or '').strip()}-{(record.position or '').strip()}".lower()


def deduplicate_officers(records: Iterable[OfficerRecord]) -> List[OfficerRecord]:
    """
    Collapse officers sharing a key; the later record wins.

    Output keeps the order in which each key was first seen. Records whose key
    is empty or just "-" are dropped because they cannot be matched safely.
    """

    unique: Dict[str, OfficerRecord] = {}
    for record in records:
        key = officer_key(record)
        if not key or key == "-":
            continue
        unique[key] = record
    return list(unique.values())


def merge_officers(existing: Iterable[OfficerRecord], incoming: Iterable[OfficerRecord]) -> List[OfficerRecord]:
    """Append an import to existing data; re-imported officers replace their old record."""

    return deduplicate_officers([*existing, *incoming])

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple

GradingGroup = Literal["Junior Officer", "Senior Officer", "Manager", "Senior Management", "Other"]
GapCategory = Literal["No Gap", "Minor Gap", "Moderate Gap", "Critical Gap"]
CurrentScoreCategory = Literal["Low", "Moderate", "High"]
PerformanceRatingLevel = Literal[
    "Well Above Required",
    "Above Required",
    "At Required Level",
    "Below Required Level",
    "Well Below Required Level",
    "Not Rated",
]

GRADING_GROUPS: Sequence[str] = ("Junior Officer", "Senior Officer", "Manager", "Senior Management", "Other")
AGENCY_TYPES: Sequence[str] = (
    "All Agencies",
    "National Agency",
    "National Department",
    "Provincial Administration",
    "Provincial Health Authority",
    "Local Level Government",
    "Other",
)
DEFAULT_AGENCY_KEY = "default"

REALISTIC_SCORE = 10

OVERCOMPENSATION_FLAG = (
    "High performer, low self-assessed capability - possible overcompensation or workload mismatch."
)
UNDERPERFORMANCE_FLAG = "Skilled staff underperforming - possible motivation or supervision issue."

_PERFORMANCE_LEVELS: Dict[int, PerformanceRatingLevel] = {
    5: "Well Above Required",
    4: "Above Required",
    3: "At Required Level",
    2: "Below Required Level",
    1: "Well Below Required Level",
}

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_GRADE_LEVEL = re.compile(r"\d+")


def spa_rating_value(spa_rating: Any) -> Optional[int]:
    """Leading integer of an SPA rating ("4", "4 - Above", "4.0"), or None."""

    if spa_rating is None:
        return None
    match = _LEADING_INT.match(str(spa_rating))
    if not match:
        return None
    return int(match.group(1))


def performance_rating_level(spa_rating: Any) -> PerformanceRatingLevel:
    value = spa_rating_value(spa_rating)
    if value is None:
        return "Not Rated"
    return _PERFORMANCE_LEVELS.get(value, "Not Rated")


def gap_category(gap_score: float) -> GapCategory:
    """
    Band a gap score (10 - current score).

    Integer gaps map to <=1, 2, 3-5, >=6. Fractional gaps fall into the band
    whose upper bound they do not exceed.
    """

    if gap_score <= 1:
        return "No Gap"
    if gap_score <= 2:
        return "Minor Gap"
    if gap_score <= 5:
        return "Moderate Gap"
    return "Critical Gap"


def current_score_category(score: float) -> CurrentScoreCategory:
    if score >= 8:
        return "High"
    if score >= 5:
        return "Moderate"
    return "Low"


def misalignment_flag(spa_rating: Any, scores: Iterable[float]) -> Optional[str]:
    """
    Compare SPA performance against the mean self-assessed capability.

    Both inputs are required; partial data never produces a flag.
    """

    spa = spa_rating_value(spa_rating)
    score_list = list(scores)
    if spa is None or not score_list:
        return None
    average = sum(score_list) / len(score_list)
    if spa in (4, 5) and average < 5:
        return OVERCOMPENSATION_FLAG
    if spa in (1, 2) and average > 7:
        return UNDERPERFORMANCE_FLAG
    return None


@dataclass(frozen=True)
class GradeBand:
    max_level: int
    group: GradingGroup


@dataclass(frozen=True)
class GradingTable:
    """
    Grade text -> grading group lookup, keyed by agency type.

    Prefix rules are checked first (agency-specific, then "default"). Otherwise
    the first integer in the grade is placed into the agency's numeric bands.
    """

    prefix_rules: Mapping[str, Tuple[Tuple[str, GradingGroup], ...]]
    bands: Mapping[str, Tuple[GradeBand, ...]]

    def rules_for(self, agency_type: str) -> Tuple[Tuple[str, GradingGroup], ...]:
        specific = self.prefix_rules.get(agency_type, ()) if agency_type != DEFAULT_AGENCY_KEY else ()
        return (*specific, *self.prefix_rules.get(DEFAULT_AGENCY_KEY, ()))

    def bands_for(self, agency_type: str) -> Tuple[GradeBand, ...]:
        return self.bands.get(agency_type) or self.bands.get(DEFAULT_AGENCY_KEY, ())

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, context: str = "grading config") -> "GradingTable":
        if not isinstance(data, Mapping):
            raise ValueError(f"{context} must be a mapping with 'prefix_rules' and 'bands'.")

        prefix_rules: Dict[str, Tuple[Tuple[str, GradingGroup], ...]] = {}
        for agency, rules in (data.get("prefix_rules") or {}).items():
            if not isinstance(rules, list):
                raise ValueError(f"prefix_rules for '{agency}' in {context} must be a list.")
            parsed: List[Tuple[str, GradingGroup]] = []
            for rule in rules:
                if not isinstance(rule, Mapping) or "prefix" not in rule or "group" not in rule:
                    raise ValueError(f"Each prefix rule in {context} needs 'prefix' and 'group': {rule!r}")
                parsed.append((str(rule["prefix"]), _check_group(rule["group"], context)))
            prefix_rules[str(agency)] = tuple(parsed)

        bands: Dict[str, Tuple[GradeBand, ...]] = {}
        for agency, entries in (data.get("bands") or {}).items():
            if not isinstance(entries, list):
                raise ValueError(f"bands for '{agency}' in {context} must be a list.")
            parsed_bands: List[GradeBand] = []
            for entry in entries:
                if not isinstance(entry, Mapping) or "max_level" not in entry or "group" not in entry:
                    raise ValueError(f"Each band in {context} needs 'max_level' and 'group': {entry!r}")
                try:
                    max_level = int(entry["max_level"])
                except (TypeError, ValueError) as exc:
                    raise ValueError(f"max_level must be an integer in {context}: {entry!r}") from exc
                parsed_bands.append(GradeBand(max_level, _check_group(entry["group"], context)))
            bands[str(agency)] = tuple(sorted(parsed_bands, key=lambda b: b.max_level))

        if DEFAULT_AGENCY_KEY not in bands:
            raise ValueError(f"{context} must define bands for '{DEFAULT_AGENCY_KEY}'.")
        return cls(prefix_rules=prefix_rules, bands=bands)


def _check_group(value: Any, context: str) -> GradingGroup:
    group = str(value)
    if group not in GRADING_GROUPS:
        raise ValueError(f"Unknown grading group '{group}' in {context}; expected one of {', '.join(GRADING_GROUPS)}.")
    return group  # type: ignore[return-value]


# Placeholder thresholds pending confirmation with the personnel agency.
DEFAULT_GRADING_TABLE = GradingTable.from_mapping(
    {
        "prefix_rules": {
            "default": [
                {"prefix": "SES", "group": "Senior Management"},
                {"prefix": "Executive", "group": "Senior Management"},
                {"prefix": "Secretary", "group": "Senior Management"},
                {"prefix": "Casual", "group": "Other"},
            ],
        },
        "bands": {
            "default": [
                {"max_level": 8, "group": "Junior Officer"},
                {"max_level": 12, "group": "Senior Officer"},
                {"max_level": 15, "group": "Manager"},
                {"max_level": 99, "group": "Senior Management"},
            ],
            "Provincial Health Authority": [
                {"max_level": 6, "group": "Junior Officer"},
                {"max_level": 10, "group": "Senior Officer"},
                {"max_level": 13, "group": "Manager"},
                {"max_level": 99, "group": "Senior Management"},
            ],
            "Local Level Government": [
                {"max_level": 6, "group": "Junior Officer"},
                {"max_level": 9, "group": "Senior Officer"},
                {"max_level": 12, "group": "Manager"},
                {"max_level": 99, "group": "Senior Management"},
            ],
        },
    },
    context="built-in grading table",
)


def grading_group(grade: Any, agency_type: str, table: GradingTable = DEFAULT_GRADING_TABLE) -> GradingGroup:
    text = str(grade or "").strip()
    if not text:
        return "Other"

    lowered = text.lower()
    for prefix, group in table.rules_for(agency_type):
        if prefix and lowered.startswith(prefix.lower()):
            return group

    match = _GRADE_LEVEL.search(text)
    if not match:
        return "Other"
    level = int(match.group(0))
    for band in table.bands_for(agency_type):
        if level <= band.max_level:
            return band.group
    return "Other"

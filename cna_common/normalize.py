from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import polars as pl

from .classify import DEFAULT_GRADING_TABLE, GRADING_GROUPS, GradingTable, grading_group, misalignment_flag
from .coerce import (
    cell_text,
    optional_text,
    parse_bool,
    parse_gender,
    parse_int,
    parse_list,
    parse_rating,
    parse_training_history,
    parse_urgency,
)
from .errors import NoValidRecordsError, SchemaError, StructuralError
from .records import (
    ESTABLISHMENT_STATUSES,
    CapabilityRating,
    EstablishmentRecord,
    EstablishmentSummary,
    OfficerRecord,
)
from .schema import (
    ESTABLISHMENT_HEADER_ALIASES,
    OFFICER_HEADER_ALIASES,
    HeaderAliases,
    missing_required,
    rating_headers,
    resolve_headers,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_PREVIEW_ROWS = 60


@dataclass
class RawTable:
    """Ordered headers plus rows keyed by header; every cell is a string."""

    headers: List[str]
    rows: List[Dict[str, str]]

    @property
    def height(self) -> int:
        return len(self.rows)

    def preview(self, limit: int = DEFAULT_PREVIEW_ROWS) -> List[Dict[str, str]]:
        return self.rows[:limit]

    def to_frame(self, limit: Optional[int] = None) -> pl.DataFrame:
        columns = list(dict.fromkeys(self.headers))
        rows = self.rows if limit is None else self.rows[:limit]
        return pl.DataFrame(
            {col: [row.get(col, "") for row in rows] for col in columns},
            schema={col: pl.Utf8 for col in columns},
        )


def rows_from_grid(headers: Sequence[Any], grid: Sequence[Sequence[Any]], *, source: str = "table") -> List[Dict[str, str]]:
    """
    Key each grid row by header, padding short rows with '' and truncating long ones.

    Width mismatches are corrected, never rejected; each one is logged.
    """

    header_list = [cell_text(h) if not isinstance(h, str) else h for h in headers]
    width = len(header_list)
    rows: List[Dict[str, str]] = []
    for index, raw in enumerate(grid, start=1):
        values = list(raw)
        if len(values) != width:
            LOGGER.warning(
                "%s row %d has an inconsistent column count (%d). Correcting to match header count of %d columns.",
                source,
                index,
                len(values),
                width,
            )
            values = (values + [""] * width)[:width]
        rows.append({header: cell_text(values[i]) for i, header in enumerate(header_list)})
    return rows


@dataclass
class NormalizationReport:
    raw_row_count: int
    valid_row_count: int
    dropped_rows: List[int]
    resolved_headers: Dict[str, str]
    rating_headers: List[str] = field(default_factory=list)

    @property
    def dropped_count(self) -> int:
        return len(self.dropped_rows)


@dataclass
class ImportResult:
    records: List[OfficerRecord]
    preview: List[Dict[str, str]]
    headers: List[str]
    report: NormalizationReport


@dataclass
class EstablishmentImport:
    records: List[EstablishmentRecord]
    summary: EstablishmentSummary
    headers: List[str]
    report: NormalizationReport


def _resolve_or_fail(table: RawTable, aliases: HeaderAliases, context: str) -> Dict[str, str]:
    resolved = resolve_headers(table.headers, aliases)
    missing = missing_required(resolved, aliases.required)
    if missing:
        raise SchemaError(
            f"The {context} data is missing required columns. Please ensure it contains headers for: "
            f"{', '.join(missing)}.",
            missing=missing,
        )
    return resolved


def _build_officer(
    row: Mapping[str, str],
    resolved: Mapping[str, str],
    rating_cols: Sequence[str],
    agency_type: str,
    grading_table: GradingTable,
) -> Optional[OfficerRecord]:
    def get(key: str) -> str:
        header = resolved.get(key)
        if header is None:
            return ""
        value = row.get(header, "")
        return value if isinstance(value, str) else cell_text(value)

    name = get("name").strip()
    position = get("position").strip()
    division = get("division").strip()
    grade = get("grade").strip()
    if not (name and position and division and grade):
        return None

    ratings: List[CapabilityRating] = []
    for header in rating_cols:
        score = parse_rating(row.get(header))
        if score is not None:
            ratings.append(CapabilityRating(str(header).strip().upper(), score))

    spa_rating = get("spa_rating").strip()

    return OfficerRecord(
        email=get("email").strip(),
        name=name,
        position=position,
        division=division,
        grade=grade,
        grading_group=grading_group(grade, agency_type, grading_table),
        spa_rating=spa_rating,
        capability_ratings=ratings,
        misalignment_flag=misalignment_flag(spa_rating, [r.current_score for r in ratings]),
        position_number=optional_text(get("position_number")),
        technical_capability_gaps=parse_list(get("technical_capability_gaps")),
        leadership_capability_gaps=parse_list(get("leadership_capability_gaps")),
        ict_skills=parse_list(get("ict_skills")),
        training_history=parse_training_history(get("training_history")),
        training_preferences=parse_list(get("training_preferences")),
        urgency=parse_urgency(get("urgency")),  # type: ignore[arg-type]
        next_training_due_date=optional_text(get("next_training_due_date")),
        age=parse_int(get("age")),
        gender=parse_gender(get("gender")),  # type: ignore[arg-type]
        date_of_birth=optional_text(get("date_of_birth")),
        job_qualification=optional_text(get("job_qualification")),
        commencement_date=optional_text(get("commencement_date")),
        years_of_experience=parse_int(get("years_of_experience")),
        employment_status=optional_text(get("employment_status")),
        file_number=optional_text(get("file_number")),
        tna_process_exists=parse_bool(get("tna_process_exists")),
        tna_assessment_methods=parse_list(get("tna_assessment_methods")),
        tna_process_documented=parse_bool(get("tna_process_documented")),
        tna_desired_courses=optional_text(get("tna_desired_courses")),
        tna_interested_topics=parse_list(get("tna_interested_topics")),
        tna_priorities=optional_text(get("tna_priorities")),
    )


def normalize_officer_table(
    table: RawTable,
    agency_type: str,
    *,
    aliases: HeaderAliases = OFFICER_HEADER_ALIASES,
    grading_table: GradingTable = DEFAULT_GRADING_TABLE,
    preview_rows: int = DEFAULT_PREVIEW_ROWS,
) -> ImportResult:
    """
    Convert a parsed CNA table into officer records.

    - Resolves headers against the alias table and fails on missing required columns
    - Treats A1..G99 and H2/H5/H6 columns as capability ratings (0-10, others skipped)
    - Drops rows missing name/division/grade/position; fails if none survive
    """

    if not table.headers:
        raise StructuralError("The imported data has no columns.")
    if not table.rows:
        raise StructuralError("The imported data is empty or contains no data rows.")

    resolved = _resolve_or_fail(table, aliases, "CNA")
    rating_cols = rating_headers(table.headers)

    records: List[OfficerRecord] = []
    dropped: List[int] = []
    for index, row in enumerate(table.rows, start=1):
        record = _build_officer(row, resolved, rating_cols, agency_type, grading_table)
        if record is None:
            LOGGER.debug("Dropping row %d: missing name, division, grade or position.", index)
            dropped.append(index)
            continue
        records.append(record)

    if not records:
        raise NoValidRecordsError(
            "No valid officer records could be parsed. Check that required columns "
            "(name, division, grade, position) are populated."
        )

    report = NormalizationReport(
        raw_row_count=table.height,
        valid_row_count=len(records),
        dropped_rows=dropped,
        resolved_headers=dict(resolved),
        rating_headers=[str(h) for h in rating_cols],
    )
    LOGGER.info(
        "Parsed %d officer records from %d rows (%d dropped, %d rating columns).",
        report.valid_row_count,
        report.raw_row_count,
        report.dropped_count,
        len(rating_cols),
    )
    return ImportResult(
        records=records,
        preview=table.preview(preview_rows),
        headers=list(table.headers),
        report=report,
    )


def summarize_establishment(
    records: Sequence[EstablishmentRecord],
    agency_type: str,
    grading_table: GradingTable = DEFAULT_GRADING_TABLE,
) -> EstablishmentSummary:
    level_summary: Dict[str, int] = {group: 0 for group in GRADING_GROUPS}
    divisions: List[str] = []
    for rec in records:
        group = grading_group(rec.grade, agency_type, grading_table)
        level_summary[group] = level_summary.get(group, 0) + 1
        if rec.division and rec.division not in divisions:
            divisions.append(rec.division)
    return EstablishmentSummary(
        total_positions=len(records),
        divisions=divisions,
        level_summary=level_summary,
        vacant_count=sum(1 for rec in records if rec.status == "Vacant"),
    )


def normalize_establishment_table(
    table: RawTable,
    agency_type: str,
    *,
    aliases: HeaderAliases = ESTABLISHMENT_HEADER_ALIASES,
    grading_table: GradingTable = DEFAULT_GRADING_TABLE,
) -> EstablishmentImport:
    """Convert an establishment list into position records plus a summary."""

    if not table.headers or not table.rows:
        raise StructuralError("The selected establishment file is empty.")

    resolved = _resolve_or_fail(table, aliases, "establishment")

    records: List[EstablishmentRecord] = []
    dropped: List[int] = []
    for index, row in enumerate(table.rows, start=1):
        values = {key: cell_text(row.get(header, "")) for key, header in resolved.items()}
        if not any(values.values()):
            dropped.append(index)
            continue
        status = values.get("status", "")
        records.append(
            EstablishmentRecord(
                position_number=values.get("position_number", ""),
                division=values.get("division", ""),
                grade=values.get("grade", ""),
                designation=values.get("designation", ""),
                occupant=values.get("occupant", ""),
                status=status if status in ESTABLISHMENT_STATUSES else "Other",  # type: ignore[arg-type]
            )
        )

    if not records:
        raise NoValidRecordsError("No establishment positions could be parsed from the file.")

    report = NormalizationReport(
        raw_row_count=table.height,
        valid_row_count=len(records),
        dropped_rows=dropped,
        resolved_headers=dict(resolved),
    )
    LOGGER.info("Parsed %d establishment positions from %d rows.", len(records), table.height)
    return EstablishmentImport(
        records=records,
        summary=summarize_establishment(records, agency_type, grading_table),
        headers=list(table.headers),
        report=report,
    )

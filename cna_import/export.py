from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd
import polars as pl

from cna_common.records import EstablishmentRecord, EstablishmentSummary, OfficerRecord

LOGGER = logging.getLogger(__name__)

LIST_JOINER = "; "

Record = Union[OfficerRecord, EstablishmentRecord]


def sanitize_for_excel(val: Any) -> Any:
    """Prevent formula injection in Excel."""
    if val is None:
        return ""
    if isinstance(val, (int, float, bool)):
        return val
    s = str(val)
    if s.startswith(("=", "+", "-", "@")):
        return "'" + s
    return s


def _flatten_officer(record: OfficerRecord, rating_codes: Sequence[str]) -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in record.to_dict().items():
        if key == "capability_ratings":
            continue
        if key == "training_history":
            flat[key] = LIST_JOINER.join(t.render() for t in record.training_history)
        elif isinstance(value, list):
            flat[key] = LIST_JOINER.join(str(v) for v in value)
        else:
            flat[key] = value
    flat["average_capability_score"] = record.average_capability_score
    scores = {r.question_code: r.current_score for r in record.capability_ratings}
    for code in rating_codes:
        flat[code] = scores.get(code)
    return flat


def _rating_codes(records: Sequence[OfficerRecord]) -> List[str]:
    codes: List[str] = []
    for record in records:
        for rating in record.capability_ratings:
            if rating.question_code not in codes:
                codes.append(rating.question_code)
    return codes


def records_to_frame(records: Sequence[Record]) -> pl.DataFrame:
    """
    Flatten records into one row each.

    Officer list fields are joined with "; " and each question code gets its
    own score column, in first-seen order.
    """

    if not records:
        return pl.DataFrame()
    if isinstance(records[0], OfficerRecord):
        codes = _rating_codes(records)  # type: ignore[arg-type]
        rows = [_flatten_officer(r, codes) for r in records]  # type: ignore[arg-type]
    else:
        rows = [r.to_dict() for r in records]
    return pl.DataFrame(rows, infer_schema_length=None)


def summary_to_frame(summary: EstablishmentSummary) -> pl.DataFrame:
    metrics: List[Dict[str, Any]] = [
        {"Metric": "Total Positions", "Value": str(summary.total_positions)},
        {"Metric": "Vacant Positions", "Value": str(summary.vacant_count)},
        {"Metric": "Divisions", "Value": LIST_JOINER.join(summary.divisions)},
    ]
    for group, count in summary.level_summary.items():
        metrics.append({"Metric": group, "Value": str(count)})
    return pl.DataFrame(metrics)


def _write_sheet(writer: pd.ExcelWriter, frame: pl.DataFrame, sheet_name: str, fmt_header: Any) -> None:
    pdf = frame.to_pandas() if frame.width else pd.DataFrame()
    pdf = pdf.astype(object).where(pdf.notna(), None).apply(lambda col: col.map(sanitize_for_excel))
    pdf.to_excel(writer, sheet_name=sheet_name, index=False)
    ws = writer.sheets[sheet_name]
    for col_idx, col_name in enumerate(pdf.columns):
        ws.write(0, col_idx, col_name, fmt_header)
        ws.set_column(col_idx, col_idx, max(12, min(40, len(str(col_name)) + 2)))
    ws.freeze_panes(1, 0)


def write_excel(records: Sequence[Record], output_path: Path, summary: Optional[EstablishmentSummary] = None) -> None:
    frame = records_to_frame(records)
    sheet = "Officers" if records and isinstance(records[0], OfficerRecord) else "Establishment"
    with pd.ExcelWriter(output_path, engine="xlsxwriter") as writer:
        fmt_header = writer.book.add_format({"bold": True, "bg_color": "#D3D3D3", "border": 1})
        _write_sheet(writer, frame, sheet, fmt_header)
        if summary is not None:
            _write_sheet(writer, summary_to_frame(summary), "Summary", fmt_header)


def write_records(
    records: Sequence[Record],
    output_path: Union[str, Path],
    summary: Optional[EstablishmentSummary] = None,
) -> Path:
    """Write records as .json, .csv or .xlsx depending on the output suffix."""

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()

    if suffix == ".json":
        with path.open("w", encoding="utf-8") as f:
            json.dump([r.to_dict() for r in records], f, indent=2)
    elif suffix == ".csv":
        records_to_frame(records).write_csv(path)
    elif suffix == ".xlsx":
        write_excel(records, path, summary=summary)
    else:
        raise ValueError(f"Unsupported output type '{suffix}'. Use .json, .csv or .xlsx.")

    LOGGER.info("Wrote %d records to %s", len(records), path)
    return path


def read_officer_json(path: Union[str, Path]) -> List[OfficerRecord]:
    with Path(path).open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list of officer records.")
    return [OfficerRecord.from_dict(item) for item in data]

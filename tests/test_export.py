import json
from pathlib import Path

import pandas as pd
import polars as pl
import pytest

from cna_common.normalize import summarize_establishment
from cna_common.records import CapabilityRating, EstablishmentRecord, OfficerRecord, TrainingRecord
from cna_import.export import read_officer_json, records_to_frame, sanitize_for_excel, write_records


def sample_officers():
    return [
        OfficerRecord(
            email="jane@agency.gov",
            name="Jane Doe",
            position="Accountant",
            division="Finance",
            grade="Grade 12",
            grading_group="Senior Officer",
            spa_rating="4",
            capability_ratings=[CapabilityRating("A1", 3.0), CapabilityRating("B2", 4.0)],
            ict_skills=["Excel", "Word"],
            training_history=[TrainingRecord("Excel Basics", "2023-01-05")],
        ),
        OfficerRecord(
            email="",
            name="=HYPERLINK(\"http://x\")",
            position="Clerk",
            division="HR",
            grade="Grade 5",
            grading_group="Junior Officer",
            spa_rating="",
            capability_ratings=[CapabilityRating("C3", 9.0)],
        ),
    ]


def test_sanitize_for_excel():
    assert sanitize_for_excel("=1+1") == "'=1+1"
    assert sanitize_for_excel("-5 days") == "'-5 days"
    assert sanitize_for_excel("plain") == "plain"
    assert sanitize_for_excel(-5) == -5
    assert sanitize_for_excel(None) == ""


def test_records_to_frame_flattens_ratings_and_lists():
    frame = records_to_frame(sample_officers())

    assert frame.height == 2
    assert ["A1", "B2", "C3"] == [c for c in frame.columns if c in {"A1", "B2", "C3"}]
    first = frame.row(0, named=True)
    assert first["ict_skills"] == "Excel; Word"
    assert first["training_history"] == "Excel Basics (2023-01-05)"
    assert first["average_capability_score"] == 3.5
    assert first["C3"] is None
    assert "capability_ratings" not in frame.columns


def test_write_json_round_trips_officers(tmp_path):
    path = write_records(sample_officers(), Path(tmp_path) / "out" / "officers.json")

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data[0]["performance_rating_level"] == "Above Required"
    assert data[0]["capability_ratings"][0]["gap_category"] == "Critical Gap"
    assert read_officer_json(path) == sample_officers()


def test_write_csv(tmp_path):
    path = write_records(sample_officers(), Path(tmp_path) / "officers.csv")

    frame = pl.read_csv(path, infer_schema_length=0)
    assert frame["name"].to_list() == ["Jane Doe", "=HYPERLINK(\"http://x\")"]
    assert frame["A1"].to_list()[0] == "3.0"


def test_write_xlsx_sanitizes_formulas(tmp_path):
    path = write_records(sample_officers(), Path(tmp_path) / "officers.xlsx")

    sheet = pd.read_excel(path, sheet_name="Officers", dtype=str)
    assert sheet["name"].tolist()[1] == "'=HYPERLINK(\"http://x\")"


def test_write_establishment_with_summary(tmp_path):
    records = [
        EstablishmentRecord("P1", "Finance", "Grade 12", "Accountant", "Jane", "Confirmed"),
        EstablishmentRecord("P2", "Finance", "Grade 5", "Clerk", "", "Vacant"),
    ]
    summary = summarize_establishment(records, "National Department")

    path = write_records(records, Path(tmp_path) / "establishment.xlsx", summary=summary)

    assert pd.ExcelFile(path).sheet_names == ["Establishment", "Summary"]
    metrics = pd.read_excel(path, sheet_name="Summary", dtype=str)
    assert dict(zip(metrics["Metric"], metrics["Value"]))["Vacant Positions"] == "1"


def test_unsupported_output_type(tmp_path):
    with pytest.raises(ValueError, match="Unsupported output type"):
        write_records(sample_officers(), Path(tmp_path) / "officers.txt")

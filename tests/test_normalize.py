import logging

import pytest

from cna_common.classify import OVERCOMPENSATION_FLAG
from cna_common.errors import NoValidRecordsError, SchemaError, StructuralError
from cna_common.normalize import (
    RawTable,
    normalize_establishment_table,
    normalize_officer_table,
    rows_from_grid,
)
from cna_common.schema import OFFICER_REQUIRED, HeaderAliases
from cna_import.adapters import parse_pasted_data

AGENCY = "National Department"


def officer_row(name="Jane Doe", division="Finance", grade="Grade 12", position="Accountant", **extra):
    row = {"Name": name, "Division": division, "Grade": grade, "Position": position}
    row.update(extra)
    return row


def table(rows, extra_headers=()):
    headers = ["Name", "Division", "Grade", "Position", *extra_headers]
    return RawTable(headers=headers, rows=[{h: r.get(h, "") for h in headers} for r in rows])


def test_pasted_row_becomes_officer_record():
    result = parse_pasted_data("name\tdivision\tgrade\tposition\nJane Doe\tFinance\tGrade 12\tAccountant", AGENCY)

    assert len(result.records) == 1
    record = result.records[0]
    assert (record.name, record.division, record.grade, record.position) == (
        "Jane Doe",
        "Finance",
        "Grade 12",
        "Accountant",
    )
    assert record.capability_ratings == []
    assert record.grading_group == "Senior Officer"
    assert record.urgency == "Low"
    assert record.misalignment_flag is None
    assert result.report.raw_row_count == 1
    assert result.report.dropped_count == 0


def test_out_of_range_rating_is_skipped():
    result = normalize_officer_table(table([officer_row(A1="12", A2="7")], ("A1", "A2")), AGENCY)

    ratings = result.records[0].capability_ratings
    assert [(r.question_code, r.current_score) for r in ratings] == [("A2", 7.0)]
    assert ratings[0].gap_score == 3.0
    assert ratings[0].gap_category == "Moderate Gap"
    assert result.report.rating_headers == ["A1", "A2"]


def test_high_spa_with_low_capability_is_flagged():
    rows = [officer_row(**{"SPA Rating": "4", "A1": "3", "A2": "4"})]

    record = normalize_officer_table(table(rows, ("SPA Rating", "A1", "A2")), AGENCY).records[0]

    assert record.average_capability_score == 3.5
    assert record.misalignment_flag == OVERCOMPENSATION_FLAG
    assert record.performance_rating_level == "Above Required"


def test_optional_fields_are_coerced():
    rows = [
        officer_row(
            **{
                "Email": " jane@agency.gov ",
                "ICT Skills": "Excel; Word",
                "Training History": "Excel Basics (2023-01-05), Leadership",
                "Age": "41",
                "Gender": "female",
                "Urgency": "High",
                "H1": "Yes",
            }
        )
    ]
    headers = ("Email", "ICT Skills", "Training History", "Age", "Gender", "Urgency", "H1")

    record = normalize_officer_table(table(rows, headers), AGENCY).records[0]

    assert record.email == "jane@agency.gov"
    assert record.ict_skills == ["Excel", "Word"]
    assert [t.render() for t in record.training_history] == ["Excel Basics (2023-01-05)", "Leadership (N/A)"]
    assert record.age == 41
    assert record.gender == "Female"
    assert record.urgency == "High"
    assert record.tna_process_exists is True
    assert record.capability_ratings == []


def test_rows_missing_required_values_are_dropped():
    rows = [officer_row(), officer_row(name="No Grade", grade=" "), officer_row(name="Sam")]

    result = normalize_officer_table(table(rows), AGENCY)

    assert [r.name for r in result.records] == ["Jane Doe", "Sam"]
    assert result.report.dropped_rows == [2]
    assert result.report.valid_row_count == 2


def test_missing_required_columns_raise_schema_error():
    raw = RawTable(headers=["name", "division"], rows=[{"name": "A", "division": "B"}])

    with pytest.raises(SchemaError) as excinfo:
        normalize_officer_table(raw, AGENCY)

    assert excinfo.value.missing == ["grade", "position"]
    assert "grade, position" in str(excinfo.value)


def test_all_rows_dropped_raises():
    with pytest.raises(NoValidRecordsError):
        normalize_officer_table(table([officer_row(grade=""), officer_row(position="")]), AGENCY)


def test_empty_tables_are_structural_errors():
    with pytest.raises(StructuralError, match="no columns"):
        normalize_officer_table(RawTable(headers=[], rows=[]), AGENCY)
    with pytest.raises(StructuralError, match="no data rows"):
        normalize_officer_table(RawTable(headers=["Name"], rows=[]), AGENCY)


def test_preview_is_limited():
    rows = [officer_row(name=f"Officer {i}") for i in range(70)]

    result = normalize_officer_table(table(rows), AGENCY)

    assert len(result.records) == 70
    assert len(result.preview) == 60
    assert len(normalize_officer_table(table(rows), AGENCY, preview_rows=5).preview) == 5


def test_synthetic_alias_table_can_be_injected():
    aliases = HeaderAliases(
        "officer",
        {"name": ("worker",), "division": ("unit",), "grade": ("band",), "position": ("post",)},
        OFFICER_REQUIRED,
    )
    raw = RawTable(
        headers=["Worker", "Unit", "Band", "Post"],
        rows=[{"Worker": "Ana", "Unit": "ICT", "Band": "Grade 5", "Post": "Technician"}],
    )

    record = normalize_officer_table(raw, AGENCY, aliases=aliases).records[0]

    assert (record.name, record.division, record.grading_group) == ("Ana", "ICT", "Junior Officer")


def test_rows_from_grid_corrects_width(caplog):
    with caplog.at_level(logging.WARNING, logger="cna_common.normalize"):
        rows = rows_from_grid(["a", "b"], [["1"], ["1", "2", "3"], ["x", "y"]], source="Extracted")

    assert rows == [{"a": "1", "b": ""}, {"a": "1", "b": "2"}, {"a": "x", "b": "y"}]
    warnings = [r for r in caplog.records if "inconsistent column count" in r.getMessage()]
    assert len(warnings) == 2


def establishment_table(rows):
    headers = ["Position Number", "Division", "Grade", "Designation", "Occupant", "Status"]
    return RawTable(headers=headers, rows=[dict(zip(headers, r)) for r in rows])


def test_establishment_summary():
    raw = establishment_table(
        [
            ("P1", "Finance", "Grade 12", "Accountant", "Jane", "Confirmed"),
            ("P2", "Finance", "Grade 5", "Clerk", "", "Vacant"),
            ("P3", "HR", "SES 1", "Director", "Bob", "Acting"),
            ("", "", "", "", "", ""),
        ]
    )

    result = normalize_establishment_table(raw, AGENCY)

    assert [r.position_number for r in result.records] == ["P1", "P2", "P3"]
    assert result.records[2].status == "Other"
    assert result.report.dropped_rows == [4]
    summary = result.summary
    assert summary.total_positions == 3
    assert summary.divisions == ["Finance", "HR"]
    assert summary.vacant_count == 1
    assert summary.level_summary == {
        "Junior Officer": 1,
        "Senior Officer": 1,
        "Manager": 0,
        "Senior Management": 1,
        "Other": 0,
    }


def test_establishment_errors():
    with pytest.raises(StructuralError, match="establishment file is empty"):
        normalize_establishment_table(RawTable(headers=["Grade"], rows=[]), AGENCY)

    raw = RawTable(headers=["Grade", "Division"], rows=[{"Grade": "5", "Division": "HR"}])
    with pytest.raises(SchemaError) as excinfo:
        normalize_establishment_table(raw, AGENCY)
    assert excinfo.value.missing == ["position_number", "designation"]

    with pytest.raises(NoValidRecordsError):
        normalize_establishment_table(establishment_table([("", "", "", "", "", "")]), AGENCY)

"""
Tests for CSV ingestion.

Run tests:
    pytest tests/test_ingest.py -v
"""

import pytest

from api.shared.errors import CSVFormatError
from api.shared.ingest import parse_bool, parse_csv, parse_csv_files, parse_number
from api.shared.records import REQUIRED_COLUMNS, NumericField, Record

from conftest import build_csv


class TestCellParsing:
    def test_numbers(self):
        assert parse_number("12.5") == 12.5
        assert parse_number("") == 0.0
        assert parse_number("n/a") == 0.0
        assert parse_number("nan") == 0.0

    def test_leading_number_is_used(self):
        assert parse_number("12abc") == 12.0
        assert parse_number(" 3.5 MB") == 3.5
        assert parse_number("-2e3x") == -2000.0
        assert parse_number("abc12") == 0.0

    def test_non_finite_numbers_become_zero(self):
        assert parse_number("inf") == 0.0
        assert parse_number("-Infinity") == 0.0
        assert parse_number("1e999") == 0.0

    def test_booleans(self):
        assert parse_bool("true")
        assert parse_bool(" TRUE ")
        assert not parse_bool("false")
        assert not parse_bool("1")


class TestParseCSV:
    def test_parses_records(self):
        text = build_csv([
            {"Repo_Name": "alpha", "Repo_Size_mb": 12.5, "isFork": True, "Record_Count": 40},
            {"Repo_Name": "beta", "Repo_Size_mb": 3, "Has_Wiki": True, "Record_Count": 2},
        ])
        records = parse_csv(text)
        assert len(records) == 2
        assert isinstance(records[0], Record)
        assert records[0].repo_name == "alpha"
        assert records[0].repo_size_mb == 12.5
        assert records[0].is_fork is True
        assert records[1].has_wiki is True
        assert records[1].value(NumericField.RECORD_COUNT) == 2.0

    def test_record_count_derived_from_activity(self):
        text = build_csv([{"Record_Count": 0, "Issue_Count": 3, "PR_Count": 4, "Tag_Count": 1}])
        (record,) = parse_csv(text)
        assert record.record_count == 8.0

    def test_malformed_rows_are_skipped(self):
        text = build_csv([{"Repo_Name": "ok"}]) + "too,few,fields\n"
        records = parse_csv(text)
        assert [r.repo_name for r in records] == ["ok"]

    def test_rows_with_extra_fields_are_skipped(self):
        good = build_csv([{"Repo_Name": "first"}, {"Repo_Name": "second"}])
        header, first, second = good.strip().splitlines()
        text = "\n".join([header, first, second + ",extra", second]) + "\n"
        report = parse_csv_files([("repos.csv", text)])
        assert [r.repo_name for r in report.records] == ["first", "second"]
        assert report.files[0].skipped_rows == 1

    def test_infinite_cells_are_stored_as_zero(self):
        text = build_csv([{"Collaborator_Count": "1e999", "Repo_Size_mb": "inf"}])
        (record,) = parse_csv(text)
        assert record.collaborator_count == 0.0
        assert record.repo_size_mb == 0.0

    def test_padded_cells_are_trimmed(self):
        text = build_csv([{"Repo_Name": "spaced"}]).replace(",spaced,", ", spaced,")
        (record,) = parse_csv(text)
        assert record.repo_name == "spaced"

    def test_header_only(self):
        with pytest.raises(CSVFormatError, match="header row and one data row"):
            parse_csv(",".join(REQUIRED_COLUMNS))

    def test_missing_columns(self):
        with pytest.raises(CSVFormatError, match="Missing required columns: Created"):
            parse_csv("\n".join([
                ",".join(REQUIRED_COLUMNS[:-1]),
                ",".join(["x"] * (len(REQUIRED_COLUMNS) - 1)),
            ]))

    def test_quoted_cells(self):
        text = build_csv([{"Migration_Issue": '"needs review, later"'}])
        (record,) = parse_csv(text)
        assert record.migration_issue == "needs review, later"

    def test_round_trip_dict(self):
        (record,) = parse_csv(build_csv([{"Org_Name": "octo"}]))
        assert record.to_dict()["Org_Name"] == "octo"
        assert record.full_name == "octo/repo"


class TestParseFiles:
    def test_combines_files(self):
        report = parse_csv_files([
            ("a.csv", build_csv([{"Repo_Name": "a1"}, {"Repo_Name": "a2"}])),
            ("b.CSV", build_csv([{"Repo_Name": "b1"}])),
        ])
        assert len(report.records) == 3
        assert [f.status for f in report.files] == ["completed", "completed"]
        assert report.to_dict()["total_records"] == 3

    def test_non_csv_files_are_ignored(self):
        report = parse_csv_files([
            ("notes.txt", "hello"),
            ("a.csv", build_csv([{}])),
        ])
        assert [f.name for f in report.files] == ["a.csv"]

    def test_partial_failure_is_reported(self):
        report = parse_csv_files([
            ("good.csv", build_csv([{}])),
            ("bad.csv", "Org_Name\nacme\n"),
        ])
        assert len(report.records) == 1
        assert report.has_errors
        assert report.files[1].status == "error"
        assert "Missing required columns" in report.files[1].error

    def test_all_files_failed(self):
        with pytest.raises(CSVFormatError):
            parse_csv_files([("bad.csv", "Org_Name\nacme\n")])

    def test_no_csv_files(self):
        with pytest.raises(CSVFormatError, match="at least one CSV"):
            parse_csv_files([("data.json", "{}")])

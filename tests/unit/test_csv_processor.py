"""Tests for CSV reading and writing."""

from unittest.mock import patch

import pandas as pd
import pytest

from sitefinder.core.exceptions import CSVProcessingError
from sitefinder.core.models import CompanyRecord
from sitefinder.csv_processor import CSVReader, CSVValidationError, CSVWriter


class TestCSVReader:
    """Test CSV reading functionality."""

    def write(self, tmp_path, content, name="companies.csv"):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return str(path)

    def test_read_standard_headers(self, tmp_path):
        """Test reading the standard export headers."""
        path = self.write(tmp_path,
                          "company.name,company.noOfEmployees,company.id\n"
                          "Acme Robotics Inc,51-200,1001\n"
                          "Widget Co,11-50,1002\n")

        records = list(CSVReader(path).read_records())

        assert records == [
            CompanyRecord(id="1001", name="Acme Robotics Inc", employees="51-200"),
            CompanyRecord(id="1002", name="Widget Co", employees="11-50"),
        ]

    def test_header_variations(self, tmp_path):
        """Test alternative header spellings in any order."""
        path = self.write(tmp_path, "id,CompanyName,employees\n7,Acme,10\n")

        record = next(CSVReader(path).read_records())

        assert record.id == "7"
        assert record.name == "Acme"
        assert record.employees == "10"

    def test_positional_fallback(self, tmp_path):
        """Test unrecognised headers fall back to name, employees, id by position."""
        path = self.write(tmp_path, "Firm,Staff,Ref\nAcme,10,A-1\n")

        record = next(CSVReader(path).read_records())

        assert (record.name, record.employees, record.id) == ("Acme", "10", "A-1")

    def test_values_kept_as_strings(self, tmp_path):
        """Test that ids and counts are not converted."""
        path = self.write(tmp_path, "company.name,company.noOfEmployees,company.id\n"
                                    "Acme,0010,00042\nNA Corp,,\n")

        records = list(CSVReader(path).read_records())

        assert records[0].id == "00042"
        assert records[0].employees == "0010"
        assert records[1].name == "NA Corp"
        assert records[1].employees == ""

    def test_missing_id_uses_row_number(self, tmp_path):
        """Test the id fallback."""
        path = self.write(tmp_path, "name,employees\nAcme,10\nBeta,20\n")

        assert [r.id for r in CSVReader(path).read_records()] == ["1", "2"]

    def test_blank_names_skipped(self, tmp_path):
        """Test that rows without a company name are skipped."""
        path = self.write(tmp_path, "name,employees,id\nAcme,10,1\n   ,5,2\n,7,3\nBeta,3,4\n")

        assert [r.name for r in CSVReader(path).read_records()] == ["Acme", "Beta"]

    def test_existing_website_column(self, tmp_path):
        """Test that previously written output can be read back."""
        path = self.write(tmp_path,
                          "company.id,company.name,company.noOfEmployees,company.website\n"
                          "1,Acme,10,https://acme.com\n"
                          "2,Nobody,5,Not Available\n"
                          "3,Pending,5,\n")

        records = list(CSVReader(path).read_records())

        assert [r.status for r in records] == ["found", "not_available", "pending"]
        assert records[0].website == "https://acme.com"

    def test_progress_callback(self, tmp_path):
        """Test progress reporting."""
        path = self.write(tmp_path, "name\nA1\nB2\nC3\n")
        calls = []

        list(CSVReader(path).read_records(progress_callback=lambda c, t: calls.append((c, t))))

        assert calls == [(1, 3), (2, 3), (3, 3)]

    def test_empty_file(self, tmp_path):
        """Test an empty file yields nothing."""
        path = self.write(tmp_path, "")

        assert list(CSVReader(path).read_records()) == []

    def test_header_only(self, tmp_path):
        """Test a file with only a header."""
        path = self.write(tmp_path, "name,employees,id\n")

        assert list(CSVReader(path).read_records()) == []

    def test_missing_file(self, tmp_path):
        """Test a missing input file."""
        with pytest.raises(FileNotFoundError):
            CSVReader(str(tmp_path / "missing.csv"))

    def test_parse_error(self, tmp_path):
        """Test that unparseable files raise a validation error."""
        path = self.write(tmp_path, "name\nAcme\n")

        with patch('sitefinder.csv_processor.reader.pd.read_csv',
                   side_effect=pd.errors.ParserError("bad")):
            with pytest.raises(CSVValidationError):
                list(CSVReader(path).read_records())

        assert issubclass(CSVValidationError, CSVProcessingError)


class TestCSVWriter:
    """Test CSV writing functionality."""

    def make_records(self):
        found = CompanyRecord(id="1", name="Acme", employees="10", website="https://acme.com",
                              status="found", method="domain_variation", confidence=1.0)
        missing = CompanyRecord(id="2", name="Nobody", employees="5", website="Not Available",
                                status="not_available", method="exhausted")
        return [found, missing]

    def test_write_records(self, tmp_path):
        """Test the output header and row order."""
        path = tmp_path / "out" / "results.csv"

        CSVWriter(str(path)).write_records(self.make_records())

        lines = path.read_text().splitlines()
        assert lines == [
            "company.id,company.name,company.noOfEmployees,company.website",
            "1,Acme,10,https://acme.com",
            "2,Nobody,5,Not Available",
        ]

    def test_write_details(self, tmp_path):
        """Test the optional resolution columns."""
        path = tmp_path / "results.csv"

        CSVWriter(str(path)).write_records(self.make_records(), details=True)

        lines = path.read_text().splitlines()
        assert lines[0].endswith(",resolution.method,resolution.confidence")
        assert lines[1] == "1,Acme,10,https://acme.com,domain_variation,1.00"
        assert lines[2] == "2,Nobody,5,Not Available,exhausted,"

    def test_overwrites_existing_file(self, tmp_path):
        """Test that output replaces an earlier file."""
        path = tmp_path / "results.csv"
        path.write_text("old content\n")

        CSVWriter(str(path)).write_records(self.make_records()[:1])

        assert "old content" not in path.read_text()

    def test_empty_records(self, tmp_path):
        """Test writing no records still writes the header."""
        path = tmp_path / "results.csv"

        CSVWriter(str(path)).write_records([])

        assert path.read_text().splitlines() == [
            "company.id,company.name,company.noOfEmployees,company.website"
        ]

    def test_write_failure(self, tmp_path):
        """Test that IO errors surface as CSVProcessingError."""
        writer = CSVWriter(str(tmp_path / "results.csv"))

        with patch('sitefinder.csv_processor.writer.pd.DataFrame.to_csv',
                   side_effect=OSError("disk full")):
            with pytest.raises(CSVProcessingError, match="disk full"):
                writer.write_records(self.make_records())

    def test_round_trip_through_reader(self, tmp_path):
        """Test that written output is accepted as input for a re-run."""
        path = tmp_path / "results.csv"
        CSVWriter(str(path)).write_records(self.make_records())

        records = list(CSVReader(str(path)).read_records())

        assert [(r.id, r.status) for r in records] == [("1", "found"), ("2", "not_available")]

"""
Unit Tests for CsvTable

Header handling, lossy numeric coercion and schema failures.
"""

import pytest

from sequence_forecaster.core.csv_table import CsvTable, Dataset
from sequence_forecaster.core.errors import EmptyInputError, SchemaError


@pytest.mark.unit
class TestCsvTableParse:
    """Parsing well-formed and dirty CSV text."""

    def setup_method(self):
        self.table = CsvTable()

    def test_row_and_column_counts(self, wti_csv):
        dataset = self.table.parse(wti_csv)

        assert isinstance(dataset, Dataset)
        assert dataset.row_count == 40
        assert dataset.columns == ["Date", "FeatureA", "WTI"]
        assert dataset.feature_columns == ["FeatureA"]

    def test_headers_kept_in_order(self):
        text = "Date,Zeta,Alpha,WTI,Mid\n2020-01-01,1,2,3,4"
        dataset = self.table.parse(text)

        assert dataset.columns == ["Date", "Zeta", "Alpha", "WTI", "Mid"]
        assert dataset.feature_columns == ["Zeta", "Alpha", "Mid"]

    def test_values_parsed_as_floats(self):
        dataset = self.table.parse("Date,FeatureA,WTI\n2020-01-01,1.5,70.25\n2020-01-02,2,71")

        assert dataset.column("FeatureA").tolist() == [1.5, 2.0]
        assert dataset.target().tolist() == [70.25, 71.0]
        assert dataset.coerced_cells == 0

    def test_dates_kept_as_strings(self):
        dataset = self.table.parse("Date,FeatureA,WTI\n2020-01-01,1,2\n2020-01-02,3,4")

        assert dataset.dates == ["2020-01-01", "2020-01-02"]

    def test_non_numeric_cells_become_zero(self):
        dataset = self.table.parse("Date,FeatureA,WTI\n2020-01-01,abc,5\n2020-01-02,12abc,6")

        assert dataset.column("FeatureA").tolist() == [0.0, 0.0]
        assert dataset.coerced_cells == 2

    def test_short_rows_padded_with_zero(self):
        dataset = self.table.parse("Date,FeatureA,WTI\n2020-01-01,1\n2020-01-02,3,4")

        assert dataset.target().tolist() == [0.0, 4.0]
        assert dataset.coerced_cells == 1

    def test_extra_cells_ignored(self):
        dataset = self.table.parse("Date,FeatureA,WTI\n2020-01-01,1,2,99,100")

        assert dataset.columns == ["Date", "FeatureA", "WTI"]
        assert dataset.target().tolist() == [2.0]

    def test_blank_lines_skipped(self):
        text = "\nDate,FeatureA,WTI\n2020-01-01,1,2\n\n   \n2020-01-02,3,4\n\n"
        dataset = self.table.parse(text)

        assert dataset.row_count == 2

    def test_whitespace_around_cells_stripped(self):
        dataset = self.table.parse("Date , FeatureA , WTI\n2020-01-01 , 1 , 2 ")

        assert dataset.columns == ["Date", "FeatureA", "WTI"]
        assert dataset.column("FeatureA").tolist() == [1.0]

    def test_custom_target_column(self):
        table = CsvTable(target_column="Brent")
        dataset = table.parse("Date,WTI,Brent\n2020-01-01,70,75")

        assert dataset.feature_columns == ["WTI"]
        assert dataset.target().tolist() == [75.0]


@pytest.mark.unit
class TestCsvTableErrors:
    """Inputs that cannot produce a Dataset."""

    def setup_method(self):
        self.table = CsvTable()

    @pytest.mark.parametrize("text", ["", "   ", "\n\n"])
    def test_empty_input(self, text):
        with pytest.raises(EmptyInputError):
            self.table.parse(text)

    def test_header_without_rows(self):
        with pytest.raises(EmptyInputError):
            self.table.parse("Date,FeatureA,WTI\n\n")

    def test_missing_target_column(self):
        with pytest.raises(SchemaError, match="WTI"):
            self.table.parse("Date,FeatureA,Brent\n2020-01-01,1,2")

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            self.table.load(tmp_path / "missing.csv")

    def test_load_from_file(self, tmp_path, wti_csv):
        path = tmp_path / "wti.csv"
        path.write_text(wti_csv, encoding="utf-8")

        dataset = self.table.load(path)

        assert dataset.row_count == 40

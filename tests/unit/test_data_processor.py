"""
Unit Tests for DataProcessor

Preparation of a loaded Dataset into normalized, windowed partitions.
"""

import numpy as np
import pytest

from sequence_forecaster.core.data_processor import DataProcessor, ProcessedDataset
from sequence_forecaster.core.errors import InsufficientDataError, SchemaError
from sequence_forecaster.core.normalizer import NormalizationRange


@pytest.mark.unit
class TestDataProcessor:

    def setup_method(self):
        self.processor = DataProcessor({'sequence_length': 30, 'train_split': 0.8})

    def test_reference_dataset(self, wti_csv):
        processed = self.processor.prepare(self.processor.parse_csv(wti_csv))

        assert isinstance(processed, ProcessedDataset)
        assert processed.windowed.total_windows == 10
        assert processed.windowed.train_size == 8
        assert processed.windowed.test_size == 2
        assert processed.feature_names == ["FeatureA"]
        assert processed.input_shape == (30, 1)
        assert processed.target_column == "WTI"

    def test_ranges_recorded(self, wti_csv):
        processed = self.processor.prepare(self.processor.parse_csv(wti_csv))

        assert processed.feature_ranges["FeatureA"] == NormalizationRange(0.0, 39.0)
        assert processed.target_range == NormalizationRange(1.0, 79.0)

    def test_windows_hold_normalized_values(self, wti_csv):
        processed = self.processor.prepare(self.processor.parse_csv(wti_csv))
        windowed = processed.windowed

        all_sequences = np.concatenate([windowed.train_sequences, windowed.test_sequences])
        all_targets = np.concatenate([windowed.train_targets, windowed.test_targets])

        assert all_sequences.min() >= 0.0
        assert all_sequences.max() <= 1.0
        # WTI = 2i + 1 over 40 rows, so the first label (row 30) is 30/39
        assert all_targets[0] == pytest.approx(30 / 39)
        assert all_targets[-1] == pytest.approx(1.0)

    def test_no_feature_columns(self):
        dataset = self.processor.parse_csv("Date,WTI\n" + "\n".join(f"2020-01-01,{i}" for i in range(40)))

        with pytest.raises(SchemaError):
            self.processor.prepare(dataset)

    def test_too_few_rows(self, csv_builder):
        dataset = self.processor.parse_csv(csv_builder(rows=30))

        with pytest.raises(InsufficientDataError):
            self.processor.prepare(dataset)

    def test_coerced_cells_reported(self, csv_builder):
        text = csv_builder(rows=40).replace("\n2020-01-05,4.0,", "\n2020-01-05,n/a,")
        processed = self.processor.prepare(self.processor.parse_csv(text))

        assert processed.preprocessing_metadata['coerced_cells'] == 1
        assert any("replaced with 0.0" in w for w in processed.validation_result.warnings)
        assert processed.validation_result.is_valid

    def test_constant_column_warning(self, csv_builder):
        lines = csv_builder(rows=40, features=("FeatureA", "Flat")).splitlines()
        rows = [lines[0]]
        for line in lines[1:]:
            cells = line.split(",")
            cells[2] = "5"
            rows.append(",".join(cells))

        processed = self.processor.prepare(self.processor.parse_csv("\n".join(rows)))

        assert processed.feature_ranges["Flat"].is_degenerate
        assert any("'Flat' is constant" in w for w in processed.validation_result.warnings)
        flat_index = processed.feature_names.index("Flat")
        assert np.all(processed.windowed.train_sequences[:, :, flat_index] == 0.0)

    def test_data_hash_is_stable(self, wti_csv, csv_builder):
        first = self.processor.prepare(self.processor.parse_csv(wti_csv))
        second = self.processor.prepare(self.processor.parse_csv(wti_csv))
        other = self.processor.prepare(self.processor.parse_csv(csv_builder(rows=40, seed=3)))

        assert first.data_hash == second.data_hash
        assert first.data_hash != other.data_hash
        assert len(first.data_hash) == 16

    def test_load_csv(self, tmp_path, wti_csv):
        path = tmp_path / "wti.csv"
        path.write_text(wti_csv)

        dataset = self.processor.load_csv(path)

        assert dataset.row_count == 40

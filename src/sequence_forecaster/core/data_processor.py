# /sequence-forecaster/src/sequence_forecaster/core/data_processor.py

"""
DataProcessor: CSV loading, normalization and windowing

Runs the data-preparation half of the pipeline as one unit:

    raw text -> CsvTable -> Normalizer (per column) -> SequenceWindower

The result is a ProcessedDataset carrying the windowed partitions together
with the normalization ranges and a ValidationResult, so callers can report
lossy-parse warnings and constant columns alongside training results.
"""

import hashlib
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from .csv_table import CsvTable, Dataset
from .errors import SchemaError
from .normalizer import NormalizationRange, Normalizer
from .windowing import SequenceWindower, WindowedDataset


@dataclass
class ValidationResult:
    """
    Data validation results with diagnostics.
    """
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)
    validation_timestamp: datetime = field(default_factory=datetime.now)

    def add_error(self, error: str) -> None:
        self.errors.append(error)
        self.is_valid = False

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'errors': self.errors,
            'warnings': self.warnings,
            'metrics': self.metrics,
            'validation_timestamp': self.validation_timestamp.isoformat()
        }


@dataclass
class ProcessedDataset:
    """
    Windowed data plus everything needed to interpret it.
    """
    windowed: WindowedDataset
    feature_ranges: Dict[str, NormalizationRange]
    target_range: NormalizationRange
    target_column: str
    validation_result: ValidationResult
    data_hash: str
    preprocessing_metadata: Dict[str, Any] = field(default_factory=dict)
    processing_timestamp: datetime = field(default_factory=datetime.now)

    @property
    def feature_names(self) -> List[str]:
        return self.windowed.feature_column_order

    @property
    def input_shape(self):
        return self.windowed.input_shape


class DataProcessor:
    """
    Prepares a loaded Dataset for training.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Args:
            config: DataConfig as a dictionary (date_column, target_column,
                sequence_length, train_split, encoding)
        """
        self.config = config or {}
        self.logger = logging.getLogger(__name__)

        self.date_column = self.config.get('date_column', 'Date')
        self.target_column = self.config.get('target_column', 'WTI')
        self.sequence_length = self.config.get('sequence_length', 30)
        self.train_split = self.config.get('train_split', 0.8)
        self.encoding = self.config.get('encoding', 'utf-8')

        self.csv_table = CsvTable(date_column=self.date_column, target_column=self.target_column)
        self.normalizer = Normalizer()
        self.windower = SequenceWindower(self.sequence_length, self.train_split)

    def parse_csv(self, text: str) -> Dataset:
        return self.csv_table.parse(text)

    def load_csv(self, path: Union[str, Path]) -> Dataset:
        return self.csv_table.load(path, encoding=self.encoding)

    def prepare(self, dataset: Dataset) -> ProcessedDataset:
        """
        Normalize every feature column and the target, then window them.

        Raises:
            SchemaError: No feature columns besides date and target
            InsufficientDataError: Fewer than sequence_length + 1 rows
        """
        start_time = time.time()
        feature_columns = dataset.feature_columns
        if not feature_columns:
            raise SchemaError(
                f"No feature columns besides '{dataset.date_column}' and '{dataset.target_column}'"
            )

        validation = self._validate(dataset)

        normalized_features, feature_ranges = self.normalizer.normalize_columns(
            dataset.frame, feature_columns
        )
        target_range = self.normalizer.compute_range(dataset.target())
        normalized_target = self.normalizer.normalize(dataset.target(), target_range)

        for name, value_range in {**feature_ranges, dataset.target_column: target_range}.items():
            if value_range.is_degenerate:
                validation.add_warning(f"Column '{name}' is constant; normalized to 0.0")

        windowed = self.windower.window(normalized_features, normalized_target)

        processed = ProcessedDataset(
            windowed=windowed,
            feature_ranges=feature_ranges,
            target_range=target_range,
            target_column=dataset.target_column,
            validation_result=validation,
            data_hash=self._compute_data_hash(dataset),
            preprocessing_metadata={
                'rows': dataset.row_count,
                'feature_columns': feature_columns,
                'sequence_length': windowed.sequence_length,
                'train_split': self.train_split,
                'coerced_cells': dataset.coerced_cells,
                'processing_time': time.time() - start_time
            },
        )

        self.logger.info("data_processor.prepared", extra={
            "rows": dataset.row_count,
            "features": len(feature_columns),
            "train_windows": windowed.train_size,
            "test_windows": windowed.test_size,
            "warnings": len(validation.warnings),
            "data_hash": processed.data_hash
        })

        return processed

    def _validate(self, dataset: Dataset) -> ValidationResult:
        result = ValidationResult()
        result.metrics = {
            'rows': dataset.row_count,
            'columns': len(dataset.columns),
            'coerced_cells': dataset.coerced_cells
        }

        if dataset.coerced_cells:
            result.add_warning(
                f"{dataset.coerced_cells} non-numeric or missing cells were replaced with 0.0"
            )

        if dataset.date_column not in dataset.columns:
            result.add_warning(f"Date column '{dataset.date_column}' not found in header")

        return result

    def _compute_data_hash(self, dataset: Dataset) -> str:
        values = np.ascontiguousarray(dataset.frame.to_numpy(dtype=np.float64))
        content = f"{dataset.columns}".encode() + values.tobytes()
        return hashlib.sha256(content).hexdigest()[:16]

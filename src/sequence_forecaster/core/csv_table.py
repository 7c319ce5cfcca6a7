# /sequence-forecaster/src/sequence_forecaster/core/csv_table.py

"""
CsvTable: lossy CSV parsing into a numeric table.

The first line holds the headers, every following non-blank line is a row.
Cells that do not parse as numbers (and cells missing from short rows) become
0.0 instead of failing the load; this keeps a partially dirty export usable
for the demo at the cost of silently wrong values. The number of coerced cells
is reported on the Dataset so callers can surface it.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

from .errors import EmptyInputError, SchemaError


@dataclass
class Dataset:
    """
    Parsed time series: one float column per header, in header order.
    """
    frame: pd.DataFrame
    date_column: str
    target_column: str
    dates: List[str] = field(default_factory=list)
    coerced_cells: int = 0

    def __post_init__(self):
        if self.target_column not in self.frame.columns:
            raise SchemaError(
                f"Target column '{self.target_column}' not found in header: {list(self.frame.columns)}"
            )

    @property
    def columns(self) -> List[str]:
        return list(self.frame.columns)

    @property
    def feature_columns(self) -> List[str]:
        """All columns except the date and target columns, in header order."""
        return [c for c in self.frame.columns if c not in (self.date_column, self.target_column)]

    @property
    def row_count(self) -> int:
        return len(self.frame)

    def column(self, name: str) -> pd.Series:
        return self.frame[name]

    def target(self) -> pd.Series:
        return self.frame[self.target_column]


class CsvTable:
    """
    Parser for comma-delimited text with a header row.
    """

    def __init__(self, date_column: str = "Date", target_column: str = "WTI",
                 delimiter: str = ","):
        self.date_column = date_column
        self.target_column = target_column
        self.delimiter = delimiter
        self.logger = logging.getLogger(__name__)

    def parse(self, text: str) -> Dataset:
        """
        Parse CSV text into a Dataset.

        Raises:
            EmptyInputError: No header line or no data rows
            SchemaError: Target column missing from the header
        """
        lines = [line.strip() for line in (text or "").strip().splitlines()]
        if not lines or not lines[0]:
            raise EmptyInputError("CSV input has no header line")

        headers = [h.strip() for h in lines[0].split(self.delimiter)]
        rows = [line.split(self.delimiter) for line in lines[1:] if line]
        if not rows:
            raise EmptyInputError("CSV input has a header but no data rows")

        width = len(headers)
        cells = [
            [cell.strip() for cell in row[:width]] + [""] * (width - len(row))
            for row in rows
        ]
        raw = pd.DataFrame(cells, columns=headers, dtype=object)

        numeric = raw.apply(pd.to_numeric, errors="coerce")
        # Date strings always fail the numeric parse and are not counted
        coerced = int(numeric.drop(columns=[self.date_column], errors="ignore").isna().sum().sum())
        frame = numeric.fillna(0.0).astype(float)

        dates = raw[self.date_column].tolist() if self.date_column in raw.columns else []

        dataset = Dataset(
            frame=frame,
            date_column=self.date_column,
            target_column=self.target_column,
            dates=dates,
            coerced_cells=coerced,
        )

        self.logger.info("csv_table.parsed", extra={
            "rows": dataset.row_count,
            "columns": len(headers),
            "feature_columns": dataset.feature_columns,
            "coerced_cells": coerced
        })

        return dataset

    def load(self, path: Union[str, Path], encoding: Optional[str] = "utf-8") -> Dataset:
        """Read a CSV file from disk and parse it."""
        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"CSV file not found: {file_path}")

        self.logger.debug("csv_table.loading", extra={"path": str(file_path)})
        return self.parse(file_path.read_text(encoding=encoding))

# /sequence-forecaster/src/sequence_forecaster/core/normalizer.py

"""
Per-column min-max normalization.

Ranges are computed from the full loaded column at the start of every run and
kept in memory only. A constant column (max == min) normalizes to all zeros.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .errors import EmptyInputError

ArrayLike = Union[Sequence[float], np.ndarray, pd.Series]

DEGENERATE_VALUE = 0.0


@dataclass(frozen=True)
class NormalizationRange:
    """Observed min/max of a column."""
    min: float
    max: float

    def __post_init__(self):
        if self.max < self.min:
            raise ValueError(f"Invalid range: max {self.max} < min {self.min}")

    @property
    def span(self) -> float:
        return self.max - self.min

    @property
    def is_degenerate(self) -> bool:
        return self.max == self.min

    def to_dict(self) -> Dict[str, float]:
        return {'min': self.min, 'max': self.max}


class Normalizer:
    """
    Min-max scaler to [0, 1] with an explicit constant-column policy.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def compute_range(self, column: ArrayLike) -> NormalizationRange:
        values = np.asarray(column, dtype=np.float64)
        if values.size == 0:
            raise EmptyInputError("Cannot compute a normalization range of an empty column")
        return NormalizationRange(min=float(np.min(values)), max=float(np.max(values)))

    def normalize(self, column: ArrayLike, value_range: NormalizationRange) -> np.ndarray:
        """Scale values to [0, 1]; a degenerate range yields DEGENERATE_VALUE everywhere."""
        values = np.asarray(column, dtype=np.float64)
        if value_range.is_degenerate:
            return np.full(values.shape, DEGENERATE_VALUE, dtype=np.float64)
        return (values - value_range.min) / value_range.span

    def denormalize(self, values: ArrayLike, value_range: NormalizationRange) -> np.ndarray:
        """Map normalized values back into the column's original units."""
        scaled = np.asarray(values, dtype=np.float64)
        if value_range.is_degenerate:
            return np.full(scaled.shape, value_range.min, dtype=np.float64)
        return scaled * value_range.span + value_range.min

    def normalize_columns(self, frame: pd.DataFrame,
                          columns: Iterable[str]) -> Tuple[Dict[str, np.ndarray], Dict[str, NormalizationRange]]:
        """
        Normalize each named column independently.

        Returns:
            Tuple of (normalized columns, ranges), both keyed by column name
            in the order given.
        """
        normalized: Dict[str, np.ndarray] = {}
        ranges: Dict[str, NormalizationRange] = {}
        degenerate: List[str] = []

        for name in columns:
            value_range = self.compute_range(frame[name])
            ranges[name] = value_range
            normalized[name] = self.normalize(frame[name], value_range)
            if value_range.is_degenerate:
                degenerate.append(name)

        if degenerate:
            self.logger.warning("normalizer.constant_columns", extra={
                "columns": degenerate,
                "fill_value": DEGENERATE_VALUE
            })

        return normalized, ranges

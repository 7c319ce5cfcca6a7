# /sequence-forecaster/src/sequence_forecaster/core/metrics_engine.py

"""
Prediction-quality metrics over the held-out partition.
"""

import logging
import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, Sequence, Union

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error

from .errors import EmptyInputError, LengthMismatchError

ArrayLike = Union[Sequence[float], np.ndarray]


@dataclass(frozen=True)
class MetricsSummary:
    mse: float
    rmse: float
    mae: float
    epochs_trained: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MetricsEngine:
    """
    MSE / RMSE / MAE over aligned prediction and actual series.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def _aligned(self, predictions: ArrayLike, actuals: ArrayLike):
        pred = np.asarray(predictions, dtype=np.float64).ravel()
        actual = np.asarray(actuals, dtype=np.float64).ravel()
        if len(pred) != len(actual):
            raise LengthMismatchError(
                f"Predictions and actuals differ in length: {len(pred)} vs {len(actual)}"
            )
        if len(pred) == 0:
            raise EmptyInputError("Cannot compute metrics over empty series")
        return pred, actual

    def compute_mse(self, predictions: ArrayLike, actuals: ArrayLike) -> float:
        """Mean of squared elementwise differences."""
        pred, actual = self._aligned(predictions, actuals)
        return float(mean_squared_error(actual, pred))

    def compute_rmse(self, mse: float) -> float:
        if mse < 0:
            raise ValueError(f"MSE must be non-negative: {mse}")
        return math.sqrt(mse)

    def compute_mae(self, predictions: ArrayLike, actuals: ArrayLike) -> float:
        pred, actual = self._aligned(predictions, actuals)
        return float(mean_absolute_error(actual, pred))

    def summarize(self, predictions: ArrayLike, actuals: ArrayLike,
                  epochs_trained: int) -> MetricsSummary:
        mse = self.compute_mse(predictions, actuals)
        summary = MetricsSummary(
            mse=mse,
            rmse=self.compute_rmse(mse),
            mae=self.compute_mae(predictions, actuals),
            epochs_trained=epochs_trained,
        )

        self.logger.info("metrics_engine.summary", extra=summary.to_dict())
        return summary

"""
Unit Tests for MetricsEngine
"""

import math

import numpy as np
import pytest

from sequence_forecaster.core.errors import EmptyInputError, LengthMismatchError
from sequence_forecaster.core.metrics_engine import MetricsEngine, MetricsSummary


@pytest.mark.unit
class TestMetricsEngine:

    def setup_method(self):
        self.engine = MetricsEngine()

    def test_identical_series_have_zero_error(self):
        values = [0.1, 0.5, 0.9]

        assert self.engine.compute_mse(values, values) == 0.0
        assert self.engine.compute_mae(values, values) == 0.0

    def test_unit_difference(self):
        assert self.engine.compute_mse([0.0, 0.0], [1.0, 1.0]) == pytest.approx(1.0)

    def test_mse_is_mean_of_squared_differences(self):
        predictions = np.array([1.0, 2.0, 3.0])
        actuals = np.array([1.5, 1.0, 5.0])

        expected = np.mean((predictions - actuals) ** 2)

        assert self.engine.compute_mse(predictions, actuals) == pytest.approx(expected)

    def test_rmse(self):
        assert self.engine.compute_rmse(4.0) == 2.0
        assert self.engine.compute_rmse(0.0) == 0.0

    def test_rmse_rejects_negative_mse(self):
        with pytest.raises(ValueError):
            self.engine.compute_rmse(-0.5)

    def test_length_mismatch(self):
        with pytest.raises(LengthMismatchError):
            self.engine.compute_mse([1.0, 2.0], [1.0])

    def test_empty_series(self):
        with pytest.raises(EmptyInputError):
            self.engine.compute_mse([], [])

    def test_summarize(self):
        summary = self.engine.summarize([0.0, 0.0], [2.0, 2.0], epochs_trained=3)

        assert isinstance(summary, MetricsSummary)
        assert summary.mse == pytest.approx(4.0)
        assert summary.rmse == pytest.approx(2.0)
        assert summary.mae == pytest.approx(2.0)
        assert summary.epochs_trained == 3
        assert summary.to_dict()['rmse'] == pytest.approx(math.sqrt(summary.mse))

"""
Test Configuration and Fixtures for Sequence Forecaster

Shared fixtures for the unit and integration suites:
- CSV text builders for small synthetic time series
- An in-memory SequenceModel and factory so the data pipeline and the run
  lifecycle can be tested without PyTorch
"""

import logging
from typing import Callable, List, Optional, Tuple

import numpy as np
import pytest

from sequence_forecaster.models.base import EpochLogs, SequenceModel
from sequence_forecaster.utils.logging import PACKAGE_LOGGER


@pytest.fixture(autouse=True)
def reset_package_logging():
    """Drop handlers installed by setup_training_logging during a test."""
    yield
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)


def build_csv(rows: int = 40, features: Tuple[str, ...] = ("FeatureA",),
              target: str = "WTI", seed: Optional[int] = None) -> str:
    """Header 'Date,<features>,<target>' followed by `rows` numeric rows."""
    rng = np.random.default_rng(seed)
    header = ",".join(["Date", *features, target])
    lines = [header]
    for i in range(rows):
        day = f"2020-01-{(i % 28) + 1:02d}"
        if seed is None:
            values = [float(i + k) for k in range(len(features))]
            target_value = float(i) * 2.0 + 1.0
        else:
            values = list(rng.normal(size=len(features)))
            target_value = float(rng.normal())
        lines.append(",".join([day, *(f"{v}" for v in values), f"{target_value}"]))
    return "\n".join(lines)


@pytest.fixture
def csv_builder() -> Callable[..., str]:
    return build_csv


@pytest.fixture
def wti_csv() -> str:
    """Date,FeatureA,WTI with 40 rows."""
    return build_csv(rows=40)


class FakeSequenceModel(SequenceModel):
    """
    Deterministic SequenceModel: loss halves every epoch and predictions are
    the last observed value of the first feature.
    """

    def __init__(self, input_shape, fail_on_epoch: Optional[int] = None):
        self.input_shape = tuple(input_shape)
        self.fail_on_epoch = fail_on_epoch
        self.fit_calls: List[dict] = []
        self.disposed = False
        self.epochs_seen = 0

    def fit(self, x, y, validation_data=None, epochs=1, batch_size=32, on_epoch_end=None):
        if self.disposed:
            raise RuntimeError("fit called on a disposed model")

        history = []
        for _ in range(epochs):
            if self.fail_on_epoch is not None and self.epochs_seen == self.fail_on_epoch:
                raise RuntimeError(f"fit failed at epoch {self.epochs_seen}")

            self.fit_calls.append({
                'samples': len(x),
                'validation_samples': len(validation_data[1]) if validation_data else 0,
                'epochs': epochs,
                'batch_size': batch_size
            })
            loss = 1.0 / (2 ** self.epochs_seen)
            logs = EpochLogs(epoch=self.epochs_seen, loss=loss, val_loss=loss * 1.5)
            self.epochs_seen += 1
            history.append(logs)
            if on_epoch_end is not None:
                on_epoch_end(logs)
        return history

    def predict(self, x):
        if self.disposed:
            raise RuntimeError("predict called on a disposed model")
        return np.asarray(x, dtype=np.float64)[:, -1, 0]

    def dispose(self):
        self.disposed = True


class FakeModelFactory:
    """Records every model it builds."""

    def __init__(self, fail_on_epoch: Optional[int] = None):
        self.fail_on_epoch = fail_on_epoch
        self.models: List[FakeSequenceModel] = []
        self.calls: List[tuple] = []

    def __call__(self, input_shape, model_config=None):
        self.calls.append((tuple(input_shape), model_config))
        model = FakeSequenceModel(input_shape, fail_on_epoch=self.fail_on_epoch)
        self.models.append(model)
        return model

    @property
    def last_model(self) -> FakeSequenceModel:
        return self.models[-1]


@pytest.fixture
def fake_factory() -> FakeModelFactory:
    return FakeModelFactory()


@pytest.fixture
def failing_factory() -> FakeModelFactory:
    """Factory whose models raise during the second epoch."""
    return FakeModelFactory(fail_on_epoch=1)

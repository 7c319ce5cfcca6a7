# /sequence-forecaster/src/sequence_forecaster/core/__init__.py

"""
Core Forecasting Components

- CsvTable: lossy CSV parsing into a numeric Dataset
- Normalizer: per-column min-max scaling
- SequenceWindower: sliding windows with a time-ordered train/test split
- DataProcessor: the three steps above as one preparation unit
- TrainingOrchestrator: run lifecycle around an injected sequence model
- MetricsEngine: MSE / RMSE / MAE over the test partition
- TrainingSession: caller-owned load -> train -> evaluate workflow
"""

from .errors import (
    ForecastingError,
    EmptyInputError,
    SchemaError,
    InsufficientDataError,
    LengthMismatchError,
    ModelNotTrainedError,
    AlreadyTrainingError,
    TrainingCancelledError,
    InvalidStateTransitionError
)
from .csv_table import CsvTable, Dataset
from .normalizer import NormalizationRange, Normalizer
from .windowing import SequenceWindower, WindowedDataset
from .data_processor import DataProcessor, ProcessedDataset, ValidationResult
from .metrics_engine import MetricsEngine, MetricsSummary
from .orchestrator import (
    CancellationToken,
    EpochEvent,
    ProgressObserver,
    RunState,
    TrainingOrchestrator,
    TrainingRun
)
from .session import SessionResult, TrainingSession

__all__ = [
    "ForecastingError",
    "EmptyInputError",
    "SchemaError",
    "InsufficientDataError",
    "LengthMismatchError",
    "ModelNotTrainedError",
    "AlreadyTrainingError",
    "TrainingCancelledError",
    "InvalidStateTransitionError",
    "CsvTable",
    "Dataset",
    "NormalizationRange",
    "Normalizer",
    "SequenceWindower",
    "WindowedDataset",
    "DataProcessor",
    "ProcessedDataset",
    "ValidationResult",
    "MetricsEngine",
    "MetricsSummary",
    "CancellationToken",
    "EpochEvent",
    "ProgressObserver",
    "RunState",
    "TrainingOrchestrator",
    "TrainingRun",
    "SessionResult",
    "TrainingSession"
]

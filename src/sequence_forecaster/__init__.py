# /sequence-forecaster/src/sequence_forecaster/__init__.py

"""
Sequence Forecaster

Trains a stacked LSTM regressor to predict the next value of a target column
from fixed-length windows of the other columns in a CSV time series, then
reports per-epoch losses and test-partition metrics.

Core Components:
- TrainingSession: load a CSV, train, evaluate and chart in one object
- DataProcessor: parsing, normalization and windowing
- TrainingOrchestrator: cooperative, cancellable training runs
- MetricsEngine: MSE / RMSE / MAE on held-out windows

Examples:
    session = create_training_session(environment="development")
    session.load_file("data/wti.csv")
    result = session.train_sync()
    print(result.summary.rmse)
"""

import logging
from typing import Optional

from .core import (
    AlreadyTrainingError,
    CancellationToken,
    CsvTable,
    DataProcessor,
    Dataset,
    EmptyInputError,
    EpochEvent,
    ForecastingError,
    InsufficientDataError,
    LengthMismatchError,
    MetricsEngine,
    MetricsSummary,
    ModelNotTrainedError,
    Normalizer,
    ProcessedDataset,
    ProgressObserver,
    RunState,
    SchemaError,
    SequenceWindower,
    SessionResult,
    TrainingOrchestrator,
    TrainingSession,
    WindowedDataset
)
from .config import (
    ConfigurationError,
    TrainingConfig,
    DataConfig,
    ModelConfig,
    RunConfig,
    MonitoringConfig,
    load_training_config
)
from .models import SequenceModel, TorchLSTMRegressor, build_lstm_model
from .reporting import MatplotlibChartSink, RecordingChartSink, StatusLevel, StatusReporter
from .utils.logging import setup_training_logging

__version__ = "1.0.0"

__all__ = [
    # Core components
    "TrainingSession",
    "SessionResult",
    "CsvTable",
    "Dataset",
    "Normalizer",
    "SequenceWindower",
    "WindowedDataset",
    "DataProcessor",
    "ProcessedDataset",
    "TrainingOrchestrator",
    "RunState",
    "EpochEvent",
    "ProgressObserver",
    "CancellationToken",
    "MetricsEngine",
    "MetricsSummary",

    # Errors
    "ForecastingError",
    "EmptyInputError",
    "SchemaError",
    "InsufficientDataError",
    "LengthMismatchError",
    "ModelNotTrainedError",
    "AlreadyTrainingError",
    "ConfigurationError",

    # Configuration
    "TrainingConfig",
    "DataConfig",
    "ModelConfig",
    "RunConfig",
    "MonitoringConfig",
    "load_training_config",

    # Models and reporting
    "SequenceModel",
    "TorchLSTMRegressor",
    "build_lstm_model",
    "MatplotlibChartSink",
    "RecordingChartSink",
    "StatusLevel",
    "StatusReporter",

    # Factories
    "create_training_session",
    "setup_package_logging"
]


def create_training_session(config_path: Optional[str] = None,
                            environment: str = "development",
                            configure_logging: bool = True,
                            **session_kwargs) -> TrainingSession:
    """
    Factory function to create a fully configured training session.

    Args:
        config_path: Path to custom configuration file
        environment: Environment name (development, testing, production)
        configure_logging: Install handlers from the monitoring config
        **session_kwargs: Passed to TrainingSession (model_factory,
            chart_sink, status, metrics)

    Examples:
        # Development session with defaults
        session = create_training_session()

        # Production session with custom config
        session = create_training_session("config/custom.yaml", "production")
    """
    config = load_training_config(config_path, environment)

    if configure_logging:
        setup_training_logging(config.monitoring)

    return TrainingSession(config, **session_kwargs)


def setup_package_logging(level: str = "INFO") -> None:
    """Setup logging for the forecasting package."""
    setup_training_logging(log_level=level)

    logger = logging.getLogger(__name__)
    logger.info("sequence_forecaster.initialized", extra={"version": __version__})

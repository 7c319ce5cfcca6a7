# /sequence-forecaster/src/sequence_forecaster/utils/__init__.py

"""
Training Utilities

Structured logging and telemetry metrics for the forecasting pipeline.
"""

from .logging import (
    TrainingLogger,
    build_handlers,
    get_training_logger,
    setup_training_logging,
    stage_logging
)
from .metrics import (
    MetricsCollector,
    TrainingMetrics,
    create_metrics_collector
)

__all__ = [
    "TrainingLogger",
    "build_handlers",
    "get_training_logger",
    "setup_training_logging",
    "stage_logging",
    "MetricsCollector",
    "TrainingMetrics",
    "create_metrics_collector"
]

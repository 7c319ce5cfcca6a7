# /sequence-forecaster/src/sequence_forecaster/config/__init__.py

"""
Training Configuration Management

Frozen dataclass configuration with YAML loading, environment overrides and
validation for the forecasting pipeline.
"""

from .training_config import (
    TrainingConfig,
    DataConfig,
    ModelConfig,
    RunConfig,
    MonitoringConfig,
    ConfigurationError,
    load_training_config
)

__all__ = [
    "TrainingConfig",
    "DataConfig",
    "ModelConfig",
    "RunConfig",
    "MonitoringConfig",
    "ConfigurationError",
    "load_training_config"
]

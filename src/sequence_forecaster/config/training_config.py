# /sequence-forecaster/src/sequence_forecaster/config/training_config.py

"""
Forecaster configuration.

Every section is a frozen dataclass with a `validate()` method returning a
list of readable problems. `load_training_config` layers, later wins:

    dataclass defaults -> YAML file -> per-environment overrides -> SEQUENCE_FORECASTER_* variables

The selected environment profile (testing, production) is applied on top of
the YAML file; environment variables take precedence over both.
"""

import copy
import os
import yaml
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field, asdict


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("json", "text")
METRICS_BACKENDS = ("file", "memory")
DEVICES = ("cpu", "cuda", "mps")

DEFAULT_CONFIG_LOCATIONS = ("config/training.yaml", "training_config.yaml")


@dataclass(frozen=True)
class DataConfig:
    """
    CSV schema and windowing parameters.
    """
    date_column: str = "Date"
    target_column: str = "WTI"
    encoding: str = "utf-8"

    sequence_length: int = 30
    train_split: float = 0.8

    def validate(self) -> List[str]:
        problems = []
        if not self.target_column:
            problems.append("Target column cannot be empty")
        if self.target_column == self.date_column:
            problems.append(f"Target and date column must differ: {self.target_column}")
        if self.sequence_length < 1:
            problems.append(f"Sequence length must be positive: {self.sequence_length}")
        if not 0 < self.train_split < 1:
            problems.append(f"Train split must be between 0 and 1: {self.train_split}")
        return problems


@dataclass(frozen=True)
class ModelConfig:
    """
    Layer sizes and optimizer settings of the stacked recurrent regressor.
    `device` accepts an index suffix such as "cuda:1".
    """
    lstm_units: int = 50
    dense_units: int = 25
    learning_rate: float = 0.001
    device: str = "cpu"
    seed: Optional[int] = None

    def validate(self) -> List[str]:
        problems = []
        if self.lstm_units <= 0:
            problems.append(f"LSTM units must be positive: {self.lstm_units}")
        if self.dense_units <= 0:
            problems.append(f"Dense units must be positive: {self.dense_units}")
        if not 0 < self.learning_rate < 1:
            problems.append(f"Learning rate must be between 0 and 1: {self.learning_rate}")
        if self.device.lower().split(":")[0] not in DEVICES:
            problems.append(f"Unsupported device '{self.device}', expected one of {DEVICES}")
        return problems


@dataclass(frozen=True)
class RunConfig:
    epochs: int = 100
    batch_size: int = 32

    def validate(self) -> List[str]:
        problems = []
        if self.epochs <= 0:
            problems.append(f"Epochs must be positive: {self.epochs}")
        if self.batch_size <= 0:
            problems.append(f"Batch size must be positive: {self.batch_size}")
        return problems


@dataclass(frozen=True)
class MonitoringConfig:
    """
    Logging handlers, telemetry metrics and chart output.
    """
    log_level: str = "INFO"
    log_dir: str = "logs/training"
    log_file_prefix: str = "forecaster"
    log_format: str = "text"
    log_rotation_size_mb: int = 50
    log_retention_count: int = 5
    enable_console: bool = True
    enable_file: bool = False

    enable_metrics: bool = False
    metrics_backend: str = "memory"
    metrics_file: str = "logs/training/metrics.jsonl"

    # None disables PNG output
    chart_dir: Optional[str] = None
    chart_max_points: int = 100

    def validate(self) -> List[str]:
        problems = []
        if self.log_level.upper() not in LOG_LEVELS:
            problems.append(f"Unknown log level '{self.log_level}', expected one of {LOG_LEVELS}")
        if self.log_format.lower() not in LOG_FORMATS:
            problems.append(f"Unknown log format '{self.log_format}', expected one of {LOG_FORMATS}")
        if self.log_rotation_size_mb <= 0:
            problems.append(f"Log file size limit must be positive: {self.log_rotation_size_mb}")
        if self.metrics_backend.lower() not in METRICS_BACKENDS:
            problems.append(
                f"Unknown metrics backend '{self.metrics_backend}', expected one of {METRICS_BACKENDS}"
            )
        if self.chart_max_points <= 0:
            problems.append(f"Chart max points must be positive: {self.chart_max_points}")
        return problems


@dataclass(frozen=True)
class TrainingConfig:
    """
    Top-level configuration: one instance per training session.
    """
    data: DataConfig = field(default_factory=DataConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    run: RunConfig = field(default_factory=RunConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    pipeline_name: str = "sequence_forecaster"
    environment: str = "development"
    version: str = "1.0.0"

    def validate(self) -> List[str]:
        """Problems from every section plus cross-section checks."""
        problems = [
            *self.data.validate(),
            *self.model.validate(),
            *self.run.validate(),
            *self.monitoring.validate(),
        ]
        if not self.pipeline_name:
            problems.append("pipeline_name must be set")
        if self.is_production and self.monitoring.log_level.upper() == "DEBUG":
            problems.append("DEBUG log level is not allowed in the production environment")
        return problems

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Per-environment overrides, merged over the YAML file
ENVIRONMENT_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "development": {
        "monitoring": {"log_level": "DEBUG"},
    },
    "testing": {
        "run": {"epochs": 2, "batch_size": 8},
        "monitoring": {
            "log_level": "DEBUG",
            "enable_file": False,
            "enable_metrics": True,
            "metrics_backend": "memory",
        },
    },
    "production": {
        "monitoring": {
            "log_level": "INFO",
            "log_format": "json",
            "enable_file": True,
            "enable_metrics": True,
            "metrics_backend": "file",
        },
    },
}

# variable -> (section, field, parser)
ENV_VARIABLES: Dict[str, Tuple[str, str, type]] = {
    "SEQUENCE_FORECASTER_LOG_LEVEL": ("monitoring", "log_level", str),
    "SEQUENCE_FORECASTER_TARGET_COLUMN": ("data", "target_column", str),
    "SEQUENCE_FORECASTER_SEQUENCE_LENGTH": ("data", "sequence_length", int),
    "SEQUENCE_FORECASTER_EPOCHS": ("run", "epochs", int),
    "SEQUENCE_FORECASTER_BATCH_SIZE": ("run", "batch_size", int),
    "SEQUENCE_FORECASTER_DEVICE": ("model", "device", str),
    "SEQUENCE_FORECASTER_CHART_DIR": ("monitoring", "chart_dir", str),
}


def load_training_config(config_path: Optional[str] = None,
                         environment: str = "development") -> TrainingConfig:
    """
    Resolve a TrainingConfig from file, environment defaults and variables.

    Without `config_path` the first existing file among
    DEFAULT_CONFIG_LOCATIONS is used; if none exists only defaults apply.

    Raises:
        ConfigurationError: unreadable file, unknown keys, bad variable
            values or failed validation
    """
    logger = logging.getLogger(__name__)

    layered = _merge(_read_yaml(config_path), ENVIRONMENT_DEFAULTS.get(environment.lower(), {}))
    _overlay_env_variables(layered)

    try:
        config = _build(layered, environment)
    except TypeError as e:
        logger.error("training_config.load_failed", extra={
            "environment": environment,
            "config_path": config_path,
            "error": str(e)
        })
        raise ConfigurationError(f"Unrecognized configuration: {e}") from e

    problems = config.validate()
    if problems:
        logger.error("training_config.validation_failed", extra={
            "error_count": len(problems),
            "errors": problems
        })
        raise ConfigurationError(f"Configuration validation failed: {problems}")

    logger.info("training_config.loaded", extra={
        "environment": environment,
        "config_path": config_path,
        "target_column": config.data.target_column,
        "sequence_length": config.data.sequence_length
    })
    return config


def _read_yaml(config_path: Optional[str]) -> Dict[str, Any]:
    if config_path is None:
        found = [p for p in DEFAULT_CONFIG_LOCATIONS if Path(p).exists()]
        if not found:
            return {}
        config_path = found[0]

    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        content = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse {path}: {e}") from e

    content = content or {}
    if not isinstance(content, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {path}")
    return content


def _merge(lower: Dict[str, Any], upper: Dict[str, Any]) -> Dict[str, Any]:
    """Recursive dict merge into a new dict; `upper` wins on conflicts."""
    merged = copy.deepcopy(lower)
    for key, value in upper.items():
        below = merged.get(key)
        merged[key] = _merge(below, value) if isinstance(below, dict) and isinstance(value, dict) else copy.deepcopy(value)
    return merged


def _overlay_env_variables(layered: Dict[str, Any]) -> None:
    for name, (section, key, parse) in ENV_VARIABLES.items():
        raw = os.environ.get(name)
        if raw is None:
            continue
        try:
            layered.setdefault(section, {})[key] = parse(raw)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from e


def _build(layered: Dict[str, Any], environment: str) -> TrainingConfig:
    return TrainingConfig(
        data=DataConfig(**layered.get("data", {})),
        model=ModelConfig(**layered.get("model", {})),
        run=RunConfig(**layered.get("run", {})),
        monitoring=MonitoringConfig(**layered.get("monitoring", {})),
        environment=environment,
        **layered.get("pipeline", {})
    )


class ConfigurationError(Exception):
    """Raised when configuration cannot be loaded or is invalid."""

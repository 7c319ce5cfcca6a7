# /sequence-forecaster/src/sequence_forecaster/utils/logging.py

"""
Training Logging Infrastructure

Components log dotted event names ("run.epoch_completed") through the
standard logging module and put their payload in `extra`. Handlers live only
on the package logger and are installed from a MonitoringConfig:

- console: TextFormatter (key=value suffix) or StructuredFormatter
- file: rotating JSON lines via StructuredFormatter

Run identifiers (run_id, epoch, stage) are promoted to top-level JSON keys so
a single run can be filtered out of a shared log file.
"""

import dataclasses
import json
import logging
import logging.handlers
import sys
import threading
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import psutil

from ..config.training_config import MonitoringConfig

PACKAGE_LOGGER = "sequence_forecaster"

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

_RUN_FIELDS = ("run_id", "epoch", "stage")


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith('_')
    }


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record.
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        fields = _extra_fields(record)
        entry = {
            'ts': datetime.fromtimestamp(record.created).isoformat(timespec='milliseconds'),
            'level': record.levelname,
            'logger': record.name,
            'event': record.getMessage(),
            'location': f"{record.module}:{record.funcName}:{record.lineno}",
            'pid': record.process
        }

        for key in _RUN_FIELDS:
            if key in fields:
                entry[key] = _jsonable(fields.pop(key))

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        if self.include_extra and fields:
            entry['extra'] = {key: _jsonable(value) for key, value in fields.items()}

        return json.dumps(entry)


class TextFormatter(logging.Formatter):
    """
    Console lines: time, level, logger, event name, then `| key=value ...`.
    """

    def __init__(self, include_extra: bool = True):
        super().__init__('%(asctime)s %(levelname)-7s %(name)s: %(message)s', datefmt='%H:%M:%S')
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if not self.include_extra:
            return line

        pairs = " ".join(f"{key}={value}" for key, value in _extra_fields(record).items())
        return f"{line} | {pairs}" if pairs else line


class MemoryUsageFilter(logging.Filter):
    """
    Stamps records with the resident memory of this process, in MB.
    """

    def __init__(self):
        super().__init__()
        self._process = psutil.Process()

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, 'rss_mb', None) is None:
            try:
                record.rss_mb = round(self._process.memory_info().rss / 2 ** 20, 1)
            except psutil.Error:
                record.rss_mb = None
        return True


def build_handlers(monitoring: MonitoringConfig) -> List[logging.Handler]:
    """Console and/or rotating file handlers described by a MonitoringConfig."""
    handlers: List[logging.Handler] = []

    if monitoring.enable_console:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(
            StructuredFormatter() if monitoring.log_format.lower() == 'json' else TextFormatter()
        )
        handlers.append(console)

    if monitoring.enable_file:
        log_dir = Path(monitoring.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / f"{monitoring.log_file_prefix}.log",
            maxBytes=monitoring.log_rotation_size_mb * 2 ** 20,
            backupCount=monitoring.log_retention_count
        )
        file_handler.setFormatter(StructuredFormatter())
        handlers.append(file_handler)

    memory_filter = MemoryUsageFilter()
    for handler in handlers:
        handler.addFilter(memory_filter)

    return handlers


def setup_training_logging(monitoring: Optional[MonitoringConfig] = None,
                           **overrides) -> MonitoringConfig:
    """
    Install handlers on the package logger; component loggers propagate to it.

    Calling again replaces the previously installed handlers.

    Args:
        monitoring: Monitoring configuration, defaults to MonitoringConfig()
        **overrides: MonitoringConfig fields to replace (e.g. log_level="DEBUG")

    Returns:
        The effective MonitoringConfig
    """
    monitoring = dataclasses.replace(monitoring or MonitoringConfig(), **overrides)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    package_logger.setLevel(monitoring.log_level.upper())
    for handler in build_handlers(monitoring):
        package_logger.addHandler(handler)

    package_logger.info("training_logging.initialized", extra={
        'log_level': monitoring.log_level.upper(),
        'log_format': monitoring.log_format,
        'handlers': len(package_logger.handlers)
    })

    return monitoring


class TrainingLogger:
    """
    Component logger that merges a bound context into every record.
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(name)
        self._context: Dict[str, Any] = {}
        self._lock = threading.RLock()

    def bind(self, **context) -> None:
        """Attach context to all following records."""
        with self._lock:
            self._context.update(context)

    def unbind(self, *keys: str) -> None:
        with self._lock:
            for key in keys or list(self._context):
                self._context.pop(key, None)

    @contextmanager
    def context(self, **context) -> Iterator["TrainingLogger"]:
        """Context bound only inside the with-block."""
        with self._lock:
            saved = dict(self._context)
            self._context.update(context)
        try:
            yield self
        finally:
            with self._lock:
                self._context = saved

    def log(self, level: int, event: str, extra: Optional[Dict[str, Any]] = None,
            exc_info: bool = False) -> None:
        with self._lock:
            payload = {**self._context, **(extra or {})}
        self.logger.log(level, event, extra=payload or None, exc_info=exc_info)

    def debug(self, event: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self.log(logging.DEBUG, event, extra)

    def info(self, event: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self.log(logging.INFO, event, extra)

    def warning(self, event: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self.log(logging.WARNING, event, extra)

    def error(self, event: str, extra: Optional[Dict[str, Any]] = None,
              exc_info: bool = False) -> None:
        self.log(logging.ERROR, event, extra, exc_info=exc_info)


def get_training_logger(name: str) -> TrainingLogger:
    """TrainingLogger under the package namespace."""
    if name != PACKAGE_LOGGER and not name.startswith(f"{PACKAGE_LOGGER}."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return TrainingLogger(name)


@contextmanager
def stage_logging(logger: TrainingLogger, stage_name: str, **context) -> Iterator[TrainingLogger]:
    """
    Bind `stage` for the duration of a pipeline stage and log its outcome.
    Exceptions are logged as stage.failed and re-raised.
    """
    with logger.context(stage=stage_name, **context):
        logger.info("stage.started")
        started = time.perf_counter()
        try:
            yield logger
        except Exception as e:
            logger.error("stage.failed", extra={
                'error_type': type(e).__name__,
                'error': str(e),
                'duration_seconds': round(time.perf_counter() - started, 4)
            })
            raise
        logger.info("stage.completed", extra={
            'duration_seconds': round(time.perf_counter() - started, 4)
        })

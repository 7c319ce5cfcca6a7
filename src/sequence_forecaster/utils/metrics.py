# /sequence-forecaster/src/sequence_forecaster/utils/metrics.py

"""
Training telemetry.

Operational numbers about a run (losses per epoch, durations, error counts),
kept apart from the prediction-quality metrics computed by
core.metrics_engine. Metrics are buffered by a MetricsCollector and handed
to a backend in batches; the collector also keeps a bounded window of recent
values per name so callers can ask for a quick summary.
"""

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Union

import numpy as np

Number = Union[int, float]


@dataclass
class Metric:
    name: str
    value: Number
    tags: Dict[str, str] = field(default_factory=dict)
    metric_type: str = "gauge"  # gauge | counter | timer
    unit: Optional[str] = None
    recorded_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'value': self.value,
            'type': self.metric_type,
            'unit': self.unit,
            'tags': dict(self.tags),
            'timestamp': self.recorded_at.isoformat()
        }


@dataclass
class MetricSummary:
    """Descriptive statistics over the retained values of one metric."""
    name: str
    count: int
    min: float
    max: float
    mean: float
    std: float
    p50: float
    p95: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MetricsBackend(ABC):
    """Destination for flushed metric batches."""

    @abstractmethod
    def emit_batch(self, metrics: List[Metric]) -> None:
        ...

    def close(self) -> None:
        """Release backend resources. Default: nothing to release."""


class FileBackend(MetricsBackend):
    """
    Appends each metric as one JSON object per line.
    """

    def __init__(self, file_path: Union[str, Path]):
        self.path = Path(file_path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._write_lock = threading.Lock()

    def emit_batch(self, metrics: List[Metric]) -> None:
        lines = "".join(json.dumps(metric.to_dict()) + "\n" for metric in metrics)
        with self._write_lock, self.path.open("a", encoding="utf-8") as handle:
            handle.write(lines)


class MemoryBackend(MetricsBackend):
    """
    Holds every flushed metric in process. Used for tests and the testing
    environment.
    """

    def __init__(self):
        self.metrics: List[Metric] = []
        self._lock = threading.Lock()

    def emit_batch(self, metrics: List[Metric]) -> None:
        with self._lock:
            self.metrics.extend(metrics)

    def values(self, name: str) -> List[Number]:
        with self._lock:
            return [metric.value for metric in self.metrics if metric.name == name]


class MetricsCollector:
    """
    Buffers metrics and forwards them to the backend every `buffer_size`
    emissions, on `flush()` and on `close()`.
    """

    def __init__(self, backend: MetricsBackend, buffer_size: int = 100,
                 history_size: int = 1000):
        self.backend = backend
        self.buffer_size = buffer_size
        self.logger = logging.getLogger(__name__)

        self._pending: List[Metric] = []
        self._pending_lock = threading.Lock()
        self._recent: Dict[str, Deque[float]] = defaultdict(lambda: deque(maxlen=history_size))
        self._recent_lock = threading.Lock()

    def emit(self, name: str, value: Number, tags: Optional[Dict[str, str]] = None,
             metric_type: str = "gauge", unit: Optional[str] = None) -> None:
        metric = Metric(name, value, dict(tags or {}), metric_type, unit)

        with self._recent_lock:
            self._recent[name].append(float(value))

        with self._pending_lock:
            self._pending.append(metric)
            if len(self._pending) >= self.buffer_size:
                self._drain()

    def flush(self) -> None:
        with self._pending_lock:
            self._drain()

    def _drain(self) -> None:
        # caller holds _pending_lock
        if not self._pending:
            return
        batch, self._pending = self._pending, []
        started = time.perf_counter()
        self.backend.emit_batch(batch)
        self.logger.debug("metrics.batch_flushed", extra={
            'batch_size': len(batch),
            'backend': type(self.backend).__name__,
            'duration_seconds': round(time.perf_counter() - started, 6)
        })

    def get_metric_summary(self, metric_name: str) -> Optional[MetricSummary]:
        """Summary of the retained values, or None for an unknown metric."""
        with self._recent_lock:
            retained = np.fromiter(self._recent.get(metric_name, ()), dtype=np.float64)

        if retained.size == 0:
            return None

        p50, p95 = np.percentile(retained, [50, 95])
        return MetricSummary(
            name=metric_name,
            count=int(retained.size),
            min=float(retained.min()),
            max=float(retained.max()),
            mean=float(retained.mean()),
            std=float(retained.std()),
            p50=float(p50),
            p95=float(p95)
        )

    def close(self) -> None:
        self.flush()
        self.backend.close()


class TrainingMetrics:
    """
    Named training metrics on top of a collector. Default tags are merged
    under the per-call tags of every metric.
    """

    def __init__(self, collector: MetricsCollector):
        self.collector = collector
        self.default_tags: Dict[str, str] = {}

    def set_default_tags(self, **tags) -> None:
        self.default_tags.update(tags)

    def _record(self, name: str, value: Number, tags: Dict[str, Any],
                metric_type: str = "gauge", unit: Optional[str] = None) -> None:
        self.collector.emit(name, value, {**self.default_tags, **tags},
                            metric_type=metric_type, unit=unit)

    def data_prepared(self, rows: int, features: int, train_windows: int,
                      test_windows: int, coerced_cells: int, **tags) -> None:
        for name, value in (("rows_loaded", rows), ("features_count", features),
                            ("train_windows", train_windows), ("test_windows", test_windows),
                            ("coerced_cells", coerced_cells)):
            self._record(f"ml.data.{name}", value, tags)

    def epoch_completed(self, run_id: str, epoch: int, training_loss: float,
                        validation_loss: Optional[float], duration: float, **tags) -> None:
        tags = {"run_id": run_id, **tags}
        self._record("ml.run.training_loss", training_loss, tags)
        if validation_loss is not None:
            self._record("ml.run.validation_loss", validation_loss, tags)
        self._record("ml.run.epoch_duration_seconds", duration, tags, "timer", "s")
        self._record("ml.run.epochs_completed", epoch + 1, tags, "counter")

    def run_completed(self, run_id: str, state: str, epochs_trained: int,
                      total_time: float, **tags) -> None:
        tags = {"run_id": run_id, "state": state, **tags}
        self._record("ml.run.completed", 1, tags, "counter")
        self._record("ml.run.epochs_trained", epochs_trained, tags)
        self._record("ml.run.total_time_seconds", total_time, tags, "timer", "s")

    def prediction_quality(self, mse: float, rmse: float, mae: float, **tags) -> None:
        for name, value in (("test_mse", mse), ("test_rmse", rmse), ("test_mae", mae)):
            self._record(f"ml.model.{name}", value, tags)

    def error_occurred(self, component: str, error_type: str, **tags) -> None:
        self._record("ml.errors.occurred", 1,
                     {"component": component, "error_type": error_type, **tags}, "counter")


def create_metrics_collector(backend_type: str = "memory",
                             file_path: Union[str, Path] = "logs/training/metrics.jsonl",
                             buffer_size: int = 100) -> MetricsCollector:
    """
    Collector over a "file" (JSON lines at `file_path`) or "memory" backend.

    Raises:
        ValueError: Unknown backend type
    """
    backend_type = backend_type.lower()
    if backend_type == "file":
        backend: MetricsBackend = FileBackend(file_path)
    elif backend_type == "memory":
        backend = MemoryBackend()
    else:
        raise ValueError(f"Unknown metrics backend: {backend_type}")
    return MetricsCollector(backend, buffer_size=buffer_size)

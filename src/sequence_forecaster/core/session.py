# /sequence-forecaster/src/sequence_forecaster/core/session.py

"""
TrainingSession: one loaded dataset, one orchestrator, one set of collaborators.

The session is the caller-owned entry point for the two user actions:

1. load data (CSV text or a file path)
2. train: prepare -> orchestrate -> predict test partition -> metrics -> charts

Every pipeline failure is reported on the status channel at ERROR level and
then re-raised to the caller.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from ..config.training_config import TrainingConfig
from ..models.base import ModelFactory
from ..reporting.charts import ChartSink, MatplotlibChartSink
from ..reporting.status import StatusLevel, StatusReporter
from ..utils.logging import get_training_logger, stage_logging
from ..utils.metrics import TrainingMetrics, create_metrics_collector
from .csv_table import Dataset
from .data_processor import DataProcessor, ProcessedDataset
from .errors import AlreadyTrainingError, EmptyInputError
from .metrics_engine import MetricsEngine, MetricsSummary
from .normalizer import Normalizer
from .orchestrator import (
    CancellationToken,
    EpochEvent,
    ObserverLike,
    ProgressObserver,
    RunState,
    TrainingOrchestrator,
    TrainingRun,
)


@dataclass
class SessionResult:
    """
    Outcome of one training action.

    actual/predicted are normalized target values over the test partition;
    the *_denormalized arrays hold the same values in original units.
    They are empty when the run was cancelled.
    """
    run_id: str
    state: RunState
    history: List[EpochEvent]
    actual: np.ndarray
    predicted: np.ndarray
    actual_denormalized: np.ndarray
    predicted_denormalized: np.ndarray
    summary: Optional[MetricsSummary] = None
    warnings: List[str] = field(default_factory=list)
    run_status: Dict[str, Any] = field(default_factory=dict)

    @property
    def completed(self) -> bool:
        return self.state == RunState.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'run_id': self.run_id,
            'state': self.state.value,
            'history': [event.to_dict() for event in self.history],
            'actual': self.actual.tolist(),
            'predicted': self.predicted.tolist(),
            'actual_denormalized': self.actual_denormalized.tolist(),
            'predicted_denormalized': self.predicted_denormalized.tolist(),
            'summary': self.summary.to_dict() if self.summary else None,
            'warnings': self.warnings,
            'run_status': self.run_status
        }


class _FanOutObserver(ProgressObserver):
    """Forwards each epoch event to the chart sink and the caller's observer."""

    def __init__(self, *targets):
        self.targets = [t for t in targets if t is not None]

    def on_epoch(self, event: EpochEvent) -> None:
        for target in self.targets:
            if isinstance(target, ProgressObserver):
                target.on_epoch(event)
            else:
                target(event)


class TrainingSession:
    """
    Caller-owned training session.
    """

    def __init__(self, config: Optional[TrainingConfig] = None,
                 model_factory: Optional[ModelFactory] = None,
                 chart_sink: Optional[ChartSink] = None,
                 status: Optional[StatusReporter] = None,
                 metrics: Optional[TrainingMetrics] = None):
        """
        Args:
            config: Training configuration; defaults apply when omitted
            model_factory: Sequence model factory; defaults to the PyTorch LSTM
            chart_sink: Display collaborator; a MatplotlibChartSink is created
                when monitoring.chart_dir is configured
            status: Status channel; a fresh StatusReporter when omitted
            metrics: Telemetry facade; created from monitoring config when
                metrics are enabled
        """
        self.config = config or TrainingConfig()
        self.logger = get_training_logger(__name__)
        self.status = status or StatusReporter()

        self._owns_metrics = False
        if metrics is None and self.config.monitoring.enable_metrics:
            collector = create_metrics_collector(
                self.config.monitoring.metrics_backend,
                file_path=self.config.monitoring.metrics_file
            )
            metrics = TrainingMetrics(collector)
            metrics.set_default_tags(pipeline=self.config.pipeline_name,
                                     environment=self.config.environment)
            self._owns_metrics = True
        self.metrics = metrics

        if chart_sink is None and self.config.monitoring.chart_dir:
            chart_sink = MatplotlibChartSink(
                self.config.monitoring.chart_dir,
                target_label=self.config.data.target_column,
                max_prediction_points=self.config.monitoring.chart_max_points
            )
        self.chart_sink = chart_sink

        self.processor = DataProcessor(self.config.to_dict()["data"])
        self.orchestrator = TrainingOrchestrator(
            model_factory=model_factory,
            model_config=self.config.model,
            metrics=self.metrics
        )
        self.metrics_engine = MetricsEngine()
        self.normalizer = Normalizer()

        self._dataset: Optional[Dataset] = None
        self._processed: Optional[ProcessedDataset] = None
        self._disposed = False
        self._metrics_closed = False

    @property
    def dataset(self) -> Optional[Dataset]:
        return self._dataset

    @property
    def processed(self) -> Optional[ProcessedDataset]:
        return self._processed

    @property
    def is_training(self) -> bool:
        return self.orchestrator.is_training

    def load_csv(self, text: str) -> Dataset:
        """Parse CSV text and keep it as the session dataset."""
        self.status.update("Loading data...")
        try:
            dataset = self.processor.parse_csv(text)
        except Exception as e:
            self._report_error("Failed to load data", e)
            raise
        return self._accept_dataset(dataset)

    def load_file(self, path: Union[str, Path]) -> Dataset:
        """Read a CSV file and keep it as the session dataset."""
        self.status.update(f"Loading {Path(path).name}...")
        try:
            dataset = self.processor.load_csv(path)
        except Exception as e:
            self._report_error("Failed to load data", e)
            raise
        return self._accept_dataset(dataset)

    async def train(self, observer: Optional[ObserverLike] = None,
                    cancel_token: Optional[CancellationToken] = None,
                    epochs: Optional[int] = None,
                    batch_size: Optional[int] = None) -> SessionResult:
        """
        Prepare the loaded dataset, train a fresh model and evaluate it on
        the test partition.

        Raises:
            EmptyInputError: No dataset loaded
            AlreadyTrainingError: A run is already active
            ValueError: Non-positive epochs or batch size
            ForecastingError: Any other pipeline failure
        """
        if epochs is None:
            epochs = self.config.run.epochs
        if batch_size is None:
            batch_size = self.config.run.batch_size

        try:
            if self._dataset is None:
                raise EmptyInputError("No data loaded; load a CSV file first")
            if self.orchestrator.is_training:
                raise AlreadyTrainingError("A training run is already in progress")

            with stage_logging(self.logger, "training", epochs=epochs, batch_size=batch_size):
                self._processed = self.processor.prepare(self._dataset)
                self._record_data_metrics(self._processed)

                for warning in self._processed.validation_result.warnings:
                    self.status.update(f"Warning: {warning}")

                self.status.update(f"Training for {epochs} epochs...")
                if self.chart_sink is not None:
                    self.chart_sink.on_run_started(epochs)

                run = await self.orchestrator.start_run(
                    self._processed.windowed,
                    epochs=epochs,
                    batch_size=batch_size,
                    observer=_FanOutObserver(self.chart_sink, observer),
                    cancel_token=cancel_token,
                )

                result = self._evaluate(run, self._processed)
        except Exception as e:
            self._report_error("Training failed", e)
            raise
        finally:
            if self._disposed:
                self._close_owned_metrics()

        if result.completed:
            self.status.update(
                f"Training complete. Test MSE: {result.summary.mse:.6f}, "
                f"RMSE: {result.summary.rmse:.6f}",
                StatusLevel.SUCCESS
            )
        else:
            self.status.update(f"Training cancelled after {len(result.history)} epochs")

        return result

    def train_sync(self, observer: Optional[ObserverLike] = None,
                   cancel_token: Optional[CancellationToken] = None,
                   epochs: Optional[int] = None,
                   batch_size: Optional[int] = None) -> SessionResult:
        """Synchronous wrapper around train for callers without an event loop."""
        return asyncio.run(self.train(observer, cancel_token, epochs, batch_size))

    def cancel(self) -> None:
        self.orchestrator.cancel()

    def dispose(self) -> None:
        """Release the model and owned telemetry; safe to call repeatedly."""
        self.orchestrator.dispose()
        if self._disposed:
            return
        self._disposed = True
        # an active run still records into the collector; train() closes it on exit
        if not self.orchestrator.is_training:
            self._close_owned_metrics()
        self.logger.debug("session.disposed")

    def _close_owned_metrics(self) -> None:
        if self._owns_metrics and not self._metrics_closed:
            self._metrics_closed = True
            self.metrics.collector.close()

    def _accept_dataset(self, dataset: Dataset) -> Dataset:
        self._dataset = dataset
        self._processed = None
        self.status.update(
            f"Loaded {dataset.row_count} rows with {len(dataset.feature_columns)} features",
            StatusLevel.SUCCESS
        )
        if dataset.coerced_cells:
            self.status.update(
                f"Warning: {dataset.coerced_cells} non-numeric or missing cells were replaced with 0.0"
            )
        return dataset

    def _evaluate(self, run: TrainingRun, processed: ProcessedDataset) -> SessionResult:
        windowed = processed.windowed
        warnings = list(processed.validation_result.warnings)

        if run.state != RunState.COMPLETED:
            empty = np.empty(0, dtype=np.float64)
            return SessionResult(
                run_id=run.run_id,
                state=run.state,
                history=list(run.history),
                actual=empty,
                predicted=empty,
                actual_denormalized=empty,
                predicted_denormalized=empty,
                warnings=warnings,
                run_status=run.status()
            )

        predicted = self.orchestrator.predict(windowed.test_sequences)
        actual = np.asarray(windowed.test_targets, dtype=np.float64)

        summary = self.metrics_engine.summarize(predicted, actual, run.epochs_trained)
        if self.metrics is not None:
            self.metrics.prediction_quality(summary.mse, summary.rmse, summary.mae,
                                            run_id=run.run_id)

        if self.chart_sink is not None:
            self.chart_sink.on_predictions(actual, predicted)
            self.chart_sink.on_summary(summary)

        return SessionResult(
            run_id=run.run_id,
            state=run.state,
            history=list(run.history),
            actual=actual,
            predicted=predicted,
            actual_denormalized=self.normalizer.denormalize(actual, processed.target_range),
            predicted_denormalized=self.normalizer.denormalize(predicted, processed.target_range),
            summary=summary,
            warnings=warnings,
            run_status=run.status()
        )

    def _record_data_metrics(self, processed: ProcessedDataset) -> None:
        if self.metrics is None:
            return
        metadata = processed.preprocessing_metadata
        self.metrics.data_prepared(
            rows=metadata['rows'],
            features=len(processed.feature_names),
            train_windows=processed.windowed.train_size,
            test_windows=processed.windowed.test_size,
            coerced_cells=metadata['coerced_cells']
        )

    def _report_error(self, prefix: str, error: Exception) -> None:
        self.status.update(f"{prefix}: {error}", StatusLevel.ERROR)
        self.logger.error("session.error", extra={
            'error_type': type(error).__name__,
            'error': str(error)
        })


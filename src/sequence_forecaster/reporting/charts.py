# /sequence-forecaster/src/sequence_forecaster/reporting/charts.py

"""
Chart sinks for training progress and prediction results.

A ChartSink receives the same EpochEvents as any ProgressObserver, followed by
the final actual/predicted series and the summary metrics. MatplotlibChartSink
renders two PNG files:

- loss curves (training vs validation MSE, log scale, most recent epochs)
- predicted vs actual target values for the first points of the test partition
"""

import logging
from abc import abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from ..core.metrics_engine import MetricsSummary
from ..core.orchestrator import EpochEvent, ProgressObserver


class ChartSink(ProgressObserver):
    """
    Display collaborator for a training session.
    """

    def on_run_started(self, epochs: int) -> None:
        return None

    @abstractmethod
    def on_predictions(self, actual: Sequence[float], predicted: Sequence[float]) -> None: ...

    @abstractmethod
    def on_summary(self, summary: MetricsSummary) -> None: ...


@dataclass
class RecordingChartSink(ChartSink):
    """Keeps everything it receives in memory."""
    events: List[EpochEvent] = field(default_factory=list)
    actual: List[float] = field(default_factory=list)
    predicted: List[float] = field(default_factory=list)
    summary: Optional[MetricsSummary] = None
    runs_started: int = 0

    def on_run_started(self, epochs: int) -> None:
        self.runs_started += 1
        self.events.clear()

    def on_epoch(self, event: EpochEvent) -> None:
        self.events.append(event)

    def on_predictions(self, actual: Sequence[float], predicted: Sequence[float]) -> None:
        self.actual = [float(v) for v in actual]
        self.predicted = [float(v) for v in predicted]

    def on_summary(self, summary: MetricsSummary) -> None:
        self.summary = summary


class MatplotlibChartSink(ChartSink):
    """
    Renders loss and prediction charts to PNG files with the Agg backend.
    """

    def __init__(self, output_dir: Union[str, Path], target_label: str = "WTI",
                 max_prediction_points: int = 100, max_loss_points: int = 50):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.target_label = target_label
        self.max_prediction_points = max_prediction_points
        self.max_loss_points = max_loss_points
        self.logger = logging.getLogger(__name__)

        self.epochs: List[int] = []
        self.training_losses: List[float] = []
        self.validation_losses: List[float] = []
        self.summary: Optional[MetricsSummary] = None

    @property
    def loss_chart_path(self) -> Path:
        return self.output_dir / "loss_curves.png"

    @property
    def prediction_chart_path(self) -> Path:
        return self.output_dir / "predictions.png"

    def on_run_started(self, epochs: int) -> None:
        self.epochs.clear()
        self.training_losses.clear()
        self.validation_losses.clear()
        self.summary = None

    def on_epoch(self, event: EpochEvent) -> None:
        self.epochs.append(event.epoch + 1)
        self.training_losses.append(event.training_loss)
        self.validation_losses.append(
            np.nan if event.validation_loss is None else event.validation_loss
        )

    def on_predictions(self, actual: Sequence[float], predicted: Sequence[float]) -> None:
        self.render_loss_chart()
        self.render_prediction_chart(actual, predicted)

    def on_summary(self, summary: MetricsSummary) -> None:
        self.summary = summary

    def render_loss_chart(self) -> Optional[Path]:
        if not self.epochs:
            return None

        import matplotlib
        matplotlib.use('Agg')
        import matplotlib.pyplot as plt

        window = slice(-self.max_loss_points, None)
        fig, ax = plt.subplots(figsize=(10, 5))
        try:
            ax.plot(self.epochs[window], self.training_losses[window],
                    color='tab:blue', linewidth=2, label='Training Loss')
            ax.plot(self.epochs[window], self.validation_losses[window],
                    color='tab:red', linewidth=2, label='Validation Loss')
            ax.set_yscale('log')
            ax.set_title('Training Progress - Loss Curves', fontweight='bold')
            ax.set_xlabel('Epoch')
            ax.set_ylabel('Mean Squared Error (Log Scale)')
            ax.grid(alpha=0.2)
            ax.legend(loc='upper right')
            fig.tight_layout()
            fig.savefig(self.loss_chart_path, dpi=100)
        finally:
            plt.close(fig)

        self.logger.info("charts.loss_rendered", extra={"path": str(self.loss_chart_path)})
        return self.loss_chart_path

    def render_prediction_chart(self, actual: Sequence[float],
                                predicted: Sequence[float]) -> Path:
        import matplotlib
        matplotlib.use('Agg')
        import matplotlib.pyplot as plt

        points = min(len(actual), len(predicted), self.max_prediction_points)
        labels = [f"T+{i + 1}" for i in range(points)]
        positions = np.arange(points)

        fig, ax = plt.subplots(figsize=(10, 5))
        try:
            ax.plot(positions, np.asarray(actual[:points]), color='tab:green',
                    linewidth=2, label=f'Actual {self.target_label}')
            ax.plot(positions, np.asarray(predicted[:points]), color='tab:purple',
                    linewidth=2, linestyle='--', label=f'Predicted {self.target_label}')
            step = max(1, points // 10)
            ax.set_xticks(positions[::step])
            ax.set_xticklabels(labels[::step])
            ax.set_title(f'{self.target_label} Prediction vs Actual', fontweight='bold')
            ax.set_xlabel('Time')
            ax.set_ylabel('Normalized Value')
            ax.legend(loc='upper left')
            fig.tight_layout()
            fig.savefig(self.prediction_chart_path, dpi=100)
        finally:
            plt.close(fig)

        self.logger.info("charts.predictions_rendered", extra={
            "path": str(self.prediction_chart_path),
            "points": points
        })
        return self.prediction_chart_path

    def chart_paths(self) -> Dict[str, str]:
        paths = {}
        if self.loss_chart_path.exists():
            paths['loss_curves'] = str(self.loss_chart_path)
        if self.prediction_chart_path.exists():
            paths['predictions'] = str(self.prediction_chart_path)
        return paths

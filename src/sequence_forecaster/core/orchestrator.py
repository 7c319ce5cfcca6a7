# /sequence-forecaster/src/sequence_forecaster/core/orchestrator.py

"""
TrainingOrchestrator: lifecycle of one model per training run

Owns at most one TrainingRun at a time and drives it through a small state
machine:

    IDLE -> BUILDING -> TRAINING -> COMPLETED | FAILED | CANCELLED

Training is cooperative: the loop fits one epoch at a time, reports an
EpochEvent to the registered observer, then yields to the event loop. Epoch
boundaries are the only point where cancellation is checked, since mid-epoch
model state is not observable.

Starting a run while another is BUILDING or TRAINING raises
AlreadyTrainingError. Starting a new run releases the previous run's model;
failed and cancelled runs release theirs immediately.
"""

import asyncio
import itertools
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

import numpy as np

from ..config.training_config import ModelConfig
from ..models.base import ModelFactory, SequenceModel
from ..models.lstm import build_lstm_model
from ..utils.metrics import TrainingMetrics
from .errors import (
    AlreadyTrainingError,
    InsufficientDataError,
    InvalidStateTransitionError,
    ModelNotTrainedError,
    TrainingCancelledError,
)
from .windowing import WindowedDataset


class RunState(Enum):
    """Training run states."""
    IDLE = "idle"
    BUILDING = "building"
    TRAINING = "training"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RunStateMachine:
    """
    Allowed run state transitions.
    """

    VALID_TRANSITIONS = {
        RunState.IDLE: [RunState.BUILDING],
        RunState.BUILDING: [RunState.TRAINING, RunState.FAILED, RunState.CANCELLED],
        RunState.TRAINING: [RunState.COMPLETED, RunState.FAILED, RunState.CANCELLED],
        RunState.COMPLETED: [],
        RunState.FAILED: [],
        RunState.CANCELLED: []
    }

    ACTIVE_STATES = (RunState.BUILDING, RunState.TRAINING)

    @classmethod
    def validate_transition(cls, current_state: RunState, new_state: RunState) -> bool:
        return new_state in cls.VALID_TRANSITIONS.get(current_state, [])


@dataclass(frozen=True)
class EpochEvent:
    """Progress report emitted once per epoch, epochs numbered from 0."""
    epoch: int
    training_loss: float
    validation_loss: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'epoch': self.epoch,
            'training_loss': self.training_loss,
            'validation_loss': self.validation_loss
        }


class ProgressObserver(ABC):
    """Receives one EpochEvent per epoch, in epoch order."""

    @abstractmethod
    def on_epoch(self, event: EpochEvent) -> None: ...


ObserverLike = Union[ProgressObserver, Callable[[EpochEvent], None]]


class CancellationToken:
    """
    Cooperative cancellation flag checked at epoch boundaries.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class TrainingRun:
    """
    One model, one windowed dataset and the per-epoch history.
    """
    run_id: str
    windowed: WindowedDataset
    epochs: int
    batch_size: int
    state: RunState = RunState.IDLE
    model: Optional[SequenceModel] = None
    history: List[EpochEvent] = field(default_factory=list)
    cancel_token: CancellationToken = field(default_factory=CancellationToken)
    error: Optional[str] = None
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.state in RunStateMachine.ACTIVE_STATES

    @property
    def epochs_trained(self) -> int:
        return len(self.history)

    @property
    def duration(self) -> float:
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()

    def release_model(self) -> None:
        if self.model is not None:
            self.model.dispose()
            self.model = None

    def status(self) -> Dict[str, Any]:
        return {
            'run_id': self.run_id,
            'state': self.state.value,
            'epochs_trained': self.epochs_trained,
            'epochs_requested': self.epochs,
            'duration': self.duration,
            'error': self.error
        }


class TrainingOrchestrator:
    """
    Drives training runs against an injected sequence-model factory.
    """

    _run_counter = itertools.count(1)

    def __init__(self, model_factory: Optional[ModelFactory] = None,
                 model_config: Optional[ModelConfig] = None,
                 metrics: Optional[TrainingMetrics] = None):
        """
        Args:
            model_factory: Callable (input_shape, model_config) -> SequenceModel;
                defaults to the PyTorch stacked LSTM
            model_config: Passed through to the factory
            metrics: Optional telemetry facade
        """
        self.model_factory = model_factory or build_lstm_model
        self.model_config = model_config or ModelConfig()
        self.metrics = metrics
        self.logger = logging.getLogger(__name__)

        self._run: Optional[TrainingRun] = None
        self._lock = threading.RLock()

    @property
    def current_run(self) -> Optional[TrainingRun]:
        return self._run

    @property
    def state(self) -> RunState:
        return self._run.state if self._run is not None else RunState.IDLE

    @property
    def is_training(self) -> bool:
        return self._run is not None and self._run.is_active

    async def start_run(self, windowed: WindowedDataset, epochs: int, batch_size: int,
                        observer: Optional[ObserverLike] = None,
                        cancel_token: Optional[CancellationToken] = None) -> TrainingRun:
        """
        Build a fresh model and train it for `epochs` epochs.

        Returns the finished run (COMPLETED or CANCELLED).

        Raises:
            AlreadyTrainingError: Another run is BUILDING or TRAINING
            InsufficientDataError: Empty train or test partition
        """
        if epochs <= 0:
            raise ValueError(f"Epochs must be positive: {epochs}")
        if batch_size <= 0:
            raise ValueError(f"Batch size must be positive: {batch_size}")

        callback = self._resolve_callback(observer)
        run = self._claim_run(windowed, epochs, batch_size, cancel_token)
        cancelled = False

        try:
            run.model = self.model_factory(windowed.input_shape, self.model_config)
            self._transition(run, RunState.TRAINING)

            for epoch in range(epochs):
                if run.cancel_token.is_cancelled:
                    cancelled = True
                    break

                event = self._train_epoch(run, epoch)
                if callback is not None:
                    callback(event)

                await asyncio.sleep(0)

        except asyncio.CancelledError:
            self._transition(run, RunState.CANCELLED)
            run.release_model()
            self.logger.warning("run.cancelled", extra={
                "run_id": run.run_id,
                "epochs_trained": run.epochs_trained,
                "reason": "task_cancelled"
            })
            raise
        except Exception as e:
            run.error = f"{type(e).__name__}: {e}"
            self._transition(run, RunState.FAILED)
            run.release_model()
            if self.metrics is not None:
                self.metrics.error_occurred("orchestrator", type(e).__name__, run_id=run.run_id)
            self.logger.error("run.failed", extra={
                "run_id": run.run_id,
                "epochs_trained": run.epochs_trained,
                "error": run.error
            })
            raise
        else:
            if cancelled:
                self._transition(run, RunState.CANCELLED)
                run.release_model()
                self.logger.warning("run.cancelled", extra={
                    "run_id": run.run_id,
                    "epochs_trained": run.epochs_trained
                })
            else:
                self._transition(run, RunState.COMPLETED)
                self.logger.info("run.completed", extra={
                    "run_id": run.run_id,
                    "epochs_trained": run.epochs_trained,
                    "final_training_loss": run.history[-1].training_loss,
                    "final_validation_loss": run.history[-1].validation_loss
                })
        finally:
            run.end_time = datetime.now()
            if self.metrics is not None:
                self.metrics.run_completed(run.run_id, run.state.value,
                                           run.epochs_trained, run.duration)

        return run

    def run(self, windowed: WindowedDataset, epochs: int, batch_size: int,
            observer: Optional[ObserverLike] = None,
            cancel_token: Optional[CancellationToken] = None) -> TrainingRun:
        """Synchronous wrapper around start_run for callers without an event loop."""
        return asyncio.run(self.start_run(windowed, epochs, batch_size, observer, cancel_token))

    def predict(self, sequences: np.ndarray) -> np.ndarray:
        """
        Predict next values for (n, sequence_length, features) inputs.

        Raises:
            ModelNotTrainedError: No run has completed, or its model was released
            TrainingCancelledError: The last run was cancelled
        """
        with self._lock:
            run = self._run
            if run is not None and run.state == RunState.CANCELLED:
                raise TrainingCancelledError(
                    f"Run {run.run_id} was cancelled after {run.epochs_trained} epochs"
                )
            if run is None or run.state != RunState.COMPLETED or run.model is None:
                raise ModelNotTrainedError("No completed training run is available for prediction")

            values = np.asarray(sequences, dtype=np.float64)
            expected = run.windowed.input_shape
            if values.ndim != 3 or values.shape[1:] != expected:
                raise ValueError(
                    f"Expected sequences of shape (n, {expected[0]}, {expected[1]}), got {values.shape}"
                )
            if len(values) == 0:
                return np.empty(0, dtype=np.float64)

            return np.asarray(run.model.predict(values), dtype=np.float64).ravel()

    def cancel(self) -> None:
        """Request cancellation of the active run at the next epoch boundary."""
        with self._lock:
            if self._run is not None and self._run.is_active:
                self._run.cancel_token.cancel()

    def dispose(self) -> None:
        """
        Release the current model. Safe to call repeatedly and from any state;
        an active run is cancelled and releases its model when the loop exits.
        """
        with self._lock:
            run = self._run
            if run is None:
                return
            if run.is_active:
                run.cancel_token.cancel()
                return
            run.release_model()

        self.logger.debug("orchestrator.disposed", extra={"run_id": run.run_id})

    def _claim_run(self, windowed: WindowedDataset, epochs: int, batch_size: int,
                   cancel_token: Optional[CancellationToken]) -> TrainingRun:
        with self._lock:
            if self._run is not None and self._run.is_active:
                raise AlreadyTrainingError(
                    f"Run {self._run.run_id} is still {self._run.state.value}"
                )

            if windowed.train_size == 0 or windowed.test_size == 0:
                raise InsufficientDataError(
                    f"Training needs non-empty partitions, got {windowed.train_size} train "
                    f"and {windowed.test_size} test windows"
                )

            if self._run is not None:
                self._run.release_model()

            run = TrainingRun(
                run_id=f"run_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{next(self._run_counter)}",
                windowed=windowed,
                epochs=epochs,
                batch_size=batch_size,
                cancel_token=cancel_token or CancellationToken(),
            )
            self._run = run
            self._transition(run, RunState.BUILDING)

        self.logger.info("run.started", extra={
            "run_id": run.run_id,
            "epochs": epochs,
            "batch_size": batch_size,
            "input_shape": list(windowed.input_shape),
            "train_windows": windowed.train_size,
            "test_windows": windowed.test_size
        })

        return run

    def _train_epoch(self, run: TrainingRun, epoch: int) -> EpochEvent:
        windowed = run.windowed
        start = time.time()

        history = run.model.fit(
            windowed.train_sequences,
            windowed.train_targets,
            validation_data=(windowed.test_sequences, windowed.test_targets),
            epochs=1,
            batch_size=run.batch_size,
        )
        logs = history[-1]

        event = EpochEvent(
            epoch=epoch,
            training_loss=float(logs.loss),
            validation_loss=None if logs.val_loss is None else float(logs.val_loss),
        )
        run.history.append(event)
        duration = time.time() - start

        if self.metrics is not None:
            self.metrics.epoch_completed(run.run_id, epoch, event.training_loss,
                                         event.validation_loss, duration)

        self.logger.debug("run.epoch_completed", extra={
            "run_id": run.run_id,
            "epoch": epoch,
            "training_loss": event.training_loss,
            "validation_loss": event.validation_loss,
            "duration": duration
        })

        return event

    def _resolve_callback(self, observer: Optional[ObserverLike]) -> Optional[Callable[[EpochEvent], None]]:
        if observer is None:
            return None
        if isinstance(observer, ProgressObserver):
            return observer.on_epoch
        if callable(observer):
            return observer
        raise TypeError(f"Observer must be a ProgressObserver or callable, got {type(observer).__name__}")

    def _transition(self, run: TrainingRun, new_state: RunState) -> None:
        if not RunStateMachine.validate_transition(run.state, new_state):
            raise InvalidStateTransitionError(
                f"Invalid transition from {run.state.value} to {new_state.value}"
            )

        self.logger.debug("run.state_transition", extra={
            "run_id": run.run_id,
            "from_state": run.state.value,
            "to_state": new_state.value
        })
        run.state = new_state

# /sequence-forecaster/src/sequence_forecaster/models/base.py

"""
Trainable sequence-model capability.

The orchestrator only talks to models through this interface, so the data
pipeline and run lifecycle can be exercised with any implementation,
including in-memory fakes in tests.
"""

import abc
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class EpochLogs:
    """Losses reported by a model at the end of one epoch."""
    epoch: int
    loss: float
    val_loss: Optional[float] = None


EpochCallback = Callable[[EpochLogs], None]


class SequenceModel(abc.ABC):
    """
    Regressor over (batch, sequence_length, features) inputs.
    """

    @abc.abstractmethod
    def fit(self, x: np.ndarray, y: np.ndarray,
            validation_data: Optional[Tuple[np.ndarray, np.ndarray]] = None,
            epochs: int = 1, batch_size: int = 32,
            on_epoch_end: Optional[EpochCallback] = None) -> List[EpochLogs]: ...

    @abc.abstractmethod
    def predict(self, x: np.ndarray) -> np.ndarray: ...

    def dispose(self) -> None:
        return None


# (input_shape, model_config) -> SequenceModel
ModelFactory = Callable[..., SequenceModel]

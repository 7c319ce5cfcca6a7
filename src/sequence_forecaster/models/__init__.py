# /sequence-forecaster/src/sequence_forecaster/models/__init__.py

"""
Sequence model implementations behind the SequenceModel interface.
"""

from .base import EpochLogs, ModelFactory, SequenceModel
from .lstm import StackedLSTMNetwork, TorchLSTMRegressor, build_lstm_model

__all__ = [
    "EpochLogs",
    "ModelFactory",
    "SequenceModel",
    "StackedLSTMNetwork",
    "TorchLSTMRegressor",
    "build_lstm_model"
]

# /sequence-forecaster/src/sequence_forecaster/models/lstm.py

"""
Stacked LSTM regressor backed by PyTorch.

Architecture:
- LSTM(units) returning the full sequence
- LSTM(units) consuming it; only the last hidden state is kept
- Dense(dense_units) with ReLU
- Dense(1) linear output

Trained with Adam on mean squared error. Mini-batches are shuffled inside the
training partition only; the train/test split itself stays in time order.
"""

import logging
from typing import List, Optional, Tuple

import numpy as np
import torch
import torch.nn as nn
from torch.utils.data import DataLoader, TensorDataset

from ..config.training_config import ModelConfig
from ..core.errors import ModelNotTrainedError
from .base import EpochCallback, EpochLogs, SequenceModel


class StackedLSTMNetwork(nn.Module):
    """Two recurrent layers followed by two fully-connected layers."""

    def __init__(self, num_features: int, lstm_units: int = 50, dense_units: int = 25):
        super().__init__()
        self.lstm_1 = nn.LSTM(num_features, lstm_units, batch_first=True)
        self.lstm_2 = nn.LSTM(lstm_units, lstm_units, batch_first=True)
        self.dense = nn.Linear(lstm_units, dense_units)
        self.activation = nn.ReLU()
        self.output = nn.Linear(dense_units, 1)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        sequence, _ = self.lstm_1(x)
        out, _ = self.lstm_2(sequence)
        hidden = self.activation(self.dense(out[:, -1, :]))
        return self.output(hidden).squeeze(-1)


class TorchLSTMRegressor(SequenceModel):
    """
    SequenceModel implementation around StackedLSTMNetwork.
    """

    def __init__(self, input_shape: Tuple[int, int], config: Optional[ModelConfig] = None):
        """
        Args:
            input_shape: (sequence_length, num_features)
            config: ModelConfig with layer widths, learning rate and device
        """
        self.config = config or ModelConfig()
        self.input_shape = tuple(input_shape)
        self.logger = logging.getLogger(__name__)

        if self.config.seed is not None:
            torch.manual_seed(self.config.seed)

        self.device = torch.device(self.config.device)
        self.network: Optional[StackedLSTMNetwork] = StackedLSTMNetwork(
            num_features=self.input_shape[1],
            lstm_units=self.config.lstm_units,
            dense_units=self.config.dense_units,
        ).to(self.device)
        self.optimizer: Optional[torch.optim.Optimizer] = torch.optim.Adam(
            self.network.parameters(), lr=self.config.learning_rate
        )
        self.criterion = nn.MSELoss()
        self.epochs_seen = 0

        self.logger.debug("lstm_model.built", extra={
            "input_shape": list(self.input_shape),
            "lstm_units": self.config.lstm_units,
            "dense_units": self.config.dense_units,
            "learning_rate": self.config.learning_rate,
            "parameters": sum(p.numel() for p in self.network.parameters())
        })

    def _to_tensor(self, values: np.ndarray) -> torch.Tensor:
        return torch.as_tensor(np.asarray(values, dtype=np.float32), device=self.device)

    def _require_network(self) -> StackedLSTMNetwork:
        if self.network is None:
            raise ModelNotTrainedError("Model has been disposed")
        return self.network

    def fit(self, x: np.ndarray, y: np.ndarray,
            validation_data: Optional[Tuple[np.ndarray, np.ndarray]] = None,
            epochs: int = 1, batch_size: int = 32,
            on_epoch_end: Optional[EpochCallback] = None) -> List[EpochLogs]:
        network = self._require_network()
        loader = DataLoader(
            TensorDataset(self._to_tensor(x), self._to_tensor(y)),
            batch_size=batch_size,
            shuffle=True,
        )

        history = []
        for _ in range(epochs):
            network.train()
            total_loss, seen = 0.0, 0
            for batch_x, batch_y in loader:
                self.optimizer.zero_grad()
                loss = self.criterion(network(batch_x), batch_y)
                loss.backward()
                self.optimizer.step()
                total_loss += loss.item() * len(batch_x)
                seen += len(batch_x)

            val_loss = None
            if validation_data is not None and len(validation_data[1]) > 0:
                val_pred = self.predict(validation_data[0])
                val_loss = float(np.mean((val_pred - np.asarray(validation_data[1], dtype=np.float64)) ** 2))

            logs = EpochLogs(epoch=self.epochs_seen, loss=total_loss / max(seen, 1), val_loss=val_loss)
            self.epochs_seen += 1
            history.append(logs)

            if on_epoch_end is not None:
                on_epoch_end(logs)

        return history

    def predict(self, x: np.ndarray) -> np.ndarray:
        network = self._require_network()
        network.eval()
        with torch.no_grad():
            out = network(self._to_tensor(x))
        return out.cpu().numpy().astype(np.float64).ravel()

    def dispose(self) -> None:
        if self.network is None:
            return
        self.network = None
        self.optimizer = None
        if self.device.type == "cuda":
            torch.cuda.empty_cache()
        self.logger.debug("lstm_model.disposed")


def build_lstm_model(input_shape: Tuple[int, int],
                     model_config: Optional[ModelConfig] = None) -> TorchLSTMRegressor:
    """Default model factory used by the orchestrator."""
    return TorchLSTMRegressor(input_shape, model_config)

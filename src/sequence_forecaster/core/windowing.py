# /sequence-forecaster/src/sequence_forecaster/core/windowing.py

"""
SequenceWindower: sliding fixed-length windows over normalized columns.

Window i covers time steps i..i+L-1 of every feature column and is labelled
with target[i+L]. Windows keep their time order and the train/test split is a
single cut at floor(total_windows * split_ratio), so every training window
starts before every test window.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Tuple

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .errors import InsufficientDataError, LengthMismatchError


@dataclass
class WindowedDataset:
    """
    Train/test partitions of (sequence, next-value) pairs.

    Sequences have shape (windows, sequence_length, features).
    """
    train_sequences: np.ndarray
    train_targets: np.ndarray
    test_sequences: np.ndarray
    test_targets: np.ndarray
    feature_column_order: List[str]
    sequence_length: int
    split_index: int
    total_windows: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if len(self.train_sequences) != len(self.train_targets):
            raise LengthMismatchError(
                f"Train sequence/target mismatch: {len(self.train_sequences)} vs {len(self.train_targets)}"
            )
        if len(self.test_sequences) != len(self.test_targets):
            raise LengthMismatchError(
                f"Test sequence/target mismatch: {len(self.test_sequences)} vs {len(self.test_targets)}"
            )

    @property
    def num_features(self) -> int:
        return len(self.feature_column_order)

    @property
    def input_shape(self) -> Tuple[int, int]:
        """Model input shape (sequence_length, num_features)."""
        return (self.sequence_length, self.num_features)

    @property
    def train_size(self) -> int:
        return len(self.train_targets)

    @property
    def test_size(self) -> int:
        return len(self.test_targets)

    def train_start_indices(self) -> np.ndarray:
        return np.arange(0, self.split_index)

    def test_start_indices(self) -> np.ndarray:
        return np.arange(self.split_index, self.total_windows)


class SequenceWindower:
    """
    Builds one-step-ahead windows and splits them by time.
    """

    def __init__(self, sequence_length: int = 30, split_ratio: float = 0.8):
        self.sequence_length = sequence_length
        self.split_ratio = split_ratio
        self.logger = logging.getLogger(__name__)

    def window(self, normalized_features: Mapping[str, Sequence[float]],
               normalized_target: Sequence[float],
               sequence_length: int = None,
               split_ratio: float = None) -> WindowedDataset:
        """
        Slide a window of length L over features and target.

        Raises:
            InsufficientDataError: len(target) - L <= 0
            LengthMismatchError: a feature column differs in length from the target
        """
        length = self.sequence_length if sequence_length is None else sequence_length
        ratio = self.split_ratio if split_ratio is None else split_ratio

        if length < 1:
            raise ValueError(f"Sequence length must be positive: {length}")
        if not 0.0 <= ratio <= 1.0:
            raise ValueError(f"Split ratio must be within [0, 1]: {ratio}")

        target = np.asarray(normalized_target, dtype=np.float64)
        feature_order = list(normalized_features.keys())

        for name in feature_order:
            if len(normalized_features[name]) != len(target):
                raise LengthMismatchError(
                    f"Feature '{name}' has {len(normalized_features[name])} steps, target has {len(target)}"
                )

        total_windows = len(target) - length
        if total_windows <= 0:
            raise InsufficientDataError(
                f"Need at least {length + 1} time steps for sequence length {length}, got {len(target)}"
            )

        # (time, features) matrix in feature column order
        matrix = np.column_stack(
            [np.asarray(normalized_features[name], dtype=np.float64) for name in feature_order]
        ) if feature_order else np.empty((len(target), 0), dtype=np.float64)

        # sliding_window_view yields (time - L + 1, features, L); the last
        # window has no label and is dropped
        windows = sliding_window_view(matrix, window_shape=length, axis=0)[:total_windows]
        sequences = np.ascontiguousarray(windows.transpose(0, 2, 1))
        labels = target[length:]

        split_index = int(math.floor(total_windows * ratio))

        dataset = WindowedDataset(
            train_sequences=sequences[:split_index],
            train_targets=labels[:split_index],
            test_sequences=sequences[split_index:],
            test_targets=labels[split_index:],
            feature_column_order=feature_order,
            sequence_length=length,
            split_index=split_index,
            total_windows=total_windows,
            metadata={'split_ratio': ratio},
        )

        self.logger.info("windower.windows_created", extra={
            "total_windows": total_windows,
            "train_windows": dataset.train_size,
            "test_windows": dataset.test_size,
            "sequence_length": length,
            "features": len(feature_order)
        })

        return dataset

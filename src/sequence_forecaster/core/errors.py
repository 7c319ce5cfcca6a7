# /sequence-forecaster/src/sequence_forecaster/core/errors.py

"""
Error taxonomy for the forecasting pipeline.

Every failure the pipeline can report to the user-visible status channel is a
subclass of ForecastingError. Malformed individual numeric cells are the only
input problem that is coerced instead of raised.
"""


class ForecastingError(Exception):
    """Base exception for forecasting pipeline errors."""
    pass


class EmptyInputError(ForecastingError):
    """Raised when the input has no usable header or rows."""
    pass


class SchemaError(ForecastingError):
    """Raised when required columns are missing from the dataset."""
    pass


class InsufficientDataError(ForecastingError):
    """Raised when there are fewer time steps than sequence_length + 1."""
    pass


class LengthMismatchError(ForecastingError):
    """Raised when two series that must align differ in length."""
    pass


class ModelNotTrainedError(ForecastingError):
    """Raised when predictions are requested before a run completes."""
    pass


class AlreadyTrainingError(ForecastingError):
    """Raised when a run is started while another one is active."""
    pass


class TrainingCancelledError(ModelNotTrainedError):
    """Raised when predictions are requested from a run cancelled at an epoch boundary."""
    pass


class InvalidStateTransitionError(ForecastingError):
    """Raised when an invalid run state transition is attempted."""
    pass

# /sequence-forecaster/src/sequence_forecaster/reporting/__init__.py

"""
Progress, chart and status collaborators for training sessions.
"""

from .charts import ChartSink, MatplotlibChartSink, RecordingChartSink
from .status import StatusLevel, StatusMessage, StatusReporter

__all__ = [
    "ChartSink",
    "MatplotlibChartSink",
    "RecordingChartSink",
    "StatusLevel",
    "StatusMessage",
    "StatusReporter"
]

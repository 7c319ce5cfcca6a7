# /sequence-forecaster/src/sequence_forecaster/reporting/status.py

"""
User-visible status channel.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional


class StatusLevel(Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class StatusMessage:
    message: str
    level: StatusLevel = StatusLevel.INFO
    timestamp: datetime = field(default_factory=datetime.now)


class StatusReporter:
    """
    Records status messages, logs them and forwards them to an optional listener.
    """

    def __init__(self, listener: Optional[Callable[[StatusMessage], None]] = None):
        self.listener = listener
        self.messages: List[StatusMessage] = []
        self.logger = logging.getLogger(__name__)

    def update(self, message: str, level: StatusLevel = StatusLevel.INFO) -> StatusMessage:
        status = StatusMessage(message=message, level=level)
        self.messages.append(status)

        log_level = logging.ERROR if level is StatusLevel.ERROR else logging.INFO
        self.logger.log(log_level, "status.updated", extra={
            "status": message,
            "status_level": level.value
        })

        if self.listener is not None:
            self.listener(status)
        return status

    @property
    def latest(self) -> Optional[StatusMessage]:
        return self.messages[-1] if self.messages else None

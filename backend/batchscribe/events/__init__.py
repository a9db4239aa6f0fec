"""
Runner notifications: event models and the publisher that fans them out.
"""

from .models import (
    RunnerEvent,
    LogEvent,
    StageEvent,
    FinishEvent,
    StatusEvent,
    AnyRunnerEvent,
    SYSTEM_STREAM,
    STDOUT_STREAM,
    STDERR_STREAM,
)
from .publisher import (
    EventSink,
    EventPublisher,
    RecordingSink,
    LoggingSink,
)

__all__ = [
    # Models
    "RunnerEvent",
    "LogEvent",
    "StageEvent",
    "FinishEvent",
    "StatusEvent",
    "AnyRunnerEvent",
    "SYSTEM_STREAM",
    "STDOUT_STREAM",
    "STDERR_STREAM",
    # Publishing
    "EventSink",
    "EventPublisher",
    "RecordingSink",
    "LoggingSink",
]

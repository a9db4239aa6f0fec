"""
Outbound runner notifications.

Events are observational: they explain what happened, without altering
behavior. Each event is emitted once and has no identity beyond its payload.
Every event type carries the channel name the front-end subscribes to.
"""

from typing import ClassVar, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RunnerEvent(BaseModel):
    """Base class for all outbound notifications."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    channel: ClassVar[str] = "transcribe://event"

    def to_payload(self) -> dict:
        """Wire payload (camelCase keys)."""
        return self.model_dump(by_alias=True)


class LogEvent(RunnerEvent):
    """One line of job output, or a system line from the orchestrator."""

    channel: ClassVar[str] = "transcribe://log"

    stream: str
    line: str

    def __str__(self) -> str:
        return f"[{self.stream}] {self.line}"


class StageEvent(RunnerEvent):
    """Processing of one input folder is about to start (1-based index)."""

    channel: ClassVar[str] = "transcribe://stage"

    index: int
    total: int
    input_folder: str


class FinishEvent(RunnerEvent):
    """A run reached its end, successfully or not."""

    channel: ClassVar[str] = "transcribe://finished"

    success: bool
    code: int
    message: str


class StatusEvent(RunnerEvent):
    """Status snapshot after a state transition."""

    channel: ClassVar[str] = "transcribe://status"

    running: bool
    paused: bool
    stop_requested: bool


AnyRunnerEvent = Union[LogEvent, StageEvent, FinishEvent, StatusEvent]


# Stream names used for orchestrator-originated log lines
SYSTEM_STREAM = "system"
STDOUT_STREAM = "stdout"
STDERR_STREAM = "stderr"

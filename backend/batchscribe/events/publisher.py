"""
Event publisher and sinks.

Design rules:
- publish() is fire-and-forget: no return value, no acknowledgment
- A failing sink NEVER halts the run; the failure is logged and skipped
- Sinks are called synchronously, in registration order, on the thread
  that publishes
"""

import logging
import threading
from collections import deque
from typing import Deque, List, Optional, Protocol, Tuple, Type, TypeVar

from .models import (
    FinishEvent,
    LogEvent,
    RunnerEvent,
    StageEvent,
    StatusEvent,
    SYSTEM_STREAM,
)

logger = logging.getLogger(__name__)

# Job output is mirrored here by LoggingSink
job_logger = logging.getLogger("batchscribe.job")

E = TypeVar("E", bound=RunnerEvent)


class EventSink(Protocol):
    """Anything that can receive runner events."""

    def publish(self, event: RunnerEvent) -> None:
        ...


class EventPublisher:
    """
    Fan-out of runner events to registered sinks.

    Holds no events itself. Thread-safe: sinks may be added while a run is
    publishing.
    """

    def __init__(self, sinks: Optional[List[EventSink]] = None):
        self._sinks: List[EventSink] = list(sinks or [])
        self._lock = threading.Lock()

    def add_sink(self, sink: EventSink) -> None:
        with self._lock:
            self._sinks.append(sink)

    def remove_sink(self, sink: EventSink) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def publish(self, event: RunnerEvent) -> None:
        with self._lock:
            sinks = list(self._sinks)

        for sink in sinks:
            try:
                sink.publish(event)
            except Exception as e:
                logger.warning(f"[Events] Sink {type(sink).__name__} failed on {event.channel}: {e}")

    # Convenience emitters

    def log(self, stream: str, line: str) -> None:
        self.publish(LogEvent(stream=stream, line=line))

    def system(self, line: str) -> None:
        self.log(SYSTEM_STREAM, line)

    def stage(self, index: int, total: int, input_folder: str) -> None:
        self.publish(StageEvent(index=index, total=total, input_folder=input_folder))

    def finished(self, success: bool, code: int, message: str) -> None:
        self.publish(FinishEvent(success=success, code=code, message=message))

    def status(self, running: bool, paused: bool, stop_requested: bool) -> None:
        self.publish(StatusEvent(running=running, paused=paused, stop_requested=stop_requested))


class RecordingSink:
    """
    Ordered, sequence-numbered event buffer.

    Used by polling clients (GET /runner/events), the CLI and tests.
    When maxlen is set, the oldest events are dropped first; sequence
    numbers keep increasing so clients can detect gaps.
    """

    def __init__(self, maxlen: Optional[int] = None):
        self._events: Deque[Tuple[int, RunnerEvent]] = deque(maxlen=maxlen)
        self._next_seq = 1
        self._condition = threading.Condition()

    def publish(self, event: RunnerEvent) -> None:
        with self._condition:
            self._events.append((self._next_seq, event))
            self._next_seq += 1
            self._condition.notify_all()

    @property
    def last_seq(self) -> int:
        with self._condition:
            return self._next_seq - 1

    def events(self) -> List[RunnerEvent]:
        """All buffered events, oldest first."""
        with self._condition:
            return [event for _, event in self._events]

    def since(self, after: int = 0) -> List[Tuple[int, RunnerEvent]]:
        """Buffered events with a sequence number greater than after."""
        with self._condition:
            return [(seq, event) for seq, event in self._events if seq > after]

    def of_type(self, event_type: Type[E]) -> List[E]:
        with self._condition:
            return [event for _, event in self._events if isinstance(event, event_type)]

    def log_lines(self, stream: Optional[str] = None) -> List[str]:
        """Text of buffered log events, optionally for one stream."""
        return [
            event.line
            for event in self.of_type(LogEvent)
            if stream is None or event.stream == stream
        ]

    def wait_for(
        self,
        event_type: Type[E],
        timeout: Optional[float] = None,
        after: int = 0,
    ) -> Optional[E]:
        """
        Block until an event of event_type with sequence > after is buffered.

        Returns:
            The first matching event, or None on timeout
        """

        def _find() -> Optional[E]:
            for seq, event in self._events:
                if seq > after and isinstance(event, event_type):
                    return event
            return None

        with self._condition:
            self._condition.wait_for(lambda: _find() is not None, timeout=timeout)
            return _find()

    def clear(self) -> None:
        """Drop buffered events (sequence numbers keep counting)."""
        with self._condition:
            self._events.clear()


class LoggingSink:
    """Mirror events into the logging system."""

    def publish(self, event: RunnerEvent) -> None:
        if isinstance(event, LogEvent):
            if event.stream == "stderr":
                job_logger.warning(str(event))
            else:
                job_logger.info(str(event))
        elif isinstance(event, StageEvent):
            job_logger.info(f"[stage] {event.index}/{event.total}: {event.input_folder}")
        elif isinstance(event, FinishEvent):
            level = logging.INFO if event.success else logging.ERROR
            job_logger.log(level, f"[finished] code={event.code}: {event.message}")
        elif isinstance(event, StatusEvent):
            job_logger.debug(
                f"[status] running={event.running} paused={event.paused} "
                f"stop_requested={event.stop_requested}"
            )

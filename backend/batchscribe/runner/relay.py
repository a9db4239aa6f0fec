"""
Log stream relay.

One reader thread per process output stream. Each line becomes a LogEvent
tagged with the stream name. A read error is reported once as a system line
and ends that reader only; it never aborts the run.
"""

import logging
import threading
from typing import IO, Optional

from ..events.publisher import EventPublisher

logger = logging.getLogger(__name__)


class LogStreamRelay:
    """Forward lines from one text stream to the event publisher."""

    def __init__(self, stream: IO[str], stream_name: str, publisher: EventPublisher):
        self._stream = stream
        self.stream_name = stream_name
        self._publisher = publisher
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "LogStreamRelay":
        self._thread = threading.Thread(
            target=self._pump,
            name=f"batchscribe-relay-{self.stream_name}",
            daemon=True,
        )
        self._thread.start()
        return self

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the stream to close.

        Returns:
            True if the reader finished within timeout
        """
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _pump(self) -> None:
        try:
            for line in self._stream:
                self._publisher.log(self.stream_name, line.rstrip("\r\n"))
        except (OSError, ValueError) as e:
            logger.warning(f"[Relay] {self.stream_name} read error: {e}")
            self._publisher.system(f"log read error: {e}")
        finally:
            try:
                self._stream.close()
            except OSError:
                pass

"""
Shared runner state.

One RunnerState exists per orchestrator, constructed at process start and
shared by reference with every command and the supervisory thread.

Locking rules:
- Every field has its own lock
- A lock is held only for the single read or write of its field
- No lock is ever held across a process spawn, kill or poll
- The only compound operation is try_begin_run() (check-and-set of running)

A lock that cannot be acquired within lock_timeout raises
StateUnavailableError, which callers surface as a rejection.
"""

import subprocess
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .errors import StateUnavailableError


class RunnerState:
    """
    Process-wide run state: running, stop_requested, active_child,
    pause_flag_path.

    Invariants:
    - active_child is set only between a successful spawn and the observed
      exit of that folder's job
    - pause_flag_path is set only between run start and run cleanup
    """

    def __init__(self, lock_timeout: float = 5.0):
        self._lock_timeout = lock_timeout

        self._running = False
        self._running_lock = threading.Lock()

        self._stop_requested = False
        self._stop_lock = threading.Lock()

        self._active_child: Optional[subprocess.Popen] = None
        self._child_lock = threading.Lock()

        self._pause_flag_path: Optional[Path] = None
        self._pause_lock = threading.Lock()

    @contextmanager
    def _hold(self, lock: threading.Lock, field: str) -> Iterator[None]:
        if not lock.acquire(timeout=self._lock_timeout):
            raise StateUnavailableError(field)
        try:
            yield
        finally:
            lock.release()

    # running

    @property
    def running(self) -> bool:
        with self._hold(self._running_lock, "running"):
            return self._running

    def set_running(self, value: bool) -> None:
        with self._hold(self._running_lock, "running"):
            self._running = value

    def try_begin_run(self) -> bool:
        """
        Atomically claim the single run slot.

        Returns:
            True if the slot was free and is now taken, False if a run is
            already active.
        """
        with self._hold(self._running_lock, "running"):
            if self._running:
                return False
            self._running = True
            return True

    # stop_requested

    @property
    def stop_requested(self) -> bool:
        with self._hold(self._stop_lock, "stop_requested"):
            return self._stop_requested

    def set_stop_requested(self, value: bool) -> None:
        with self._hold(self._stop_lock, "stop_requested"):
            self._stop_requested = value

    # active_child

    @property
    def active_child(self) -> Optional[subprocess.Popen]:
        with self._hold(self._child_lock, "active_child"):
            return self._active_child

    def set_active_child(self, process: Optional[subprocess.Popen]) -> None:
        with self._hold(self._child_lock, "active_child"):
            self._active_child = process

    # pause_flag_path

    @property
    def pause_flag_path(self) -> Optional[Path]:
        with self._hold(self._pause_lock, "pause_flag_path"):
            return self._pause_flag_path

    def set_pause_flag_path(self, path: Optional[Path]) -> None:
        with self._hold(self._pause_lock, "pause_flag_path"):
            self._pause_flag_path = path

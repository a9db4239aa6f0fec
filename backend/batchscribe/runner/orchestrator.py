"""
Run orchestrator.

Supervises one active run: N input folders processed strictly in order,
one external job process at a time.

Lifecycle: IDLE → STARTING → RUNNING → (STOPPING) → IDLE

Design rules:
- start/stop/toggle_pause/get_status never wait on a job process
- All waiting happens on the supervisory thread, in a fixed-interval poll
- Stop is forceful (kill, no grace period) and advisory: the caller learns
  the run ended from the Finish event
- Pause is a file the batch script polls; the orchestrator never blocks
  the job and never verifies the pause was honored
- Cleanup runs exactly once per run, whatever the outcome
- A failed folder aborts the run; completed folders are not rolled back
"""

import logging
import subprocess
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from ..events.models import STDERR_STREAM, STDOUT_STREAM
from ..events.publisher import EventPublisher
from ..preflight.report import PreflightReport, run_preflight
from ..settings import RunnerSettings
from .errors import RejectionError, ScriptNotFoundError, StateUnavailableError
from .models import (
    COMPLETE_MESSAGE,
    STOPPED_BEFORE_FOLDER_CODE,
    STOPPED_BEFORE_FOLDER_MESSAGE,
    STOPPED_MESSAGE,
    RunOutcome,
    RunnerStatus,
    RunRequest,
)
from .pause import PauseSignal, pause_flag_path_for
from .relay import LogStreamRelay
from .resolution import resolve_script_path
from .state import RunnerState
from .supervisor import UNREPORTED_EXIT_CODE, ProcessSupervisor, build_folder_command

logger = logging.getLogger(__name__)


class RunOrchestrator:
    """
    Top-level run state machine.

    Construct one per process and share it; it owns the RunnerState that
    enforces the single-active-run rule.
    """

    def __init__(
        self,
        settings: Optional[RunnerSettings] = None,
        publisher: Optional[EventPublisher] = None,
        supervisor: Optional[ProcessSupervisor] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            settings: Runner settings (defaults when omitted)
            publisher: Event fan-out for log/stage/finish/status notifications
            supervisor: Process supervisor (replaceable in tests)
        """
        self.settings = settings or RunnerSettings()
        self.publisher = publisher or EventPublisher()
        self.supervisor = supervisor or ProcessSupervisor()
        self.state = RunnerState(lock_timeout=self.settings.lock_timeout)
        self._thread: Optional[threading.Thread] = None

    # =========================================================================
    # Inbound commands
    # =========================================================================

    def get_status(self) -> RunnerStatus:
        """
        Read-only status snapshot. Safe to call at any time.

        An unavailable lock reads as the idle default for that field.
        """
        running = self._read(lambda: self.state.running, False)
        stop_requested = self._read(lambda: self.state.stop_requested, False)
        pause_path = self._read(lambda: self.state.pause_flag_path, None)
        paused = pause_path is not None and pause_path.exists()
        return RunnerStatus(running=running, paused=paused, stop_requested=stop_requested)

    def preflight(self, request: RunRequest) -> PreflightReport:
        """Validate a proposed run without touching runner state."""
        return run_preflight(request, self.settings)

    def start(self, request: RunRequest) -> RunnerStatus:
        """
        Accept a run and launch its supervisory thread.

        Returns immediately with the current status; progress and the
        outcome arrive as events.

        Raises:
            RejectionError: Incomplete request, preflight not ready, or a run
                is already in progress. No state is changed.
        """
        self._reject_incomplete(request)

        script_path: Optional[Path] = None
        if self.settings.preflight_on_start:
            report = self.preflight(request)
            if not report.ready:
                raise RejectionError(f"Preflight failed: {report.failure_summary()}")
            script_path = report.script_path

        if not self.state.try_begin_run():
            raise RejectionError("A transcription run is already in progress.")

        # The run slot is ours from here; give it back on any failure
        pause_path = pause_flag_path_for(request.output_folder)
        try:
            self.state.set_stop_requested(False)
            PauseSignal(pause_path).clear()
            self.state.set_pause_flag_path(pause_path)

            thread = threading.Thread(
                target=self._supervise,
                args=(request, script_path, pause_path),
                name="batchscribe-run",
                daemon=True,
            )
            self._publish_status()
            thread.start()
        except (OSError, RuntimeError) as e:
            self._release_run_slot()
            raise RejectionError(f"Failed to start run: {e}") from e
        except StateUnavailableError:
            self._release_run_slot()
            raise

        self._thread = thread
        logger.info(f"[Runner] Run started: {len(request.input_folders)} folder(s) -> {request.output_folder.strip()}")
        return self.get_status()

    def stop(self) -> RunnerStatus:
        """
        Request the active run to stop.

        Kills the current job process if one is attached right now; if none
        is, the check before the next folder ends the run. Does not wait.
        """
        if not self.state.running:
            return self.get_status()

        self.state.set_stop_requested(True)
        if not self.state.running:
            # The run finished and cleaned up between the two reads
            self.state.set_stop_requested(False)
            return self.get_status()

        self.supervisor.kill(self.state.active_child)

        self.publisher.system("Stop requested. Finishing current checkpoint...")
        logger.info("[Runner] Stop requested")
        self._publish_status()
        return self.get_status()

    def toggle_pause(self, paused: bool) -> RunnerStatus:
        """
        Create (pause) or remove (resume) the pause flag file.

        Raises:
            RejectionError: No active run, no pause path, or file I/O failure
        """
        if not self.state.running:
            raise RejectionError("No active run to pause/resume.")

        pause_path = self.state.pause_flag_path
        if pause_path is None:
            raise RejectionError("Pause flag path not initialized.")

        signal = PauseSignal(pause_path)
        if paused:
            try:
                signal.set()
            except OSError as e:
                raise RejectionError(f"Failed to write pause flag: {e}") from e
            self.publisher.system(f"Pause requested (flag: {pause_path}).")
        else:
            try:
                removed = signal.clear()
            except OSError as e:
                raise RejectionError(f"Failed to clear pause flag: {e}") from e
            if removed:
                self.publisher.system("Resume requested.")

        self._publish_status()
        return self.get_status()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the most recent run's thread has finished.

        Returns:
            True if no run thread is alive afterwards
        """
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    # =========================================================================
    # Supervisory thread
    # =========================================================================

    def _supervise(self, request: RunRequest, script_path: Optional[Path], pause_path: Path) -> None:
        outcome = RunOutcome(success=False, code=1, message="Run aborted.")
        try:
            outcome = self._run_folders(request, script_path, pause_path)
        except Exception as e:
            logger.exception("[Runner] Supervisory thread failed")
            outcome = RunOutcome(success=False, code=1, message=f"Run aborted: {e}")
            self.publisher.system(outcome.message)
        finally:
            self._cleanup(outcome)

    def _run_folders(self, request: RunRequest, script_path: Optional[Path], pause_path: Path) -> RunOutcome:
        if script_path is None:
            try:
                script_path = resolve_script_path(
                    request.script_path,
                    self.settings.script_name,
                    bundle_dir=self.settings.bundle_dir,
                )
            except ScriptNotFoundError as e:
                self.publisher.system(str(e))
                return RunOutcome(success=False, code=1, message=str(e))

        self.publisher.system(f"Using batch script: {script_path}")

        total = len(request.input_folders)
        for index, raw_folder in enumerate(request.input_folders, start=1):
            # Same trimmed path the preflight check validated
            folder = raw_folder.strip()

            if self._stop_pending():
                self.publisher.system(STOPPED_BEFORE_FOLDER_MESSAGE)
                return RunOutcome(
                    success=False,
                    code=STOPPED_BEFORE_FOLDER_CODE,
                    message=STOPPED_BEFORE_FOLDER_MESSAGE,
                )

            # Stage goes out before spawn so a failing folder still has one
            self.publisher.stage(index, total, folder)

            cmd = build_folder_command(
                job_runner=self.settings.job_runner,
                runner_args=self.settings.runner_args,
                script_path=script_path,
                request=request,
                input_folder=folder,
                pause_flag_path=pause_path,
            )

            self.publisher.system(f"Starting folder {index}/{total}: {folder}")

            try:
                process = self.supervisor.spawn(cmd)
            except (OSError, ValueError) as e:
                message = f"Failed to start job process: {e}"
                logger.error(f"[Runner] {message}")
                self.publisher.system(message)
                return RunOutcome(success=False, code=1, message=message)

            exit_code = self._wait_for_exit(process)

            if exit_code != 0:
                if self._stop_pending():
                    message = STOPPED_MESSAGE
                else:
                    message = f"Folder run failed (exit code {exit_code})."
                self.publisher.system(message)
                return RunOutcome(success=False, code=exit_code, message=message)

            self.publisher.system(f"Completed folder {index}/{total}")

        return RunOutcome(success=True, code=0, message=COMPLETE_MESSAGE)

    def _wait_for_exit(self, process: subprocess.Popen) -> int:
        """Relay output and poll until the folder's job exits."""
        relays = [
            LogStreamRelay(process.stdout, STDOUT_STREAM, self.publisher).start(),
            LogStreamRelay(process.stderr, STDERR_STREAM, self.publisher).start(),
        ]

        try:
            self.state.set_active_child(process)

            while True:
                if self._stop_pending():
                    self.supervisor.kill(process)

                try:
                    exit_code = self.supervisor.poll(process)
                except OSError as e:
                    self.publisher.system(f"Process wait error: {e}")
                    exit_code = UNREPORTED_EXIT_CODE

                if exit_code is not None:
                    break

                time.sleep(self.settings.poll_interval)
        except BaseException:
            self.supervisor.kill(process)
            raise
        finally:
            self._quietly(self.state.set_active_child, None)

        for relay in relays:
            if not relay.join(self.settings.reader_join_timeout):
                logger.warning(f"[Runner] {relay.stream_name} reader still open after exit")

        return exit_code

    def _cleanup(self, outcome: RunOutcome) -> None:
        # Path is detached before the file goes; toggle_pause needs the path
        pause_path = self._read(lambda: self.state.pause_flag_path, None)
        self._quietly(self.state.set_pause_flag_path, None)
        if pause_path is not None:
            try:
                PauseSignal(pause_path).clear()
            except OSError as e:
                logger.warning(f"[Runner] Could not remove pause flag {pause_path}: {e}")

        self._quietly(self.state.set_active_child, None)
        self._quietly(self.state.set_running, False)
        self._quietly(self.state.set_stop_requested, False)

        logger.info(f"[Runner] Run finished: success={outcome.success} code={outcome.code} ({outcome.message})")
        self.publisher.finished(outcome.success, outcome.code, outcome.message)
        self._publish_status()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _reject_incomplete(self, request: RunRequest) -> None:
        if not request.input_folders:
            raise RejectionError("At least one input folder is required.")
        if not request.output_folder.strip():
            raise RejectionError("Output folder is required.")
        if not request.whisper_exe.strip():
            raise RejectionError("Whisper executable path is required.")
        if not request.model_file.strip():
            raise RejectionError("Model file path is required.")

    def _stop_pending(self) -> bool:
        # An unreadable flag counts as a stop
        return self._read(lambda: self.state.stop_requested, True)

    def _release_run_slot(self) -> None:
        self._quietly(self.state.set_pause_flag_path, None)
        self._quietly(self.state.set_running, False)

    def _publish_status(self) -> None:
        status = self.get_status()
        self.publisher.status(status.running, status.paused, status.stop_requested)

    @staticmethod
    def _read(getter: Callable, default):
        try:
            return getter()
        except StateUnavailableError as e:
            logger.warning(f"[Runner] {e}")
            return default

    @staticmethod
    def _quietly(setter: Callable, value) -> None:
        try:
            setter(value)
        except StateUnavailableError as e:
            logger.error(f"[Runner] {e}; state may be stale")

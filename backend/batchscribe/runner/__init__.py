"""
Run supervision for batch transcription.

One run at a time, one folder job at a time. The orchestrator itself lives
in batchscribe.runner.orchestrator; it is not re-exported here because it
depends on the preflight package, which depends on this one.
"""

from .errors import (
    RunnerError,
    RejectionError,
    StateUnavailableError,
    ScriptNotFoundError,
    ExportError,
)
from .models import (
    RunPhase,
    RunRequest,
    PreflightRequest,
    RunnerStatus,
    RunOutcome,
)
from .state import RunnerState
from .pause import PauseSignal, PAUSE_FLAG_FILENAME, pause_flag_path_for
from .resolution import resolve_script_path, candidate_script_paths
from .supervisor import ProcessSupervisor, build_folder_command, normalize_exit_code
from .exports import export_logs

__all__ = [
    # Errors
    "RunnerError",
    "RejectionError",
    "StateUnavailableError",
    "ScriptNotFoundError",
    "ExportError",
    # Models
    "RunPhase",
    "RunRequest",
    "PreflightRequest",
    "RunnerStatus",
    "RunOutcome",
    # State and signals
    "RunnerState",
    "PauseSignal",
    "PAUSE_FLAG_FILENAME",
    "pause_flag_path_for",
    # Processes and scripts
    "resolve_script_path",
    "candidate_script_paths",
    "ProcessSupervisor",
    "build_folder_command",
    "normalize_exit_code",
    # Export
    "export_logs",
]

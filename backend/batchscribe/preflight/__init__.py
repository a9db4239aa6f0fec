"""
Preflight validation - decides whether a run request is executable.

Principles:
- Explicit: every check returns pass/fail with clear messaging
- Complete: one failing check never hides the others
- Actionable: every failure carries a remediation hint
- Local: all checks run against the local machine, no network calls
"""

from .checks import (
    PreflightCheck,
    check_job_runner,
    check_media_tool,
    check_input_folders,
    check_output_folder,
    check_output_writable,
    check_whisper_exe,
    check_model_file,
    check_batch_script,
    looks_like_path,
)
from .report import (
    PreflightReport,
    run_preflight,
    format_preflight_terminal,
)

__all__ = [
    "PreflightCheck",
    "check_job_runner",
    "check_media_tool",
    "check_input_folders",
    "check_output_folder",
    "check_output_writable",
    "check_whisper_exe",
    "check_model_file",
    "check_batch_script",
    "looks_like_path",
    "PreflightReport",
    "run_preflight",
    "format_preflight_terminal",
]

"""
Preflight checks - individual check implementations.

Each check follows the same pattern:
1. Run one specific verification against the request or the environment
2. Return PreflightCheck with:
   - key: check identifier
   - ok: pass/fail
   - detail: factual finding
   - fix: remediation text (empty when ok)

Checks are independent. A failing or crashing check never stops the
others, so the caller always gets the complete picture.
"""

import logging
import os
import re
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from ..runner.errors import ScriptNotFoundError
from ..runner.models import RunRequest
from ..runner.resolution import resolve_script_path
from ..settings import RunnerSettings

logger = logging.getLogger(__name__)


@dataclass
class PreflightCheck:
    """
    Result of a single preflight check.

    Attributes:
        key: Unique identifier for this check (e.g., "model_file")
        ok: Whether the check passed
        detail: Factual explanation of the result
        fix: Remediation instruction, empty if ok
    """
    key: str
    ok: bool
    detail: str
    fix: str = ""

    def to_dict(self) -> dict:
        """Serialize to dictionary for JSON output."""
        return {
            "key": self.key,
            "ok": self.ok,
            "detail": self.detail,
            "fix": self.fix,
        }


def _passed(key: str, detail: str) -> PreflightCheck:
    return PreflightCheck(key=key, ok=True, detail=detail)


def _failed(key: str, detail: str, fix: str) -> PreflightCheck:
    return PreflightCheck(key=key, ok=False, detail=detail, fix=fix)


# =============================================================================
# Tools on PATH
# =============================================================================

def check_job_runner(settings: RunnerSettings) -> PreflightCheck:
    """The PowerShell host that runs the batch script must be on PATH."""
    found = shutil.which(settings.job_runner)
    if found:
        return _passed("job_runner", f"Job runner found: {found}")
    return _failed(
        "job_runner",
        f"Job runner '{settings.job_runner}' not found in PATH",
        "Install PowerShell (pwsh) or set BATCHSCRIBE_JOB_RUNNER to its full path",
    )


def check_media_tool(settings: RunnerSettings) -> PreflightCheck:
    """The batch script converts media with ffmpeg; it must be on PATH."""
    found = shutil.which(settings.media_tool)
    if found:
        return _passed("media_tool", f"{settings.media_tool} found: {found}")
    return _failed(
        "media_tool",
        f"{settings.media_tool} not found in PATH",
        "Install FFmpeg: winget install ffmpeg (Windows), brew install ffmpeg (macOS) "
        "or apt install ffmpeg (Linux)",
    )


# =============================================================================
# Input folders
# =============================================================================

def check_input_folders(request: RunRequest) -> List[PreflightCheck]:
    """One check per input folder; an empty list is itself a failure."""
    if not request.input_folders:
        return [_failed(
            "input_folders",
            "No input folders selected",
            "Select at least one input folder",
        )]

    results = []
    for index, folder in enumerate(request.input_folders, start=1):
        key = f"input_folder_{index}"
        value = folder.strip()
        if not value:
            results.append(_failed(key, f"Input folder {index} is blank", "Select an input folder or remove the entry"))
            continue

        path = Path(value)
        if not path.exists():
            results.append(_failed(key, f"Input folder does not exist: {path}", "Check the folder path or reconnect the drive"))
        elif not path.is_dir():
            results.append(_failed(key, f"Input path is not a folder: {path}", "Select a folder, not a file"))
        else:
            results.append(_passed(key, f"Input folder found: {path}"))

    return results


# =============================================================================
# Output folder
# =============================================================================

def check_output_folder(request: RunRequest) -> Tuple[PreflightCheck, Optional[Path]]:
    """
    Output folder must exist as a directory; a missing folder is created.

    Returns:
        The check, and the usable folder path (None when unusable)
    """
    value = request.output_folder.strip()
    if not value:
        return _failed("output_folder", "Output folder is blank", "Select an output folder"), None

    path = Path(value)
    if path.exists() and not path.is_dir():
        return _failed(
            "output_folder",
            f"Output path exists but is not a folder: {path}",
            "Choose a folder path, or move the file out of the way",
        ), None

    if not path.exists():
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return _failed(
                "output_folder",
                f"Cannot create output folder {path}: {e}",
                "Check that the parent location exists and is writable",
            ), None
        return _passed("output_folder", f"Output folder created: {path}"), path

    return _passed("output_folder", f"Output folder found: {path}"), path


def check_output_writable(folder: Optional[Path]) -> PreflightCheck:
    """Write probe: create and delete a marker file in the output folder."""
    if folder is None:
        return _failed(
            "output_folder_writable",
            "Skipped: output folder is not usable",
            "Fix the output folder first",
        )

    probe = folder / f".batchscribe_write_test_{uuid.uuid4().hex[:8]}"
    try:
        probe.write_text("test")
        probe.unlink()
    except OSError as e:
        return _failed(
            "output_folder_writable",
            f"Output folder is not writable: {e}",
            "Check folder permissions or choose a writable location",
        )
    return _passed("output_folder_writable", f"Output folder is writable: {folder}")


# =============================================================================
# Job executable and model
# =============================================================================

_DRIVE_MARKER = re.compile(r"^[A-Za-z]:")


def looks_like_path(value: str) -> bool:
    """True when value names a file location rather than a bare command."""
    return (
        "/" in value
        or "\\" in value
        or os.sep in value
        or bool(_DRIVE_MARKER.match(value))
    )


def check_whisper_exe(request: RunRequest) -> PreflightCheck:
    """Transcription executable: a file path, or a command on PATH."""
    value = request.whisper_exe.strip()
    if not value:
        return _failed("whisper_exe", "Whisper executable is blank", "Set the path to whisper-cli")

    if looks_like_path(value):
        path = Path(value)
        if not path.exists():
            return _failed("whisper_exe", f"Whisper executable not found: {path}", "Check the whisper-cli path")
        if not path.is_file():
            return _failed("whisper_exe", f"Whisper executable is not a file: {path}", "Point to the whisper-cli binary itself")
        return _passed("whisper_exe", f"Whisper executable found: {path}")

    found = shutil.which(value)
    if found:
        return _passed("whisper_exe", f"Whisper command found: {found}")
    return _failed(
        "whisper_exe",
        f"Whisper command '{value}' not found in PATH",
        "Use the full path to whisper-cli, or add its folder to PATH",
    )


def check_model_file(request: RunRequest) -> PreflightCheck:
    """Whisper model must be an existing regular file."""
    value = request.model_file.strip()
    if not value:
        return _failed("model_file", "Model file is blank", "Select a ggml model file")

    path = Path(value)
    if not path.exists():
        return _failed("model_file", f"Model file not found: {path}", "Download a ggml model or fix the path")
    if not path.is_file():
        return _failed("model_file", f"Model path is not a file: {path}", "Select the .bin model file itself")
    return _passed("model_file", f"Model file found: {path}")


# =============================================================================
# Batch script
# =============================================================================

def check_batch_script(request: RunRequest, settings: RunnerSettings) -> Tuple[PreflightCheck, Optional[Path]]:
    """
    Batch script must resolve.

    Returns:
        The check, and the resolved script path (None on failure)
    """
    try:
        script = resolve_script_path(
            request.script_path,
            settings.script_name,
            bundle_dir=settings.bundle_dir,
        )
    except ScriptNotFoundError as e:
        return _failed(
            "batch_script",
            str(e),
            f"Place {settings.script_name} in the resources folder or set Script Path in Advanced settings",
        ), None
    return _passed("batch_script", f"Batch script: {script}"), script


# =============================================================================
# Guard
# =============================================================================

def guarded(key: str, check: Callable[[], PreflightCheck]) -> PreflightCheck:
    """Run one check, turning an unexpected exception into a failure."""
    try:
        return check()
    except Exception as e:
        logger.exception(f"[Preflight] Check {key} crashed")
        return _failed(key, f"Check failed with error: {e}", "Report this error; the check itself crashed")

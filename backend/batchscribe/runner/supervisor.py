"""
Process supervisor for folder jobs.

Design rules:
- One subprocess per folder, never more than one alive
- stdout + stderr captured as pipes, never inherited
- Exit checks are non-blocking; the orchestrator owns the wait loop
- Kill is forceful (no grace period) and idempotent
- Signal deaths and unreported codes count as exit code 1
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from .models import RunRequest

logger = logging.getLogger(__name__)


# Reported for processes that died without a normal exit code
UNREPORTED_EXIT_CODE = 1


def build_folder_command(
    job_runner: str,
    runner_args: List[str],
    script_path: Path,
    request: RunRequest,
    input_folder: str,
    pause_flag_path: Path,
) -> List[str]:
    """
    Build the batch script invocation for one input folder.

    Optional arguments are only passed when set: -BeforeDate when non-blank,
    -Limit when greater than zero, switches when true.
    """
    cmd = [job_runner, *runner_args, str(script_path)]

    cmd.extend(["-InputFolder", input_folder])
    cmd.extend(["-OutputFolder", request.output_folder.strip()])
    cmd.extend(["-WhisperExe", request.whisper_exe.strip()])
    cmd.extend(["-ModelFile", request.model_file.strip()])
    cmd.extend(["-PauseFlagFile", str(pause_flag_path)])
    cmd.extend(["-Threads", str(request.threads)])

    if request.before_date and request.before_date.strip():
        cmd.extend(["-BeforeDate", request.before_date.strip()])

    if request.limit is not None and request.limit > 0:
        cmd.extend(["-Limit", str(request.limit)])

    if request.fast_scan:
        cmd.append("-FastScan")
    if request.force:
        cmd.append("-Force")
    if request.no_recursive:
        cmd.append("-NoRecursive")
    if request.keep_audio:
        cmd.append("-KeepAudio")

    return cmd


def normalize_exit_code(returncode: Optional[int]) -> int:
    """Map Popen.returncode to a reportable exit code."""
    if returncode is None or returncode < 0:
        return UNREPORTED_EXIT_CODE
    return returncode


class ProcessSupervisor:
    """
    Spawns and tracks external job processes.

    Stateless: the process handle is returned to the caller, who decides
    where to keep it.
    """

    def spawn(self, cmd: List[str]) -> subprocess.Popen:
        """
        Start one job process with piped output.

        Raises:
            OSError: Executable missing or not runnable
        """
        logger.info(f"[Supervisor] Executing: {subprocess.list2cmdline(cmd)}")
        process = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
        logger.info(f"[Supervisor] Started PID {process.pid}")
        return process

    def poll(self, process: subprocess.Popen) -> Optional[int]:
        """
        Non-blocking exit check.

        Returns:
            None while running, otherwise the normalized exit code
        """
        returncode = process.poll()
        if returncode is None:
            return None
        code = normalize_exit_code(returncode)
        logger.info(f"[Supervisor] PID {process.pid} exited with code {returncode}")
        return code

    def kill(self, process: Optional[subprocess.Popen]) -> bool:
        """
        Forcefully terminate a job process.

        Safe to call repeatedly and on processes that already exited.

        Returns:
            True if a kill signal was sent
        """
        if process is None or process.poll() is not None:
            return False
        try:
            process.kill()
        except ProcessLookupError:
            return False
        except OSError as e:
            logger.warning(f"[Supervisor] Kill failed for PID {process.pid}: {e}")
            return False
        logger.info(f"[Supervisor] Sent kill to PID {process.pid}")
        return True

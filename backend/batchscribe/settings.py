"""
Runner settings.

Settings are read once at process start and passed by reference to the
orchestrator and the preflight validator. Nothing here is persisted; the
front-end owns configuration persistence.

Environment variables (all optional):
    BATCHSCRIBE_JOB_RUNNER          Executable that hosts the batch script
    BATCHSCRIBE_RUNNER_ARGS         Arguments placed before the script path (shell syntax)
    BATCHSCRIBE_MEDIA_TOOL          Media conversion tool checked on PATH
    BATCHSCRIBE_SCRIPT_NAME         File name of the batch script
    BATCHSCRIBE_BUNDLE_DIR          Bundled resource directory
    BATCHSCRIBE_POLL_INTERVAL       Seconds between process exit checks
    BATCHSCRIBE_PREFLIGHT_ON_START  Re-run preflight inside start (true/false)
    BATCHSCRIBE_LOCK_TIMEOUT        Seconds before a state lock counts as unavailable
    BATCHSCRIBE_READER_JOIN_TIMEOUT Seconds to wait for log readers after exit
    BATCHSCRIBE_EVENT_BUFFER_SIZE   Events kept for polling clients
    BATCHSCRIBE_LOG_LEVEL           Logging level name
"""

import shlex
import sys
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_SCRIPT_NAME = "church_transcribe_batch.ps1"

# Bundled resources ship next to the package
DEFAULT_BUNDLE_DIR = Path(__file__).parent.resolve()


def default_job_runner() -> str:
    """PowerShell host for the current platform."""
    return "powershell" if sys.platform.startswith("win") else "pwsh"


class RunnerSettings(BaseSettings):
    """
    Process-wide runner configuration.

    Defaults match a stock install: PowerShell hosting the bundled batch
    script, ffmpeg on PATH, a 180 ms exit poll. Malformed environment
    values fail loudly at startup.
    """

    model_config = SettingsConfigDict(
        env_prefix="BATCHSCRIBE_",
        extra="forbid",
        frozen=True,
    )

    job_runner: str = Field(default_factory=default_job_runner)
    # An empty BATCHSCRIBE_RUNNER_ARGS means no arguments at all
    runner_args: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["-NoProfile", "-ExecutionPolicy", "Bypass", "-File"]
    )
    media_tool: str = "ffmpeg"
    script_name: str = DEFAULT_SCRIPT_NAME
    bundle_dir: Optional[Path] = DEFAULT_BUNDLE_DIR

    poll_interval: float = Field(default=0.18, gt=0)
    preflight_on_start: bool = True
    lock_timeout: float = Field(default=5.0, gt=0)
    reader_join_timeout: float = Field(default=2.0, ge=0)
    event_buffer_size: int = Field(default=1200, ge=1)
    log_level: str = "INFO"

    @field_validator("runner_args", mode="before")
    @classmethod
    def _split_runner_args(cls, value):
        if isinstance(value, str):
            return shlex.split(value)
        return value

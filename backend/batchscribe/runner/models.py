"""
Run request and status models.

All models use Pydantic for validation. Field names are snake_case in
Python; the front-end speaks camelCase, so every model accepts and emits
camelCase aliases as well.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class RunPhase(str, Enum):
    """
    Observable orchestrator phase.

    Starting is the synchronous window inside start() and is never visible
    to status readers.
    """

    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"


class RunRequest(BaseModel):
    """
    A requested transcription run.

    Immutable once accepted. Validation here is structural only; whether
    the paths actually work is the preflight validator's job.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    input_folders: List[str] = Field(default_factory=list)
    output_folder: str = ""
    whisper_exe: str = ""
    model_file: str = ""
    before_date: Optional[str] = None
    threads: int = Field(default=4, ge=1)
    limit: Optional[int] = Field(default=None, ge=0)
    fast_scan: bool = False
    force: bool = False
    no_recursive: bool = False
    keep_audio: bool = False
    script_path: Optional[str] = None


# Preflight accepts the same shape as a run request
PreflightRequest = RunRequest


class RunnerStatus(BaseModel):
    """Status snapshot. Derived on every read, never stored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    running: bool = False
    paused: bool = False
    stop_requested: bool = False

    @computed_field
    @property
    def phase(self) -> RunPhase:
        if not self.running:
            return RunPhase.IDLE
        if self.stop_requested:
            return RunPhase.STOPPING
        return RunPhase.RUNNING


@dataclass(frozen=True)
class RunOutcome:
    """Terminal result of one run, turned into a Finish event at cleanup."""

    success: bool
    code: int
    message: str


COMPLETE_MESSAGE = "Transcription complete."
STOPPED_BEFORE_FOLDER_MESSAGE = "Stopped by user before next folder."
STOPPED_MESSAGE = "Stopped by user."

# Exit code reported when a run is stopped between folders
STOPPED_BEFORE_FOLDER_CODE = 130

"""
Pause signal channel.

The external batch script cannot see orchestrator memory, so pause is a
file: while <output>/.transcribe.pause exists the script holds at its next
checkpoint. The file is the pause state; there is no in-memory flag.
"""

import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


PAUSE_FLAG_FILENAME = ".transcribe.pause"


def pause_flag_path_for(output_folder: Union[str, Path]) -> Path:
    """Pause flag location for a run writing into output_folder."""
    return Path(str(output_folder).strip()) / PAUSE_FLAG_FILENAME


class PauseSignal:
    """Create, remove and query one pause flag file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    @property
    def is_set(self) -> bool:
        return self.path.exists()

    def set(self) -> None:
        """Write the flag. Content is irrelevant; existence is the signal."""
        self.path.write_bytes(b"paused")
        logger.info(f"[Pause] Flag written: {self.path}")

    def clear(self) -> bool:
        """
        Remove the flag if present.

        Returns:
            True if a file was removed.
        """
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        logger.info(f"[Pause] Flag cleared: {self.path}")
        return True

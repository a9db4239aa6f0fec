"""
Log export.

Writes the operator's visible log lines to a plain-text file in the output
folder, named with the export time in epoch seconds.
"""

import logging
import time
from pathlib import Path
from typing import Iterable, Optional

from .errors import ExportError

logger = logging.getLogger(__name__)


def export_log_filename(epoch_seconds: int) -> str:
    return f"transcribe-log-{epoch_seconds}.txt"


def export_logs(
    output_folder: str,
    lines: Iterable[str],
    now: Optional[float] = None,
) -> Path:
    """
    Write log lines to <output_folder>/transcribe-log-<epoch>.txt.

    Args:
        output_folder: Destination folder (created if missing)
        lines: Log lines, written one per line
        now: Export timestamp override (epoch seconds)

    Returns:
        Path of the written file

    Raises:
        ExportError: Blank folder, or the file cannot be written
    """
    folder_value = (output_folder or "").strip()
    if not folder_value:
        raise ExportError("Output folder is required to export logs.")

    folder = Path(folder_value)
    epoch = int(time.time() if now is None else now)
    target = folder / export_log_filename(epoch)

    try:
        folder.mkdir(parents=True, exist_ok=True)
        target.write_text("\n".join(lines), encoding="utf-8")
    except OSError as e:
        raise ExportError(f"Failed to export logs: {e}") from e

    logger.info(f"[Export] Logs written to {target}")
    return target

"""
Preflight report - structured pass/fail output for a proposed run.

This module runs the full check battery and formats the result for:
- Terminal output (CLI)
- JSON output (API/front-end)

A report is created fresh for every validation call and never persisted.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from ..runner.models import RunRequest
from ..settings import RunnerSettings
from .checks import (
    PreflightCheck,
    check_batch_script,
    check_input_folders,
    check_job_runner,
    check_media_tool,
    check_model_file,
    check_output_folder,
    check_output_writable,
    check_whisper_exe,
    guarded,
)

logger = logging.getLogger(__name__)


@dataclass
class PreflightReport:
    """
    Structured preflight report.

    Attributes:
        checks: Individual check results, in battery order
        script_path: Resolved batch script, if resolution succeeded
        generated_at: Report generation time (ISO format, UTC)
    """
    checks: List[PreflightCheck]
    script_path: Optional[Path] = None
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def ready(self) -> bool:
        """True iff every check passed."""
        return all(c.ok for c in self.checks)

    @property
    def failed_checks(self) -> List[PreflightCheck]:
        return [c for c in self.checks if not c.ok]

    def failure_summary(self) -> str:
        """All failing checks joined into one message."""
        return "; ".join(f"{c.key}: {c.detail}" for c in self.failed_checks)

    def to_dict(self) -> dict:
        """Serialize to dictionary for JSON output."""
        return {
            "ready": self.ready,
            "generatedAt": self.generated_at,
            "scriptPath": str(self.script_path) if self.script_path else None,
            "summary": {
                "total_checks": len(self.checks),
                "passed": len(self.checks) - len(self.failed_checks),
                "failed": len(self.failed_checks),
            },
            "checks": [c.to_dict() for c in self.checks],
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


def run_preflight(request: RunRequest, settings: RunnerSettings) -> PreflightReport:
    """
    Run every preflight check against a proposed run.

    Order: job runner, media tool, input folders, output folder, output
    write probe, whisper executable, model file, batch script. The output
    folder is created if missing; nothing else is changed.

    Returns:
        PreflightReport with one entry per check
    """
    checks: List[PreflightCheck] = []

    checks.append(guarded("job_runner", lambda: check_job_runner(settings)))
    checks.append(guarded("media_tool", lambda: check_media_tool(settings)))

    try:
        checks.extend(check_input_folders(request))
    except Exception as e:
        logger.exception("[Preflight] Input folder checks crashed")
        checks.append(PreflightCheck(key="input_folders", ok=False, detail=f"Check failed with error: {e}"))

    output_dir: Optional[Path] = None
    try:
        output_check, output_dir = check_output_folder(request)
    except Exception as e:
        logger.exception("[Preflight] Output folder check crashed")
        output_check = PreflightCheck(key="output_folder", ok=False, detail=f"Check failed with error: {e}")
    checks.append(output_check)
    checks.append(guarded("output_folder_writable", lambda: check_output_writable(output_dir)))

    checks.append(guarded("whisper_exe", lambda: check_whisper_exe(request)))
    checks.append(guarded("model_file", lambda: check_model_file(request)))

    script_path: Optional[Path] = None
    try:
        script_check, script_path = check_batch_script(request, settings)
    except Exception as e:
        logger.exception("[Preflight] Batch script check crashed")
        script_check = PreflightCheck(key="batch_script", ok=False, detail=f"Check failed with error: {e}")
    checks.append(script_check)

    report = PreflightReport(checks=checks, script_path=script_path)
    if report.ready:
        logger.info(f"[Preflight] Ready ({len(checks)} checks passed)")
    else:
        logger.info(f"[Preflight] Not ready: {report.failure_summary()}")
    return report


def format_preflight_terminal(report: PreflightReport) -> str:
    """
    Format a preflight report for terminal output.

    Args:
        report: PreflightReport to format

    Returns:
        Formatted string for terminal display
    """
    lines = []

    lines.append("")
    lines.append("=" * 60)
    lines.append("  TRANSCRIPTION PREFLIGHT")
    lines.append("=" * 60)
    lines.append("")

    for check in report.checks:
        symbol = "✔" if check.ok else "✘"
        lines.append(f"  {symbol} {check.key}: {check.detail}")
        if not check.ok and check.fix:
            lines.append(f"      ↳ {check.fix}")

    lines.append("")
    lines.append("-" * 60)
    lines.append("")

    if report.ready:
        lines.append("  ✔ READY")
        lines.append("")
        lines.append(f"  Batch script: {report.script_path}")
    else:
        lines.append("  ✘ NOT READY")
        lines.append("")
        lines.append(f"  {len(report.failed_checks)} issue(s) must be resolved before a run can start.")

    lines.append("")
    lines.append("-" * 60)
    lines.append("")

    return "\n".join(lines)

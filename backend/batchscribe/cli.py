#!/usr/bin/env python3
"""
batchscribe CLI - thin entrypoint for operator commands.

Commands:
- preflight: validate a run request JSON file
- run: execute a run request in the foreground
- serve: start the HTTP backend for the desktop front-end

Design Principles:
==================
- CLI is a dispatcher only
- No execution logic inside CLI
- Surface errors verbatim from the runner
- No interactive prompts

Exit Codes:
===========
- 0: Success (ready / run complete)
- 1: Not ready or run rejected
- 4: System error (file not found, invalid JSON, invalid request)
- other: the run's final exit code (e.g. 130 when stopped between folders)
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

from pydantic import ValidationError

from batchscribe import __version__
from batchscribe.events.models import FinishEvent
from batchscribe.events.publisher import EventPublisher, LoggingSink, RecordingSink
from batchscribe.preflight.report import format_preflight_terminal, run_preflight
from batchscribe.runner.errors import RejectionError
from batchscribe.runner.models import RunRequest
from batchscribe.runner.orchestrator import RunOrchestrator
from batchscribe.settings import RunnerSettings

logger = logging.getLogger(__name__)


def _configure_logging(level_name: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _load_request(request_path: Path) -> RunRequest:
    """
    Load and parse a run request JSON file.

    Raises:
        SystemExit(4): File not found, invalid JSON, or schema error
    """
    if not request_path.exists():
        print(f"ERROR: Request file not found: {request_path}", file=sys.stderr)
        sys.exit(4)

    try:
        with open(request_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        print(f"ERROR: Invalid JSON in {request_path}: {e}", file=sys.stderr)
        sys.exit(4)

    try:
        return RunRequest.model_validate(data)
    except ValidationError as e:
        print(f"ERROR: Invalid run request in {request_path}: {e}", file=sys.stderr)
        sys.exit(4)


def cmd_preflight(args: argparse.Namespace, settings: RunnerSettings) -> NoReturn:
    """
    Validate a run request without starting it.

    Exit codes:
        0: Ready
        1: Not ready
        4: File not found or parse error
    """
    request = _load_request(Path(args.request).resolve())
    report = run_preflight(request, settings)

    if args.json:
        print(report.to_json())
    else:
        print(format_preflight_terminal(report))

    sys.exit(0 if report.ready else 1)


def cmd_run(args: argparse.Namespace, settings: RunnerSettings) -> NoReturn:
    """
    Run a request in the foreground. Ctrl+C requests a stop.

    Exit code is the run's final code.
    """
    request = _load_request(Path(args.request).resolve())

    recorder = RecordingSink()
    orchestrator = RunOrchestrator(
        settings=settings,
        publisher=EventPublisher([recorder, LoggingSink()]),
    )

    try:
        orchestrator.start(request)
    except RejectionError as e:
        print(f"✗ Run rejected: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        while not orchestrator.wait(timeout=0.5):
            pass
    except KeyboardInterrupt:
        print("\nStopping run...", file=sys.stderr)
        orchestrator.stop()
        orchestrator.wait()

    finish = recorder.wait_for(FinishEvent, timeout=5)
    if finish is None:
        print("✗ Run ended without a finish event", file=sys.stderr)
        sys.exit(2)

    symbol = "✓" if finish.success else "✗"
    print(f"{symbol} {finish.message} (code {finish.code})")
    sys.exit(finish.code)


def cmd_serve(args: argparse.Namespace, settings: RunnerSettings) -> NoReturn:
    """Start the HTTP backend with uvicorn."""
    import uvicorn

    uvicorn.run(
        "batchscribe.main:app",
        host=args.host,
        port=args.port,
        log_level=settings.log_level.lower(),
    )
    sys.exit(0)


def main(argv: Optional[List[str]] = None) -> NoReturn:
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        prog="batchscribe",
        description="Operator CLI for batch transcription runs",
    )
    parser.add_argument("--version", action="version", version=f"batchscribe {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    parser_preflight = subparsers.add_parser("preflight", help="Validate a run request JSON file")
    parser_preflight.add_argument("request", help="Path to run request JSON")
    parser_preflight.add_argument("--json", action="store_true", help="Output the report as JSON")

    parser_run = subparsers.add_parser("run", help="Execute a run request in the foreground")
    parser_run.add_argument("request", help="Path to run request JSON")

    parser_serve = subparsers.add_parser("serve", help="Start the HTTP backend")
    parser_serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser_serve.add_argument("--port", type=int, default=8085, help="Port (default: 8085)")

    args = parser.parse_args(argv)

    try:
        settings = RunnerSettings()
    except ValidationError as e:
        print(f"ERROR: Invalid BATCHSCRIBE_* settings: {e}", file=sys.stderr)
        sys.exit(4)

    _configure_logging(settings.log_level)

    if args.command == "preflight":
        cmd_preflight(args, settings)
    elif args.command == "run":
        cmd_run(args, settings)
    elif args.command == "serve":
        cmd_serve(args, settings)
    else:
        parser.print_help()
        sys.exit(4)


if __name__ == "__main__":
    main()

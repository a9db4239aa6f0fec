"""
Control endpoints for explicit operator actions.

HTTP adapter over RunOrchestrator. Every endpoint is a short synchronous
call: none of them waits for a job process.

Rejections map to 400 with the rejection message as detail.
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from batchscribe.runner.errors import ExportError, RejectionError
from batchscribe.runner.exports import export_logs
from batchscribe.runner.models import RunnerStatus, RunRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/runner", tags=["runner"])


class PauseRequest(BaseModel):
    """Request body for pause/resume."""

    model_config = ConfigDict(extra="forbid")

    paused: bool


class ExportLogsRequest(BaseModel):
    """Request body for log export."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    output_folder: str
    lines: List[str] = Field(default_factory=list)


class ExportLogsResponse(BaseModel):
    path: str


class EventEnvelope(BaseModel):
    """One buffered outbound event."""

    seq: int
    channel: str
    payload: dict


class EventListResponse(BaseModel):
    events: List[EventEnvelope]
    last_seq: int


def _orchestrator(request: Request):
    return request.app.state.orchestrator


@router.get("/status", response_model=RunnerStatus)
def get_status(request: Request):
    """Current runner status (idle defaults when no run is active)."""
    return _orchestrator(request).get_status()


@router.post("/start", response_model=RunnerStatus)
def start_run(body: RunRequest, request: Request):
    """
    Start a transcription run.

    Raises:
        400: Rejected (incomplete request, preflight not ready, run in progress)
    """
    try:
        return _orchestrator(request).start(body)
    except RejectionError as e:
        logger.warning(f"Start rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/preflight")
def preflight(body: RunRequest, request: Request):
    """Validate a proposed run. Always 200; readiness is in the body."""
    report = _orchestrator(request).preflight(body)
    return report.to_dict()


@router.post("/pause", response_model=RunnerStatus)
def toggle_pause(body: PauseRequest, request: Request):
    """
    Pause (paused=true) or resume (paused=false) the active run.

    Raises:
        400: No active run, or the pause flag could not be written
    """
    try:
        return _orchestrator(request).toggle_pause(body.paused)
    except RejectionError as e:
        logger.warning(f"Pause/resume rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/stop", response_model=RunnerStatus)
def stop_run(request: Request):
    """Stop the active run. A no-op while idle."""
    try:
        return _orchestrator(request).stop()
    except RejectionError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/events", response_model=EventListResponse)
def list_events(request: Request, after: int = 0):
    """
    Buffered outbound events with sequence number greater than after.

    Clients poll with the last_seq they saw.
    """
    buffer = request.app.state.event_buffer
    events = [
        EventEnvelope(seq=seq, channel=event.channel, payload=event.to_payload())
        for seq, event in buffer.since(after)
    ]
    return EventListResponse(events=events, last_seq=buffer.last_seq)


@router.post("/export-logs", response_model=ExportLogsResponse)
def export_log_lines(body: ExportLogsRequest):
    """
    Write log lines to a timestamped text file in the output folder.

    Raises:
        400: Blank folder or write failure
    """
    try:
        path = export_logs(body.output_folder, body.lines)
    except ExportError as e:
        logger.error(f"Log export failed: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    return ExportLogsResponse(path=str(path))

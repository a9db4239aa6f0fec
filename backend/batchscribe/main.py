"""
batchscribe backend service - operator control for transcription runs.

The desktop front-end calls these endpoints and polls /runner/events for
log, stage, finish and status notifications.
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from batchscribe import __version__
from batchscribe.events.publisher import EventPublisher, LoggingSink, RecordingSink
from batchscribe.routes import control, health
from batchscribe.runner.orchestrator import RunOrchestrator
from batchscribe.settings import RunnerSettings

logger = logging.getLogger(__name__)


def create_app(settings: Optional[RunnerSettings] = None) -> FastAPI:
    """
    Build the API application with its single orchestrator.

    Args:
        settings: Runner settings; read from the environment when omitted
    """
    settings = settings or RunnerSettings()

    app = FastAPI(title="batchscribe", version=__version__)

    # CORS middleware for the desktop front-end dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:1420", "tauri://localhost"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    event_buffer = RecordingSink(maxlen=settings.event_buffer_size)
    publisher = EventPublisher([event_buffer, LoggingSink()])

    app.state.settings = settings
    app.state.event_buffer = event_buffer
    app.state.orchestrator = RunOrchestrator(settings=settings, publisher=publisher)

    app.include_router(health.router)
    app.include_router(control.router)

    @app.get("/")
    async def root():
        return {"service": "batchscribe", "status": "running"}

    logger.info(f"batchscribe {__version__} ready (runner: {settings.job_runner})")
    return app


app = create_app()

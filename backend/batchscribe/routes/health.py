"""
Health endpoint.
"""

from fastapi import APIRouter
from pydantic import BaseModel

from batchscribe import __version__

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Simple liveness indicator."""
    return HealthResponse(status="ok", version=__version__)

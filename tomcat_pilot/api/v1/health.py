"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from tomcat_pilot import __version__
from tomcat_pilot.api.deps import ContextDep

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    project_dir: str
    timestamp: datetime


@router.get("/health", response_model=HealthResponse)
async def health_check(context: ContextDep) -> HealthResponse:
    """Check API health status."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        project_dir=str(context.project_dir),
        timestamp=datetime.now(timezone.utc),
    )

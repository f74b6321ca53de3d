"""Health check route."""

from fastapi import APIRouter

from cadence import __version__
from cadence.api.dependencies import Orchestrator
from cadence.api.schemas.health import HealthResponse
from cadence.channels.base import DisabledTransport

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(orchestrator: Orchestrator) -> HealthResponse:
    """Report liveness plus a few runtime counters."""
    return HealthResponse(
        status="ok",
        version=__version__,
        scheduled_workflows=len(orchestrator.scheduler.registered_ids()),
        background_tasks=orchestrator.tasks.active_count,
        channels=[
            name
            for name, transport in orchestrator.transports.items()
            if not isinstance(transport, DisabledTransport)
        ],
    )

"""FastAPI application factory for the Cadence API."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cadence.api.routes.agent import router as agent_router
from cadence.api.routes.health import router as health_router
from cadence.api.routes.permissions import router as permissions_router
from cadence.api.routes.sessions import router as sessions_router
from cadence.api.routes.webhooks import router as webhooks_router
from cadence.api.routes.workflows import router as workflows_router
from cadence.runtime.orchestrator import CadenceOrchestrator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the orchestrator with the server and stop it on shutdown."""
    orchestrator: CadenceOrchestrator = app.state.orchestrator
    await orchestrator.start()

    yield

    await orchestrator.stop()


def create_app(orchestrator: CadenceOrchestrator, cors_origins: list[str] | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        orchestrator: Wired Cadence components (started by the app lifespan)
        cors_origins: Allowed CORS origins (default: ["*"])

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="Cadence API",
        description="Agent turns, workflows, webhooks and permission approvals",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount routes at /api/v1
    api_v1 = FastAPI()
    api_v1.include_router(agent_router)
    api_v1.include_router(sessions_router)
    api_v1.include_router(webhooks_router)
    api_v1.include_router(permissions_router)
    api_v1.include_router(workflows_router)
    api_v1.include_router(health_router)

    # Share state with sub-app so dependencies can reach the orchestrator
    api_v1.state = app.state

    app.mount("/api/v1", api_v1)

    return app

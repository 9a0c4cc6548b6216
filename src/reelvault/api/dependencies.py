"""Dependency injection for API endpoints."""

from typing import cast

from fastapi import Request

from reelvault.infrastructure.lifecycle import ProcessOrchestrator


# Hey future me - the orchestrator is put on app.state by create_app (or by the
# lifespan when the app was started without one). Routes never reach for the
# module-level singleton.
def get_orchestrator(request: Request) -> ProcessOrchestrator:
    """Get the process orchestrator from app state."""
    return cast(ProcessOrchestrator, request.app.state.orchestrator)
